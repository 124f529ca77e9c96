"""Uploads - validation and per-file progress tracking.

Invariants:
    - validate_upload() runs before any local mutation and raises UploadValidationError
    - Every tracked upload has exactly one UploadProgress entry until cleared
    - Status only moves forward: pending -> uploading -> complete | error
"""

import uuid

from deskstore.core.domain_types import UploadId, UploadStatus
from deskstore.core.errors import ErrorContext, UploadValidationError
from deskstore.schemas.sync import UploadProgress, UploadedFile

ALLOWED_UPLOAD_TYPES: dict[str, str] = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
    "text/plain": "txt",
    "text/markdown": "md",
}
DEFAULT_MAX_UPLOAD_BYTES = 10 * 1024 * 1024


def validate_upload(file: UploadedFile, max_bytes: int = DEFAULT_MAX_UPLOAD_BYTES) -> None:
    ctx = ErrorContext(operation="upload_file", debug_info={"filename": file.filename})
    if file.content_type not in ALLOWED_UPLOAD_TYPES:
        allowed = ", ".join(ALLOWED_UPLOAD_TYPES)
        raise UploadValidationError(
            f"Invalid file type: {file.content_type}. Allowed: {allowed}",
            "content_type", ctx,
        )
    if file.size > max_bytes:
        raise UploadValidationError(
            f"File too large. Maximum size: {max_bytes // (1024 * 1024)}MB",
            "size", ctx,
        )


class UploadTracker:
    """Upload progress entries in start order."""

    def __init__(self):
        self._uploads: dict[str, UploadProgress] = {}

    def start(self, filename: str) -> UploadId:
        upload_id = UploadId(uuid.uuid4().hex)
        self._uploads[upload_id] = UploadProgress(
            id=upload_id, filename=filename, status=UploadStatus.UPLOADING,
        )
        return upload_id

    def progress(self, upload_id: str, percent: int) -> None:
        entry = self._uploads.get(upload_id)
        if entry is None or entry.status != UploadStatus.UPLOADING:
            return
        percent = max(entry.progress, min(100, max(0, int(percent))))
        self._uploads[upload_id] = entry.model_copy(update={"progress": percent})

    def complete(self, upload_id: str) -> None:
        entry = self._uploads.get(upload_id)
        if entry is not None:
            self._uploads[upload_id] = entry.model_copy(
                update={"progress": 100, "status": UploadStatus.COMPLETE},
            )

    def fail(self, upload_id: str, error: str) -> None:
        entry = self._uploads.get(upload_id)
        if entry is not None:
            self._uploads[upload_id] = entry.model_copy(
                update={"status": UploadStatus.ERROR, "error": error},
            )

    def clear(self, upload_id: str) -> None:
        self._uploads.pop(upload_id, None)

    def get(self, upload_id: str) -> UploadProgress | None:
        return self._uploads.get(upload_id)

    def snapshot(self) -> list[UploadProgress]:
        return list(self._uploads.values())

    @property
    def failed(self) -> list[UploadProgress]:
        return [u for u in self._uploads.values() if u.status == UploadStatus.ERROR]
