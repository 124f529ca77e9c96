"""Sync Schemas - payloads exchanged with the desktop API and upload bookkeeping.

Invariants:
    - ItemPatch.updates is already in wire form (camelCase keys, JSON-safe values)
    - UploadProgress.progress is bounded 0-100
"""

from typing import Any

from pydantic import BaseModel, Field

from deskstore.core.domain_types import UploadStatus
from deskstore.schemas.item import DesktopItem, wire_updates


class ItemPatch(BaseModel):
    """One entry of a batch update: partial fields for a single item."""
    id: str
    updates: dict[str, Any]

    @classmethod
    def of(cls, item_id: str, **fields: Any) -> "ItemPatch":
        return cls(id=item_id, updates=wire_updates(fields))


class DesktopResponse(BaseModel):
    """GET /api/desktop response body."""
    items: list[DesktopItem] = Field(default_factory=list)
    profile: dict | None = None


class UploadResponse(BaseModel):
    """POST /api/upload response body."""
    item: DesktopItem


class UploadedFile(BaseModel):
    """A local file handed to the store for upload."""
    filename: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


class UploadProgress(BaseModel):
    """Progress entry for one upload attempt."""
    id: str
    filename: str
    progress: int = Field(default=0, ge=0, le=100)
    status: UploadStatus = UploadStatus.PENDING
    error: str | None = None
