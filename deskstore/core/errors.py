"""Error Hierarchy - typed, categorized exceptions for every deskstore failure mode.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - Validation errors are raised before any local mutation
    - Network and upload errors never roll back optimistic local state
    - Storage errors (cache, sort preferences) are logged and swallowed by their owners
    - user_message() never leaks transport internals beyond the server's error text

Design Decisions:
    - Single hierarchy with DeskStoreError base: the store catches one type at the sync boundary
    - ErrorContext as dataclass: rich observability without coupling to logging framework
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from datetime import datetime, timezone


class ErrorSeverity(str, Enum):
    """Error severity for observability and notification routing."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """High-level error categories."""
    VALIDATION = "validation"
    RESOURCE_NOT_FOUND = "resource_not_found"
    STORAGE = "storage"
    EXTERNAL_API = "external_api"
    INTERNAL = "internal"


@dataclass
class ErrorContext:
    """Rich context for error observability and debugging."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    item_id: str | None = None
    operation: str | None = None
    user_message: str | None = None
    debug_info: dict[str, Any] | None = None


class DeskStoreError(Exception):
    """Base exception for all deskstore errors."""

    def __init__(
        self,
        message: str,
        code: str,
        category: ErrorCategory,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: ErrorContext | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()

    def user_message(self) -> str:
        """Text suitable for a user-visible notification."""
        return self.context.user_message or self.message

    def to_dict(self) -> dict:
        """Structured form for logs and diagnostics."""
        return {
            "code": self.code,
            "message": self.message,
            "category": self.category.value,
            "severity": self.severity.value,
            "timestamp": self.context.timestamp.isoformat(),
            "item_id": self.context.item_id,
            "operation": self.context.operation,
        }


# ─── Validation Errors (caller mistakes, no mutation happened) ───

class ValidationError(DeskStoreError):
    """Input rejected before any local mutation."""
    def __init__(
        self, message: str, field: str | None = None,
        code: str = "VALIDATION_ERROR", context: ErrorContext | None = None,
    ):
        super().__init__(
            message, code, ErrorCategory.VALIDATION,
            ErrorSeverity.ERROR, context,
        )
        self.field = field


class UploadValidationError(ValidationError):
    """File type or size not accepted for upload."""
    def __init__(self, message: str, field: str, context: ErrorContext | None = None):
        super().__init__(message, field, "UPLOAD_REJECTED", context)


class InvalidTargetError(ValidationError):
    """Target container is not a folder, or would create a containment cycle."""
    def __init__(self, message: str, target_id: str | None, context: ErrorContext | None = None):
        super().__init__(message, "parent_id", "INVALID_TARGET", context)
        self.target_id = target_id


class DuplicateItemError(ValidationError):
    """An item with the same id already exists in the collection."""
    def __init__(self, item_id: str, context: ErrorContext | None = None):
        super().__init__(
            f"Item '{item_id}' already exists", "id", "DUPLICATE_ITEM", context,
        )
        self.item_id = item_id


class ItemNotFoundError(DeskStoreError):
    """Requested item id is not in the collection."""
    def __init__(self, item_id: str, context: ErrorContext | None = None):
        super().__init__(
            f"Item '{item_id}' not found",
            "ITEM_NOT_FOUND", ErrorCategory.RESOURCE_NOT_FOUND,
            ErrorSeverity.ERROR, context,
        )
        self.item_id = item_id


# ─── Remote Errors (reported, local state kept) ─────────────────

class NetworkError(DeskStoreError):
    """Remote desktop API call failed or timed out."""
    def __init__(
        self, message: str, operation: str,
        status_code: int | None = None, context: ErrorContext | None = None,
    ):
        ctx = context or ErrorContext()
        ctx.operation = ctx.operation or operation
        super().__init__(
            message, "NETWORK_ERROR", ErrorCategory.EXTERNAL_API,
            ErrorSeverity.ERROR, ctx,
        )
        self.operation = operation
        self.status_code = status_code


class UploadError(DeskStoreError):
    """File upload failed after validation passed."""
    def __init__(self, message: str, filename: str, context: ErrorContext | None = None):
        super().__init__(
            message, "UPLOAD_FAILED", ErrorCategory.EXTERNAL_API,
            ErrorSeverity.ERROR, context,
        )
        self.filename = filename


# ─── Storage Errors (swallowed, durability degrades) ────────────

class CacheError(DeskStoreError):
    """Local item snapshot could not be read or written."""
    def __init__(self, message: str, operation: str, context: ErrorContext | None = None):
        super().__init__(
            f"Cache {operation} failed: {message}",
            "CACHE_ERROR", ErrorCategory.STORAGE,
            ErrorSeverity.WARNING, context,
        )
        self.operation = operation


class PreferenceStorageError(CacheError):
    """Per-container sort preference could not be read or written."""
    def __init__(self, message: str, operation: str, context: ErrorContext | None = None):
        super().__init__(message, operation, context)
        self.code = "PREFERENCE_STORAGE_ERROR"
