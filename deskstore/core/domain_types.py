"""Domain Types - identity types, closed enums and layout policy constants.

Invariants:
    - ItemId wraps str: ids are opaque, client-generated for new items
    - ItemType is a closed set; unknown wire values sort last by kind
    - All valid states encoded as Enums - no raw string matching

Design Decisions:
    - NewType over dataclass wrappers: zero runtime cost, full type-checker support
    - str Enums: serialize to JSON without custom encoders
"""

import time
import uuid
from enum import Enum
from typing import NewType


# ─── Identity Types ──────────────────────────────────────────────

ItemId = NewType("ItemId", str)
UploadId = NewType("UploadId", str)


def new_item_id() -> ItemId:
    return ItemId(uuid.uuid4().hex)


def now_ms() -> int:
    """Wall clock in unix milliseconds (the wire timestamp unit)."""
    return int(time.time() * 1000)


# ─── Layout Policy ───────────────────────────────────────────────

# Cells per column before the layout wraps to the next column.
GRID_ROWS_PER_COLUMN: int = 8

# Sort-preference key used for the root container (parent_id is None).
ROOT_CONTAINER_KEY: str = "__root__"


def container_key(container_id: str | None) -> str:
    return ROOT_CONTAINER_KEY if container_id is None else container_id


# ─── Enums ───────────────────────────────────────────────────────

class ItemType(str, Enum):
    """Closed set of desktop item kinds."""
    FOLDER = "folder"
    TEXT = "text"
    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"
    PDF = "pdf"
    LINK = "link"
    WIDGET = "widget"


# Kind sort priority; anything missing sorts after WIDGET.
TYPE_PRIORITY: dict[str, int] = {
    ItemType.FOLDER.value: 0,
    ItemType.TEXT.value: 1,
    ItemType.IMAGE.value: 2,
    ItemType.VIDEO.value: 3,
    ItemType.AUDIO.value: 4,
    ItemType.PDF.value: 5,
    ItemType.LINK.value: 6,
    ItemType.WIDGET.value: 7,
}
UNKNOWN_TYPE_PRIORITY: int = 99


class SortKey(str, Enum):
    """Container sort orders."""
    NAME = "name"
    DATE = "date"
    KIND = "kind"


class SyncStatus(str, Enum):
    """Per-item reconciliation state with the remote store."""
    SYNCED = "synced"
    PENDING = "pending"
    FAILED = "failed"


class UploadStatus(str, Enum):
    """Per-upload lifecycle states."""
    PENDING = "pending"
    UPLOADING = "uploading"
    COMPLETE = "complete"
    ERROR = "error"


class SoundKind(str, Enum):
    """Feedback sounds the store asks the sound player for."""
    CLICK = "click"
    DROP = "drop"
    TRASH = "trash"
    EMPTY_TRASH = "emptyTrash"
    ALERT = "alert"
    ERROR = "error"
