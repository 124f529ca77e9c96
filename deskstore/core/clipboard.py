"""Clipboard - cut/copy selection waiting to be pasted.

Invariants:
    - At most one pending clipboard entry; cut() and copy() replace it
    - The clipboard holds ids only; items are resolved at paste time, so ids
      removed in the meantime are skipped by the store
"""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class ClipboardEntry:
    item_ids: tuple[str, ...]
    is_cut: bool
    source_parent_id: str | None


@dataclass
class Clipboard:
    """Pure clipboard state, no IO."""

    entry: ClipboardEntry | None = field(default=None)

    def cut(self, item_ids: list[str], source_parent_id: str | None) -> None:
        self.entry = ClipboardEntry(tuple(item_ids), True, source_parent_id)

    def copy(self, item_ids: list[str], source_parent_id: str | None) -> None:
        self.entry = ClipboardEntry(tuple(item_ids), False, source_parent_id)

    def clear(self) -> None:
        self.entry = None

    @property
    def has_items(self) -> bool:
        return self.entry is not None and len(self.entry.item_ids) > 0

    @property
    def is_cutting(self) -> bool:
        return self.entry is not None and self.entry.is_cut
