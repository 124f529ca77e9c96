"""Sort Engine - deterministic ordering of a container and re-derived positions.

Invariants:
    - Only non-trashed items whose parent_id is the container are repositioned
    - The returned collection keeps the input's insertion order
    - Every sorted item gets the same updated_at stamp (>= each prior updated_at)
    - Sorting twice by the same key yields the same positions (idempotent)

Design Decisions:
    - Ties fall back to the current layout slot, then insertion order: a sorted
      container is its own tie-break order, which keeps date sorts stable after
      the stamp bump makes every updated_at equal
    - Name comparison folds case and strips accents (NFKD + casefold), the
      closest stdlib match to a base-sensitivity locale collation
"""

import unicodedata
from collections.abc import Callable, Sequence

from deskstore.core.domain_types import (
    GRID_ROWS_PER_COLUMN,
    TYPE_PRIORITY,
    UNKNOWN_TYPE_PRIORITY,
    SortKey,
)
from deskstore.core.layout import slot_index, slot_position
from deskstore.schemas.item import DesktopItem
from deskstore.schemas.sync import ItemPatch


def name_key(name: str) -> tuple[str, str]:
    """Collation key: accent- and case-insensitive, raw name as final tie-break."""
    decomposed = unicodedata.normalize("NFKD", name)
    base = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return (base.casefold(), name)


def kind_rank(item: DesktopItem) -> int:
    return TYPE_PRIORITY.get(item.type.value, UNKNOWN_TYPE_PRIORITY)


_PRIMARY_KEYS: dict[SortKey, Callable[[DesktopItem], tuple]] = {
    SortKey.NAME: lambda item: name_key(item.name),
    SortKey.DATE: lambda item: (-item.updated_at,),
    SortKey.KIND: lambda item: (kind_rank(item), *name_key(item.name)),
}


def order_container(
    items: Sequence[DesktopItem],
    container_id: str | None,
    key: SortKey,
    rows: int = GRID_ROWS_PER_COLUMN,
) -> list[DesktopItem]:
    """Non-trashed children of the container in display order for `key`."""
    primary = _PRIMARY_KEYS[SortKey(key)]
    members = [
        (index, item) for index, item in enumerate(items)
        if item.parent_id == container_id and not item.is_trashed
    ]
    members.sort(
        key=lambda pair: (
            primary(pair[1]), slot_index(pair[1].position, rows), pair[0],
        ),
    )
    return [item for _, item in members]


def sort_container(
    items: Sequence[DesktopItem],
    container_id: str | None,
    key: SortKey,
    stamp: int,
    rows: int = GRID_ROWS_PER_COLUMN,
) -> tuple[list[DesktopItem], list[ItemPatch]]:
    """Reposition the container's children by `key`. Pure, no IO.

    Returns the new collection (insertion order preserved) and one position
    patch per repositioned item, ready for a single batch update.
    """
    ordered = order_container(items, container_id, key, rows)
    if not ordered:
        return list(items), []

    stamp = max(stamp, max(item.updated_at for item in ordered))
    replaced: dict[str, DesktopItem] = {}
    patches: list[ItemPatch] = []
    for index, item in enumerate(ordered):
        position = slot_position(index, rows)
        replaced[item.id] = item.model_copy(
            update={"position": position, "updated_at": stamp},
        )
        patches.append(ItemPatch.of(item.id, position=position))

    return [replaced.get(item.id, item) for item in items], patches
