"""Position Allocator - free grid cells for new, pasted and dropped items.

Invariants:
    - Layout slot i maps to cell (x = i // rows, y = i % rows); columns extend without bound
    - allocate() never returns a cell held by a non-trashed item in the container
    - Cells returned by one allocate() call are pairwise distinct
    - Same occupied set + same request always yields the same cells (deterministic)
    - find_nearest_free() only returns non-negative coordinates

Design Decisions:
    - Sorting (core/sorting.py) uses slot_position() too: one layout policy for both
    - Trashed items do not occupy cells; restoring one may produce a transient overlap
      that the next drop or sort resolves
"""

from collections.abc import Iterable, Sequence

from deskstore.core.domain_types import GRID_ROWS_PER_COLUMN
from deskstore.schemas.item import DesktopItem, GridPosition

MAX_SEARCH_RING: int = 20


def slot_position(index: int, rows: int = GRID_ROWS_PER_COLUMN) -> GridPosition:
    """Cell for layout slot `index`."""
    return GridPosition(x=index // rows, y=index % rows)


def slot_index(position: GridPosition, rows: int = GRID_ROWS_PER_COLUMN) -> int:
    """Layout slot of `position`. Cells below the column height map one-to-one."""
    return position.x * rows + position.y


def occupied_cells(
    items: Sequence[DesktopItem],
    container_id: str | None,
    exclude_ids: Iterable[str] = (),
) -> set[GridPosition]:
    """Cells held by non-trashed items in the container."""
    excluded = set(exclude_ids)
    return {
        item.position
        for item in items
        if item.parent_id == container_id
        and not item.is_trashed
        and item.id not in excluded
    }


def allocate(
    items: Sequence[DesktopItem],
    container_id: str | None,
    count: int,
    exclude_ids: Iterable[str] = (),
    rows: int = GRID_ROWS_PER_COLUMN,
) -> list[GridPosition]:
    """First `count` free cells of the container in layout order."""
    if count <= 0:
        return []
    taken = occupied_cells(items, container_id, exclude_ids)
    cells: list[GridPosition] = []
    index = 0
    while len(cells) < count:
        cell = slot_position(index, rows)
        if cell not in taken:
            taken.add(cell)
            cells.append(cell)
        index += 1
    return cells


def find_nearest_free(
    items: Sequence[DesktopItem],
    container_id: str | None,
    target: GridPosition,
    exclude_id: str | None = None,
    rows: int = GRID_ROWS_PER_COLUMN,
) -> GridPosition:
    """Resolve a drop target to the closest free cell.

    Returns `target` if nobody else holds it, otherwise walks square rings of
    growing radius around it. When every ring up to MAX_SEARCH_RING is full the
    first free layout slot is used, so the result is always unoccupied.
    """
    taken = occupied_cells(
        items, container_id, () if exclude_id is None else (exclude_id,),
    )
    if target not in taken:
        return target

    for ring in range(1, MAX_SEARCH_RING):
        for dx in range(-ring, ring + 1):
            for dy in range(-ring, ring + 1):
                if abs(dx) != ring and abs(dy) != ring:
                    continue
                x, y = target.x + dx, target.y + dy
                if x < 0 or y < 0:
                    continue
                cell = GridPosition(x=x, y=y)
                if cell not in taken:
                    return cell

    exclude = () if exclude_id is None else (exclude_id,)
    return allocate(items, container_id, 1, exclude, rows)[0]
