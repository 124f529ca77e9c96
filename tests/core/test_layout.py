"""Position Allocator - tests for free-cell allocation and drop resolution.

Tests cover:
    - allocate fills column 0 top to bottom, then wraps to column 1
    - allocate skips occupied cells, ignores trashed items and other containers
    - exclude_ids frees an item's own cell
    - repeated calls with cumulative exclusion return disjoint cells
    - find_nearest_free returns the target when free, the closest ring cell otherwise
"""

from deskstore.core.layout import (
    allocate, find_nearest_free, occupied_cells, slot_index, slot_position,
)
from deskstore.schemas.item import GridPosition

from tests.item_factory import make_folder, make_item


def _cells(*pairs):
    return [GridPosition(x=x, y=y) for x, y in pairs]


# ─── slots ───────────────────────────────────────────────────────

def test_slot_position_wraps_after_eight_rows():
    assert slot_position(0) == GridPosition(x=0, y=0)
    assert slot_position(7) == GridPosition(x=0, y=7)
    assert slot_position(8) == GridPosition(x=1, y=0)
    assert slot_position(17) == GridPosition(x=2, y=1)


def test_slot_index_inverts_slot_position():
    for index in range(30):
        assert slot_index(slot_position(index)) == index


# ─── allocate ────────────────────────────────────────────────────

def test_allocate_empty_container_starts_at_origin():
    assert allocate([], None, 3) == _cells((0, 0), (0, 1), (0, 2))


def test_allocate_nine_items_wraps_to_second_column():
    cells = allocate([], "f", 9)
    assert cells[:8] == [GridPosition(x=0, y=y) for y in range(8)]
    assert cells[8] == GridPosition(x=1, y=0)


def test_allocate_skips_occupied_cells():
    items = [make_item("a", x=0, y=0), make_item("b", x=0, y=2)]
    assert allocate(items, None, 3) == _cells((0, 1), (0, 3), (0, 4))


def test_allocate_ignores_trashed_items():
    items = [make_item("a", x=0, y=0, trashed=True)]
    assert allocate(items, None, 1) == _cells((0, 0))


def test_allocate_scoped_to_container():
    items = [make_folder("f"), make_item("a", parent_id="f", x=0, y=0)]
    assert allocate(items, "f", 1) == _cells((0, 1))
    assert allocate(items, None, 1) == _cells((0, 1))


def test_allocate_exclude_ids_frees_own_cell():
    items = [make_item("a", x=0, y=0)]
    assert allocate(items, None, 1, exclude_ids=["a"]) == _cells((0, 0))


def test_allocate_returns_distinct_cells():
    items = [make_item(f"i{n}", x=0, y=n) for n in range(0, 8, 2)]
    cells = allocate(items, None, 10)
    assert len(cells) == 10
    assert len(set(cells)) == 10
    assert not set(cells) & occupied_cells(items, None)


def test_allocate_cumulative_calls_are_disjoint():
    items = [make_item("a", x=0, y=1)]
    first = allocate(items, None, 3)
    placed = items + [
        make_item(f"n{i}", x=c.x, y=c.y) for i, c in enumerate(first)
    ]
    second = allocate(placed, None, 3)
    assert not set(first) & set(second)


def test_allocate_is_deterministic():
    items = [make_item("a", x=0, y=3), make_item("b", x=1, y=0)]
    assert allocate(items, None, 12) == allocate(items, None, 12)


def test_allocate_zero_count():
    assert allocate([], None, 0) == []


def test_allocate_custom_rows():
    assert allocate([], None, 3, rows=2) == _cells((0, 0), (0, 1), (1, 0))


# ─── find_nearest_free ───────────────────────────────────────────

def test_nearest_free_returns_target_when_free():
    items = [make_item("a", x=0, y=0)]
    target = GridPosition(x=3, y=3)
    assert find_nearest_free(items, None, target) == target


def test_nearest_free_ignores_the_dragged_item():
    items = [make_item("a", x=2, y=2)]
    target = GridPosition(x=2, y=2)
    assert find_nearest_free(items, None, target, exclude_id="a") == target


def test_nearest_free_picks_first_ring_cell():
    items = [make_item("a", x=2, y=2), make_item("b", x=0, y=0)]
    # Ring 1 scan order starts at (dx=-1, dy=-1).
    assert find_nearest_free(items, None, GridPosition(x=2, y=2), "b") == GridPosition(x=1, y=1)


def test_nearest_free_never_goes_negative():
    items = [make_item("a", x=0, y=0), make_item("b", x=5, y=5)]
    cell = find_nearest_free(items, None, GridPosition(x=0, y=0), "b")
    assert cell.x >= 0 and cell.y >= 0
    assert cell != GridPosition(x=0, y=0)


def test_nearest_free_result_is_unoccupied():
    items = [make_item(f"i{x}-{y}", x=x, y=y) for x in range(3) for y in range(3)]
    cell = find_nearest_free(items, None, GridPosition(x=1, y=1))
    assert cell not in occupied_cells(items, None)
