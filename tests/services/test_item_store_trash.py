"""Item Store trash - tests for cascading trash, restore and empty trash.

Tests cover:
    - trashing a folder trashes every descendant with one timestamp and one batch
    - already-trashed items are not re-stamped or re-sent
    - restore is exact (not cascading) and keeps the trashed-ancestor rule
    - restored items never land on an occupied cell
    - empty_trash removes every trashed item with a single remote call
    - the create-nine-then-trash-then-restore flow end to end
"""

from deskstore.core.domain_types import ItemType, SoundKind
from deskstore.schemas.item import GridPosition

from tests.item_factory import make_folder, make_item


def _tree():
    return [
        make_folder("f"),
        make_item("a", parent_id="f"),
        make_folder("sub", parent_id="f", y=1),
        make_item("b", parent_id="sub"),
        make_item("loose", y=1),
    ]


def _trashed_ids(store):
    return {item.id for item in store.get_trashed_items()}


# ─── move_to_trash ───────────────────────────────────────────────

async def test_trash_folder_cascades(store, transport, sounds):
    store.set_items(_tree())
    cascade = store.move_to_trash(["f"])
    assert cascade == {"f", "a", "sub", "b"}
    assert _trashed_ids(store) == cascade
    stamps = {store.get_item(i).trashed_at for i in cascade}
    assert len(stamps) == 1
    assert sounds.played == [SoundKind.TRASH]
    await store.flush()
    [patches] = transport.calls_of("update_items")
    assert {p.id for p in patches} == cascade
    assert all(p.updates["isTrashed"] is True for p in patches)


async def test_trash_prunes_selection(store):
    store.set_items(_tree())
    store.select_all()
    store.move_to_trash(["f"])
    assert store.selected_ids == {"loose"}


async def test_trash_skips_already_trashed(store, transport):
    items = _tree()
    items[3] = make_item("b", parent_id="sub", trashed=True)
    store.set_items(items)
    store.move_to_trash(["sub"])
    assert store.get_item("b").trashed_at == 900
    await store.flush()
    [patches] = transport.calls_of("update_items")
    assert [p.id for p in patches] == ["sub"]


async def test_trash_nothing_new_sends_nothing(store, transport, sounds):
    store.set_items([make_item("t", trashed=True)])
    assert store.move_to_trash(["t", "ghost"]) == {"t"}
    await store.flush()
    assert transport.calls_of("update_items") == []
    assert sounds.played == []


async def test_trash_failure_reports(store, transport, notifier):
    transport.fail.add("update_items")
    store.set_items(_tree())
    store.move_to_trash(["loose"])
    await store.flush()
    assert store.get_item("loose").is_trashed
    assert notifier.errors == [
        ("Could not move items to the trash. Server unavailable", "Sync Failed"),
    ]


# ─── restore_from_trash ──────────────────────────────────────────

async def test_restore_is_not_cascading(store):
    store.set_items(_tree())
    store.move_to_trash(["f"])
    restored = store.restore_from_trash(["f"])
    assert [item.id for item in restored] == ["f"]
    assert _trashed_ids(store) == {"a", "sub", "b"}
    assert store.get_item("f").trashed_at is None


async def test_restore_child_of_trashed_folder_goes_to_root(store, transport):
    store.set_items(_tree())
    store.move_to_trash(["f"])
    await store.flush()
    [restored] = store.restore_from_trash(["a"])
    assert restored.parent_id is None
    assert restored.position not in {
        i.position for i in store.get_items_by_parent(None) if i.id != "a"
    }
    await store.flush()
    patches = transport.calls_of("update_items")[-1]
    assert patches[0].updates["parentId"] is None
    assert patches[0].updates["isTrashed"] is False


async def test_restore_folder_and_child_together_keeps_parent(store):
    store.set_items(_tree())
    store.move_to_trash(["f"])
    store.restore_from_trash(["f", "a"])
    assert store.get_item("a").parent_id == "f"
    assert not store.get_item("a").is_trashed


async def test_restore_resolves_position_collision(store):
    store.set_items([make_item("old", x=0, y=0)])
    store.move_to_trash(["old"])
    new = store.create_item(ItemType.TEXT, "new")
    assert new.position == GridPosition(x=0, y=0)
    [restored] = store.restore_from_trash(["old"])
    assert restored.position == GridPosition(x=0, y=1)


async def test_restore_batch_gets_distinct_cells(store):
    store.set_items([
        make_item("x", x=0, y=0, trashed=True),
        make_item("y", x=0, y=0, trashed=True),
    ])
    restored = store.restore_from_trash(["x", "y"])
    assert len({item.position for item in restored}) == 2


async def test_restore_ignores_live_items(store, transport):
    store.set_items([make_item("a")])
    assert store.restore_from_trash(["a", "ghost"]) == []
    await store.flush()
    assert transport.calls_of("update_items") == []


# ─── empty_trash ─────────────────────────────────────────────────

async def test_empty_trash(store, transport, sounds):
    store.set_items(_tree())
    store.move_to_trash(["f"])
    store.select_item("b")
    assert store.empty_trash() == 4
    assert [item.id for item in store.items] == ["loose"]
    assert store.selected_ids == set()
    assert sounds.played == [SoundKind.TRASH, SoundKind.EMPTY_TRASH]
    await store.flush()
    assert len(transport.calls_of("empty_trash")) == 1
    assert transport.calls_of("delete_item") == []


async def test_empty_trash_with_nothing_trashed(store, transport):
    store.set_items(_tree())
    assert store.empty_trash() == 0
    await store.flush()
    assert transport.calls_of("empty_trash") == []


async def test_empty_trash_failure_reports(store, transport, notifier):
    transport.fail.add("empty_trash")
    store.set_items([make_item("t", trashed=True)])
    store.empty_trash()
    await store.flush()
    assert store.items == []
    assert notifier.errors == [
        ("Could not empty the trash. Server unavailable", "Empty Trash Failed"),
    ]


# ─── end to end ──────────────────────────────────────────────────

async def test_folder_of_nine_trash_and_restore(store, transport):
    folder = store.create_item(ItemType.FOLDER, "F")
    assert folder.position == GridPosition(x=0, y=0)
    children = [
        store.create_item(ItemType.TEXT, f"note {n}", parent_id=folder.id)
        for n in range(9)
    ]
    assert [c.position.as_tuple() for c in children] == [
        (0, 0), (0, 1), (0, 2), (0, 3), (0, 4), (0, 5), (0, 6), (0, 7), (1, 0),
    ]

    assert len(store.move_to_trash([folder.id])) == 10
    assert store.get_trash_count() == 10
    assert store.get_items_by_parent(None) == []

    store.restore_from_trash([folder.id])
    assert [i.id for i in store.get_items_by_parent(None)] == [folder.id]
    assert store.get_items_by_parent(folder.id) == []
    assert store.get_trash_count() == 9

    await store.flush()
    assert len(transport.calls_of("create_item")) == 10
    trash_call, restore_call = transport.calls_of("update_items")
    assert len(trash_call) == 10
    assert [p.id for p in restore_call] == [folder.id]
