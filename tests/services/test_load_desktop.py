"""Item Store load - tests for replacing local state with server truth.

Tests cover:
    - a successful fetch replaces items and writes the cache
    - loading is only shown when there was nothing to show
    - a failed fetch with cached items is silent; without them it notifies
    - offline stores never fetch
"""

import asyncio
import json

from deskstore.schemas.sync import DesktopResponse
from deskstore.services.local_cache import DESKTOP_CACHE_KEY

from tests.item_factory import make_item


async def test_load_replaces_items_and_caches(store, transport, kv):
    store.set_items([make_item("stale")])
    store.select_item("stale")
    transport.desktop = DesktopResponse(items=[make_item("fresh")])
    assert await store.load_desktop() is True
    assert [i.id for i in store.items] == ["fresh"]
    assert store.selected_ids == set()
    assert store.loading is False
    await store.flush()
    assert [e["id"] for e in json.loads(kv.data[DESKTOP_CACHE_KEY])] == ["fresh"]


async def test_loading_flag_while_fetching_empty_store(store, transport):
    transport.gate = asyncio.Event()
    task = asyncio.create_task(store.load_desktop())
    await asyncio.sleep(0)
    assert store.loading is True
    transport.gate.set()
    await task
    assert store.loading is False


async def test_loading_flag_not_set_with_cached_items(store, transport):
    store.set_items([make_item("cached")])
    transport.gate = asyncio.Event()
    task = asyncio.create_task(store.load_desktop())
    await asyncio.sleep(0)
    assert store.loading is False
    transport.gate.set()
    await task


async def test_failed_load_without_cache_notifies(store, transport, notifier):
    transport.fail.add("fetch_desktop")
    assert await store.load_desktop() is False
    assert store.loading is False
    assert notifier.errors == [
        ("Could not load your desktop. Server unavailable", "Loading Failed"),
    ]


async def test_failed_load_with_cache_is_silent(store, transport, notifier):
    store.set_items([make_item("cached")])
    transport.fail.add("fetch_desktop")
    assert await store.load_desktop() is False
    assert [i.id for i in store.items] == ["cached"]
    assert notifier.errors == []


async def test_offline_load_is_noop(offline_store):
    assert await offline_store.load_desktop() is True
    assert offline_store.items == []
