"""Service test fixtures - an online ItemStore wired to fakes.

Invariants:
    - Every test gets a fresh scheduler, in-memory key/value store and transport
    - The store is closed (pending writes flushed, tasks cancelled) after each test
    - offline_store has no transport and no cache, like a session without an API

Design Decisions:
    - MemoryKeyValueStore instead of SQLite here: cache semantics are covered
      against SQLite in test_local_cache.py
"""

import pytest

from deskstore.infrastructure.kv_store import MemoryKeyValueStore
from deskstore.services.item_store import ItemStore
from deskstore.services.local_cache import LocalCache, SortPreferences
from deskstore.services.sync_scheduler import SyncScheduler

from tests.services.fake_transport import (
    FakeTransport, RecordingNotifier, RecordingSounds,
)


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def sounds():
    return RecordingSounds()


@pytest.fixture
def kv():
    return MemoryKeyValueStore()


@pytest.fixture
def scheduler():
    return SyncScheduler()


def build_store(settings, scheduler, kv, notifier, sounds, transport, items=()):
    return ItemStore(
        settings=settings,
        scheduler=scheduler,
        preferences=SortPreferences(kv, scheduler),
        notifier=notifier,
        sounds=sounds,
        transport=transport,
        cache=LocalCache(kv, scheduler, settings.cache_debounce_ms / 1000),
        items=items,
    )


@pytest.fixture
async def store(settings, scheduler, kv, notifier, sounds, transport):
    s = build_store(settings, scheduler, kv, notifier, sounds, transport)
    yield s
    await s.aclose()


@pytest.fixture
async def offline_store(offline_settings, scheduler, kv, notifier, sounds):
    s = ItemStore(
        settings=offline_settings,
        scheduler=scheduler,
        preferences=SortPreferences(kv, scheduler),
        notifier=notifier,
        sounds=sounds,
    )
    yield s
    await s.aclose()


@pytest.fixture
async def store_factory(scheduler, kv, notifier, sounds, transport):
    """Build extra stores with custom settings; all are closed after the test."""
    built = []

    def factory(settings, items=()):
        s = build_store(settings, scheduler, kv, notifier, sounds, transport, items)
        built.append(s)
        return s

    yield factory
    for s in built:
        await s.aclose()
