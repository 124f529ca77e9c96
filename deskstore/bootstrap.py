"""Bootstrap - builds the one ItemStore of a session and tears it down at exit.

Invariants:
    - The local cache is read exactly once, before the store exists, so the first
      paint uses cached items while load_desktop() is still in flight
    - Offline mode (no api_url): demo items, in-memory sort preferences, no cache
    - On exit every pending write is flushed before the transport and the cache
      database are closed

Design Decisions:
    - Async context manager instead of a module-level store: the caller owns the
      lifetime and passes the store to whoever needs it
    - Collaborators are injectable for hosts and tests; defaults are the httpx
      client, the SQLite cache, a logging notifier and a silent sound player
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from deskstore.config import Settings, get_settings
from deskstore.core.collaborator_protocols import (
    DesktopTransport, KeyValueStore, Notifier, SoundPlayer,
)
from deskstore.core.demo_items import demo_items
from deskstore.core.domain_types import now_ms
from deskstore.core.errors import CacheError
from deskstore.infrastructure.api_client import DesktopApiClient
from deskstore.infrastructure.database import DatabaseSessionManager
from deskstore.infrastructure.kv_store import MemoryKeyValueStore, SqlKeyValueStore
from deskstore.infrastructure.notifiers import LoggingNotifier, SilentSoundPlayer
from deskstore.infrastructure.observability import setup_logging
from deskstore.services.item_store import ItemStore
from deskstore.services.local_cache import LocalCache, SortPreferences
from deskstore.services.sync_scheduler import SyncScheduler

logger = logging.getLogger(__name__)


async def _open_cache_db(settings: Settings) -> DatabaseSessionManager | None:
    db = DatabaseSessionManager(settings.cache_url)
    try:
        await db.create_schema()
    except CacheError as e:
        logger.warning(f"Local cache unavailable: {e.message}")
        await db.dispose()
        return None
    return db


@asynccontextmanager
async def open_desktop(
    settings: Settings | None = None,
    *,
    transport: DesktopTransport | None = None,
    kv_store: KeyValueStore | None = None,
    notifier: Notifier | None = None,
    sounds: SoundPlayer | None = None,
    configure_logging: bool = False,
) -> AsyncGenerator[ItemStore, None]:
    """Construct the store, seed it from the cache, and close it on exit."""
    settings = settings or get_settings()
    if configure_logging:
        setup_logging(settings.log_level, settings.log_format)

    scheduler = SyncScheduler()
    owned_client: DesktopApiClient | None = None
    db: DatabaseSessionManager | None = None

    if settings.network_enabled and transport is None:
        owned_client = DesktopApiClient(
            settings.api_url, settings.api_token, settings.request_timeout_seconds,
        )
        transport = owned_client

    cache: LocalCache | None = None
    if settings.network_enabled:
        if kv_store is None:
            db = await _open_cache_db(settings)
            kv_store = SqlKeyValueStore(db) if db is not None else MemoryKeyValueStore()
        cache = LocalCache(kv_store, scheduler, settings.cache_debounce_ms / 1000)
        items = await cache.read_items() or []
    else:
        transport = None
        kv_store = kv_store or MemoryKeyValueStore()
        items = demo_items(now_ms())

    preferences = SortPreferences(kv_store, scheduler)
    await preferences.load()

    store = ItemStore(
        settings=settings,
        scheduler=scheduler,
        preferences=preferences,
        notifier=notifier or LoggingNotifier(),
        sounds=sounds or SilentSoundPlayer(),
        transport=transport,
        cache=cache,
        items=items,
    )
    logger.info(
        "Desktop store opened",
        extra={"count": len(items), "operation": "online" if transport else "offline"},
    )
    try:
        yield store
    finally:
        await store.aclose()
        if owned_client is not None:
            await owned_client.aclose()
        if db is not None:
            await db.dispose()
        logger.info("Desktop store closed")
