"""Local Cache - durable item snapshot and per-container sort preferences.

Invariants:
    - The snapshot is the full item collection as a JSON list of wire dicts,
      stored under DESKTOP_CACHE_KEY; read once at startup
    - Snapshot writes are debounced on their own key (CACHE_DEBOUNCE_KEY),
      independent of the remote position debounce
    - Empty, corrupt or unreadable snapshots read as None
    - CacheError / PreferenceStorageError never propagate past this module:
      durability degrades to "no instant reload", the caller's operation proceeds

Design Decisions:
    - Storage reached through the KeyValueStore protocol: SQLite in production,
      a dict in offline mode and tests
    - Sort preferences held in memory after load(); get() is synchronous so
      the store's read side never awaits storage
"""

import json
import logging
from collections.abc import Sequence

from pydantic import ValidationError as PydanticValidationError

from deskstore.core.collaborator_protocols import KeyValueStore
from deskstore.core.domain_types import SortKey, container_key
from deskstore.core.errors import CacheError, PreferenceStorageError
from deskstore.schemas.item import DesktopItem
from deskstore.services.sync_scheduler import SyncScheduler

logger = logging.getLogger(__name__)

DESKTOP_CACHE_KEY = "deskstore-desktop-cache"
SORT_PREFERENCES_KEY = "deskstore-sort-preferences"
CACHE_DEBOUNCE_KEY = "cache"


class LocalCache:
    """Debounced write-through snapshot of the item collection."""

    def __init__(
        self,
        kv: KeyValueStore,
        scheduler: SyncScheduler,
        debounce_seconds: float = 1.0,
    ):
        self._kv = kv
        self._scheduler = scheduler
        self._debounce_seconds = debounce_seconds

    async def read_items(self) -> list[DesktopItem] | None:
        """Cached collection, or None when there is nothing usable."""
        try:
            raw = await self._kv.get(DESKTOP_CACHE_KEY)
        except CacheError as e:
            logger.warning(f"Cache read failed: {e.message}", extra={"operation": "cache_read"})
            return None
        if not raw:
            return None
        try:
            data = json.loads(raw)
            if not isinstance(data, list) or not data:
                return None
            return [DesktopItem.model_validate(entry) for entry in data]
        except (ValueError, PydanticValidationError) as e:
            logger.warning(f"Ignoring corrupt cache snapshot: {e}", extra={"operation": "cache_read"})
            return None

    async def write_items(self, items: Sequence[DesktopItem]) -> None:
        """Persist the snapshot now. Storage failures are logged, not raised."""
        payload = json.dumps([item.to_wire() for item in items], ensure_ascii=False)
        try:
            await self._kv.set(DESKTOP_CACHE_KEY, payload)
        except CacheError as e:
            logger.warning(f"Cache write failed: {e.message}", extra={"operation": "cache_write"})

    def schedule_write(self, items: Sequence[DesktopItem]) -> None:
        """Coalesce snapshot writes; the latest collection wins."""
        snapshot = list(items)
        self._scheduler.debounce(
            CACHE_DEBOUNCE_KEY, self._debounce_seconds, "cache_write",
            lambda: self.write_items(snapshot),
        )


class SortPreferences:
    """Per-container sort order the user last chose (read side only)."""

    def __init__(self, kv: KeyValueStore, scheduler: SyncScheduler):
        self._kv = kv
        self._scheduler = scheduler
        self._prefs: dict[str, dict] = {}

    async def load(self) -> None:
        try:
            raw = await self._kv.get(SORT_PREFERENCES_KEY)
        except CacheError as e:
            logger.warning(f"Sort preferences read failed: {e.message}")
            return
        if not raw:
            return
        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning("Ignoring corrupt sort preferences")
            return
        if isinstance(data, dict):
            self._prefs = {k: v for k, v in data.items() if isinstance(v, dict)}

    def get(self, container_id: str | None) -> SortKey | None:
        entry = self._prefs.get(container_key(container_id), {})
        try:
            return SortKey(entry["sortOrder"])
        except (KeyError, ValueError):
            return None

    def set(self, container_id: str | None, key: SortKey) -> None:
        self._prefs[container_key(container_id)] = {"sortOrder": SortKey(key).value}
        snapshot = json.dumps(self._prefs)
        self._scheduler.submit(
            "sort_preference_write", lambda: self._persist(snapshot),
        )

    def as_dict(self) -> dict[str, dict]:
        return dict(self._prefs)

    async def _persist(self, payload: str) -> None:
        try:
            await self._kv.set(SORT_PREFERENCES_KEY, payload)
        except CacheError as e:
            err = PreferenceStorageError(e.message, "write")
            logger.warning(err.message, extra={"error_code": err.code})
