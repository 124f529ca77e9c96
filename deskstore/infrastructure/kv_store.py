"""SQL Key/Value Store - durable KeyValueStore backed by the cache_entries table.

Invariants:
    - set() is an upsert: the latest value for a key wins
    - Storage failures surface as CacheError; callers decide whether to swallow
"""

from deskstore.infrastructure.database import DatabaseSessionManager
from deskstore.models.cache_entry import CacheEntry


class SqlKeyValueStore:
    """KeyValueStore implementation over SQLAlchemy async sessions."""

    def __init__(self, db: DatabaseSessionManager):
        self._db = db

    async def get(self, key: str) -> str | None:
        async with self._db.session() as session:
            entry = await session.get(CacheEntry, key)
            return entry.value if entry is not None else None

    async def set(self, key: str, value: str) -> None:
        async with self._db.session() as session:
            await session.merge(CacheEntry(key=key, value=value))
            await session.commit()


class MemoryKeyValueStore:
    """Process-local KeyValueStore, used when no cache database is wanted."""

    def __init__(self, initial: dict[str, str] | None = None):
        self.data: dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> str | None:
        return self.data.get(key)

    async def set(self, key: str, value: str) -> None:
        self.data[key] = value
