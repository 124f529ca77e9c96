"""Cache Database Manager - async SQLite engine with automatic rollback.

Invariants:
    - Every session auto-rolls-back on exception (no partial commits leak)
    - All SQLAlchemy exceptions mapped to CacheError (core/errors.py)
    - The schema is created on open; the cache has no migrations, a stale
      table is simply overwritten by the next snapshot

Design Decisions:
    - One manager per store, owned by bootstrap.open_desktop() (no module singleton)
    - expire_on_commit=False: prevents lazy-load issues in async context
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncSession, create_async_engine, async_sessionmaker,
)
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from deskstore.core.errors import CacheError
from deskstore.db.base import Base
import deskstore.models  # noqa: F401  (registers tables on Base.metadata)

logger = logging.getLogger(__name__)


class DatabaseSessionManager:
    """Manages async sessions for the local cache database."""

    def __init__(self, database_url: str):
        self.engine = create_async_engine(database_url, echo=False)
        self._session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    async def create_schema(self) -> None:
        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except SQLAlchemyError as e:
            logger.error(f"Cache schema creation failed: {e}")
            raise CacheError(str(e), "create_schema")

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Provide session with auto-rollback on exception."""
        session = self._session_factory()
        try:
            yield session
        except OperationalError as e:
            await session.rollback()
            logger.error(f"Cache operational error: {e}")
            raise CacheError("Connection or operational error", "execute")
        except SQLAlchemyError as e:
            await session.rollback()
            logger.error(f"Cache SQLAlchemy error: {e}")
            raise CacheError("Cache operation failed", "unknown")
        finally:
            await session.close()

    async def dispose(self) -> None:
        await self.engine.dispose()
