"""CacheEntry ORM - one durable key/value pair of the local cache.

Invariants:
    - key is the primary key; writes replace the previous value
    - value is an opaque JSON string, decoded by services/local_cache.py
"""

from datetime import datetime, timezone

from sqlalchemy import String, Text, DateTime
from sqlalchemy.orm import Mapped, mapped_column

from deskstore.db.base import Base


class CacheEntry(Base):
    """Key/value row backing the item snapshot and sort preferences."""
    __tablename__ = "cache_entries"

    key: Mapped[str] = mapped_column(String(200), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
