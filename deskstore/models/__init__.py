"""ORM Models - SQLAlchemy declarative models for the local cache database.

Design Decisions:
    - Imported here so Base.metadata knows every table before create_all runs
"""

from deskstore.models.cache_entry import CacheEntry  # noqa: F401
