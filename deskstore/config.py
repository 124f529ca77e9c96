"""Application Configuration - environment-driven settings via pydantic-settings.

Invariants:
    - The API token comes from the environment (never hardcoded)
    - get_settings() is cached (lru_cache) - single instance per process
    - Empty api_url means offline (demo) mode: no remote calls, no local cache

Design Decisions:
    - pydantic-settings over raw os.environ: validation, type coercion, .env file support
    - DESKSTORE_ prefix so the store can live inside a larger application's environment
"""

from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Desktop store settings from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env", env_prefix="DESKSTORE_", case_sensitive=False,
        extra="ignore",
    )

    # Remote desktop API
    api_url: str = ""
    api_token: str | None = None
    request_timeout_seconds: float = 30.0

    # Local cache
    cache_url: str = "sqlite+aiosqlite:///deskstore-cache.db"

    @field_validator("cache_url", mode="before")
    @classmethod
    def use_async_sqlite_driver(cls, v: str) -> str:
        """Plain sqlite:// URLs need the aiosqlite driver for the async engine."""
        if isinstance(v, str) and v.startswith("sqlite://"):
            return v.replace("sqlite://", "sqlite+aiosqlite://", 1)
        return v

    @field_validator("api_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    # Debounce windows
    position_debounce_ms: int = 500
    cache_debounce_ms: int = 1000

    # Uploads
    upload_max_bytes: int = 10 * 1024 * 1024
    upload_clear_after_ms: int = 3000

    # Layout
    grid_rows_per_column: int = 8

    # Observability
    log_level: str = "INFO"
    log_format: str = "json"

    @property
    def network_enabled(self) -> bool:
        return bool(self.api_url)


@lru_cache
def get_settings() -> Settings:
    return Settings()
