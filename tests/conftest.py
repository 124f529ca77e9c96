"""Root conftest - shared test configuration.

Invariants:
    - Tests never talk to a real desktop API or write a cache file in the cwd
    - Debounce windows are shortened so timer-driven tests finish quickly
"""

import os

import pytest

from deskstore.config import Settings

os.environ.setdefault("DESKSTORE_API_TOKEN", "test-token")


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        api_url="http://desktop.test",
        cache_url="sqlite+aiosqlite:///:memory:",
        position_debounce_ms=20,
        cache_debounce_ms=40,
        upload_clear_after_ms=50,
    )


@pytest.fixture
def offline_settings():
    return Settings(_env_file=None, api_url="", cache_url="sqlite+aiosqlite:///:memory:")
