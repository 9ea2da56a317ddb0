"""Global test fixtures for the biodid test suite."""

from __future__ import annotations

import asyncio
import os
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from biodid.core.config import clear_config_cache

# ============================================================================
# PostgreSQL Availability Detection
# ============================================================================


def _check_postgres_available() -> tuple[bool, str | None]:
    """Check if PostgreSQL is available for integration tests.

    Returns:
        Tuple of (is_available, error_message)
    """
    import asyncpg

    params = {
        "host": os.environ.get("BIODID_DB_HOST", "localhost"),
        "port": int(os.environ.get("BIODID_DB_PORT", "5432")),
        "database": os.environ.get("BIODID_DB_NAME", "biodid"),
        "user": os.environ.get("BIODID_DB_USER", "biodid"),
        "password": os.environ.get("BIODID_DB_PASSWORD", ""),
    }

    async def _connect_once() -> None:
        conn = await asyncpg.connect(timeout=3, **params)
        await conn.close()

    try:
        asyncio.run(_connect_once())
        return True, None
    except (OSError, asyncio.TimeoutError, asyncpg.PostgresError) as e:
        return False, f"PostgreSQL connection failed: {e}"


# Only try to connect when explicitly requested so unit runs stay offline
if os.environ.get("BIODID_TEST_POSTGRES"):
    POSTGRES_AVAILABLE, POSTGRES_ERROR = _check_postgres_available()
else:
    POSTGRES_AVAILABLE, POSTGRES_ERROR = False, "BIODID_TEST_POSTGRES not set"


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "requires_postgres: mark test as requiring a real PostgreSQL database")


def pytest_collection_modifyitems(config, items):
    """Skip tests that require PostgreSQL when no database is available."""
    if POSTGRES_AVAILABLE:
        return

    skip_postgres = pytest.mark.skip(reason=f"PostgreSQL not available: {POSTGRES_ERROR}")
    for item in items:
        if "requires_postgres" in item.keywords:
            item.add_marker(skip_postgres)


# ============================================================================
# Environment Fixtures
# ============================================================================


@pytest.fixture
def clean_env(monkeypatch):
    """Remove all BIODID_ environment variables."""
    for key in list(os.environ.keys()):
        if key.startswith("BIODID_"):
            monkeypatch.delenv(key, raising=False)
    clear_config_cache()
    yield
    clear_config_cache()


@pytest.fixture(autouse=True)
def reset_config():
    """Drop the cached config around every test."""
    clear_config_cache()
    yield
    clear_config_cache()


# ============================================================================
# Clock
# ============================================================================


class FakeClock:
    """Deterministic clock for expiry and timestamp tests."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 3, 1, 12, 0, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float = 0, **kwargs) -> None:
        self.now = self.now + timedelta(seconds=seconds, **kwargs)


@pytest.fixture
def clock():
    return FakeClock()


# ============================================================================
# Database Mocking Fixtures (asyncpg)
# ============================================================================


@pytest.fixture
def mock_asyncpg():
    """Mock asyncpg.create_pool for pool and store tests."""
    with patch("biodid.storage.db.asyncpg.create_pool") as mock_create_pool:
        mock_pool = MagicMock()
        mock_connection = AsyncMock()
        mock_transaction = AsyncMock()

        mock_create_pool.side_effect = AsyncMock(return_value=mock_pool)
        mock_pool.acquire = AsyncMock(return_value=mock_connection)
        mock_pool.release = AsyncMock()
        mock_pool.close = AsyncMock()
        mock_pool.get_size.return_value = 5
        mock_pool.get_idle_size.return_value = 4

        mock_connection.fetch = AsyncMock(return_value=[])
        mock_connection.fetchrow = AsyncMock(return_value=None)
        mock_connection.fetchval = AsyncMock(return_value=None)
        mock_connection.execute = AsyncMock(return_value="")

        # conn.transaction() is a sync call returning an async context manager
        mock_transaction.__aenter__ = AsyncMock(return_value=mock_transaction)
        mock_transaction.__aexit__ = AsyncMock(return_value=None)
        mock_connection.transaction = MagicMock(return_value=mock_transaction)

        yield {
            "create_pool": mock_create_pool,
            "pool": mock_pool,
            "connection": mock_connection,
            "transaction": mock_transaction,
        }


@pytest.fixture
def db_pool(mock_asyncpg):
    """DatabasePool wired to the mocked asyncpg pool."""
    from biodid.storage.db import DatabasePool

    return DatabasePool({"host": "localhost", "database": "biodid_test"}, min_size=1, max_size=2)
