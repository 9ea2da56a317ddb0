"""Tests for biodid.storage.db - asyncpg pool management and schema helpers."""

from __future__ import annotations

import asyncio

import asyncpg
import pytest

from biodid.core.config import CoreSettings
from biodid.core.exceptions import NotFoundError, PersistenceError
from biodid.storage.db import (
    TABLES,
    DatabasePool,
    check_connection,
    init_schema,
    load_schema_sql,
    table_exists,
)

# ============================================================================
# Pool lifecycle
# ============================================================================


@pytest.mark.asyncio
class TestDatabasePool:
    async def test_pool_created_lazily(self, db_pool, mock_asyncpg):
        assert db_pool.get_stats()["initialized"] is False
        mock_asyncpg["create_pool"].assert_not_called()

        async with db_pool.connection():
            pass

        mock_asyncpg["create_pool"].assert_called_once()
        kwargs = mock_asyncpg["create_pool"].call_args.kwargs
        assert kwargs["min_size"] == 1
        assert kwargs["max_size"] == 2
        assert kwargs["database"] == "biodid_test"

    async def test_pool_created_once(self, db_pool, mock_asyncpg):
        async with db_pool.connection():
            pass
        async with db_pool.connection():
            pass

        mock_asyncpg["create_pool"].assert_called_once()

    async def test_connection_released(self, db_pool, mock_asyncpg):
        async with db_pool.connection() as conn:
            assert conn is mock_asyncpg["connection"]

        mock_asyncpg["pool"].release.assert_awaited_once_with(mock_asyncpg["connection"])

    async def test_connection_released_on_error(self, db_pool, mock_asyncpg):
        with pytest.raises(NotFoundError):
            async with db_pool.connection():
                raise NotFoundError("Token", "t1")

        mock_asyncpg["pool"].release.assert_awaited_once()

    async def test_postgres_error_wrapped(self, db_pool, mock_asyncpg):
        with pytest.raises(PersistenceError, match="Database error"):
            async with db_pool.connection():
                raise asyncpg.PostgresError("syntax error")

        mock_asyncpg["pool"].release.assert_awaited_once()

    async def test_acquire_timeout_becomes_pool_exhausted(self, db_pool, mock_asyncpg):
        mock_asyncpg["pool"].acquire.side_effect = asyncio.TimeoutError()

        with pytest.raises(PersistenceError, match="Connection pool exhausted") as exc_info:
            async with db_pool.connection():
                pass

        assert exc_info.value.details == {"timeout": db_pool.acquire_timeout}
        mock_asyncpg["pool"].release.assert_not_awaited()

    async def test_acquire_passes_timeout(self, mock_asyncpg):
        pool = DatabasePool({"host": "localhost"}, acquire_timeout=2.5)

        async with pool.connection():
            pass

        mock_asyncpg["pool"].acquire.assert_awaited_once_with(timeout=2.5)

    async def test_create_pool_failure(self, db_pool, mock_asyncpg):
        mock_asyncpg["create_pool"].side_effect = OSError("connection refused")

        with pytest.raises(PersistenceError, match="connection refused"):
            async with db_pool.connection():
                pass

    async def test_transaction_wraps_connection(self, db_pool, mock_asyncpg):
        async with db_pool.transaction() as conn:
            await conn.execute("SELECT 1")

        mock_asyncpg["connection"].transaction.assert_called_once()
        mock_asyncpg["transaction"].__aenter__.assert_awaited_once()
        mock_asyncpg["transaction"].__aexit__.assert_awaited_once()
        mock_asyncpg["pool"].release.assert_awaited_once()

    async def test_close(self, db_pool, mock_asyncpg):
        async with db_pool.connection():
            pass

        await db_pool.close()

        mock_asyncpg["pool"].close.assert_awaited_once()
        assert db_pool.get_stats()["initialized"] is False

    async def test_stats_after_init(self, db_pool, mock_asyncpg):
        async with db_pool.connection():
            pass

        stats = db_pool.get_stats()

        assert stats["size"] == 5
        assert stats["free_size"] == 4
        assert stats["max_connections"] == 2


class TestFromConfig:
    def test_uses_settings(self, clean_env):
        config = CoreSettings(db_host="pg", db_pool_min=3, db_pool_max=9, db_acquire_timeout=4.0)

        pool = DatabasePool.from_config(config)
        stats = pool.get_stats()

        assert stats["min_connections"] == 3
        assert stats["max_connections"] == 9
        assert pool.acquire_timeout == 4.0


# ============================================================================
# Schema helpers
# ============================================================================


class TestLoadSchema:
    def test_bundled_schema_defines_tables(self):
        sql = load_schema_sql()

        for table in TABLES:
            assert f"CREATE TABLE IF NOT EXISTS {table}" in sql

    def test_token_expiry_constraint(self):
        assert "expires_at > issued_at" in load_schema_sql()


@pytest.mark.asyncio
class TestSchemaHelpers:
    async def test_init_schema_executes_in_transaction(self, db_pool, mock_asyncpg):
        await init_schema(db_pool, "CREATE TABLE t (id int);")

        mock_asyncpg["connection"].execute.assert_awaited_once_with("CREATE TABLE t (id int);")
        mock_asyncpg["connection"].transaction.assert_called_once()

    async def test_init_schema_defaults_to_bundled_sql(self, db_pool, mock_asyncpg):
        await init_schema(db_pool)

        executed = mock_asyncpg["connection"].execute.call_args.args[0]
        assert "identity_documents" in executed

    async def test_check_connection_ok(self, db_pool, mock_asyncpg):
        mock_asyncpg["connection"].fetchval.return_value = 1

        assert await check_connection(db_pool) is True

    async def test_check_connection_failure(self, db_pool, mock_asyncpg):
        mock_asyncpg["pool"].acquire.side_effect = asyncio.TimeoutError()

        assert await check_connection(db_pool) is False

    async def test_table_exists(self, db_pool, mock_asyncpg):
        mock_asyncpg["connection"].fetchval.return_value = True

        assert await table_exists(db_pool, "capability_tokens") is True
        assert mock_asyncpg["connection"].fetchval.call_args.args[1] == "capability_tokens"

    async def test_table_exists_rejects_unknown_table(self, db_pool):
        with pytest.raises(ValueError, match="allowlist"):
            await table_exists(db_pool, "users; DROP TABLE users")
