# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Async PostgreSQL access for the pointer and token stores (asyncpg).

A :class:`DatabasePool` is built once by the application and handed to each
store's constructor. The underlying asyncpg pool is created lazily on first
use.

Usage:
    pool = DatabasePool.from_config()
    async with pool.transaction() as conn:
        await conn.execute("UPDATE ...")

Pool size is configured via environment variables:
    - BIODID_DB_POOL_MIN: Minimum connections (default: 5)
    - BIODID_DB_POOL_MAX: Maximum connections (default: 20)
    - BIODID_DB_ACQUIRE_TIMEOUT: Seconds to wait for a free connection
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from importlib import resources
from typing import Any

import asyncpg

from ..core.config import CoreSettings, get_config
from ..core.exceptions import BioDIDError, PersistenceError

logger = logging.getLogger(__name__)

SCHEMA_FILE = "schema.sql"
TABLES = frozenset({"identity_documents", "capability_tokens"})


class DatabasePool:
    """Async connection pool manager using asyncpg.

    Every acquire is paired with a release, including when the body raises.
    Acquisition that exceeds ``acquire_timeout`` surfaces as
    :class:`PersistenceError` instead of blocking forever.
    """

    def __init__(
        self,
        connection_params: dict[str, Any],
        *,
        min_size: int = 5,
        max_size: int = 20,
        acquire_timeout: float = 30.0,
    ) -> None:
        self._connection_params = dict(connection_params)
        self._min_size = min_size
        self._max_size = max_size
        self._acquire_timeout = acquire_timeout
        self._pool: Any | None = None
        self._pool_lock = asyncio.Lock()

    @classmethod
    def from_config(cls, config: CoreSettings | None = None) -> DatabasePool:
        """Build a pool from ``BIODID_DB_*`` settings."""
        config = config or get_config()
        return cls(
            config.connection_params,
            acquire_timeout=config.db_acquire_timeout,
            **config.pool_config,
        )

    @property
    def acquire_timeout(self) -> float:
        return self._acquire_timeout

    async def _ensure_pool(self) -> Any:
        """Ensure pool is initialized, creating it if necessary."""
        if self._pool is None:
            async with self._pool_lock:
                if self._pool is None:
                    try:
                        self._pool = await asyncpg.create_pool(
                            min_size=self._min_size,
                            max_size=self._max_size,
                            **self._connection_params,
                        )
                        logger.info(
                            "Async connection pool initialized: min=%d, max=%d",
                            self._min_size,
                            self._max_size,
                        )
                    except (asyncpg.PostgresError, OSError) as e:
                        logger.error("Failed to create async connection pool: %s", e)
                        raise PersistenceError(f"Failed to create async connection pool: {e}") from e
        return self._pool

    async def _acquire(self) -> Any:
        pool = await self._ensure_pool()
        try:
            return await pool.acquire(timeout=self._acquire_timeout)
        except asyncio.TimeoutError as e:
            logger.error("Timed out after %.1fs waiting for a database connection", self._acquire_timeout)
            raise PersistenceError(
                "Connection pool exhausted",
                {"timeout": self._acquire_timeout},
            ) from e
        except (asyncpg.PostgresError, OSError) as e:
            logger.error("Database error: %s", e)
            raise PersistenceError(f"Database error: {e}") from e

    async def _release(self, conn: Any) -> None:
        if self._pool is not None and conn is not None:
            try:
                await self._pool.release(conn)
            except (asyncpg.InterfaceError, OSError) as e:
                logger.warning("Error returning connection to pool: %s", e)
                conn.terminate()

    @asynccontextmanager
    async def connection(self) -> AsyncGenerator[Any, None]:
        """Async context manager for a pooled connection, without a transaction.

        Raises:
            PersistenceError: On database errors
        """
        conn = await self._acquire()
        try:
            yield conn
        except BioDIDError:
            raise
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as e:
            logger.error("Database error: %s", e)
            raise PersistenceError(f"Database error: {e}") from e
        finally:
            await self._release(conn)

    @asynccontextmanager
    async def transaction(self) -> AsyncGenerator[Any, None]:
        """Async context manager yielding a connection inside a transaction.

        Usage:
            async with pool.transaction() as conn:
                row = await conn.fetchrow("SELECT ...")

        Raises:
            PersistenceError: On database errors
        """
        async with self.connection() as conn:
            async with conn.transaction():
                yield conn

    async def close(self) -> None:
        """Close all connections in the pool."""
        async with self._pool_lock:
            if self._pool is not None:
                await self._pool.close()
                self._pool = None
                logger.info("Async connection pool closed")

    def get_stats(self) -> dict[str, Any]:
        """Get pool statistics."""
        stats: dict[str, Any] = {
            "initialized": self._pool is not None,
            "min_connections": self._min_size,
            "max_connections": self._max_size,
        }
        if self._pool is not None:
            stats["size"] = self._pool.get_size()
            stats["free_size"] = self._pool.get_idle_size()
        return stats


# =============================================================================
# Utility Functions
# =============================================================================


def load_schema_sql() -> str:
    """Return the bundled DDL for the pointer and token tables."""
    return resources.files(__package__).joinpath(SCHEMA_FILE).read_text(encoding="utf-8")


async def init_schema(pool: DatabasePool, schema_sql: str | None = None) -> None:
    """Create the pointer and token tables if they do not exist.

    Raises:
        PersistenceError: If schema initialization fails
    """
    raw_sql = schema_sql if schema_sql is not None else load_schema_sql()
    async with pool.transaction() as conn:
        await conn.execute(raw_sql)
    logger.info("Database schema initialized")


async def check_connection(pool: DatabasePool) -> bool:
    """Check if the database connection is working."""
    try:
        async with pool.connection() as conn:
            await conn.fetchval("SELECT 1")
            return True
    except PersistenceError as e:
        logger.debug("Database connection check failed: %s", e)
        return False


async def table_exists(pool: DatabasePool, table_name: str) -> bool:
    """Check if one of the biodid tables exists.

    Raises:
        ValueError: If ``table_name`` is not a biodid table
        PersistenceError: If query fails
    """
    if table_name not in TABLES:
        raise ValueError(f"Table not in allowlist: {table_name}. Valid tables: {', '.join(sorted(TABLES))}")

    async with pool.connection() as conn:
        exists = await conn.fetchval(
            """
            SELECT EXISTS (
                SELECT FROM information_schema.tables
                WHERE table_name = $1
            )
        """,
            table_name,
        )
        return exists or False
