# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Persistence for capability token rows.

Rows are never deleted; revocation is the only mutation.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime

import asyncpg

from ..core.exceptions import DuplicateRecordError
from ..storage.db import DatabasePool
from .model import TokenRecord

logger = logging.getLogger(__name__)

_COLUMNS = "token_id, owner_user_id, token, audience, issued_at, expires_at, revoked, revoked_at, delegated_from"


class TokenStore:
    """Abstract interface for token persistence.

    Implementations can use different backends:
    - In-memory (for testing)
    - PostgreSQL (for production)
    """

    async def save(self, record: TokenRecord) -> None:
        """Persist a newly issued token.

        Raises:
            DuplicateRecordError: If a row with the same token id exists
            PersistenceError: On any other store failure
        """
        raise NotImplementedError

    async def get(self, token_id: str) -> TokenRecord | None:
        """Retrieve a token row by id."""
        raise NotImplementedError

    async def get_owned(self, token_id: str, owner_user_id: int) -> TokenRecord | None:
        """Retrieve a token row only if ``owner_user_id`` owns it."""
        raise NotImplementedError

    async def mark_revoked(self, token_id: str, revoked_at: datetime) -> bool:
        """Mark a token as revoked.

        Revocation is immutable: an already revoked row keeps its original
        ``revoked_at``.

        Returns:
            True if the row transitioned to revoked, False if it was already
            revoked or does not exist
        """
        raise NotImplementedError

    async def list_delegated_from(self, issuer: str) -> list[TokenRecord]:
        """List tokens delegated from tokens issued by ``issuer``."""
        raise NotImplementedError


class InMemoryTokenStore(TokenStore):
    """In-memory token store for testing."""

    def __init__(self) -> None:
        self._records: dict[str, TokenRecord] = {}

    async def save(self, record: TokenRecord) -> None:
        if record.token_id in self._records:
            raise DuplicateRecordError(f"Token {record.token_id} already exists", existing_id=record.token_id)
        self._records[record.token_id] = replace(record)

    async def get(self, token_id: str) -> TokenRecord | None:
        record = self._records.get(token_id)
        return replace(record) if record else None

    async def get_owned(self, token_id: str, owner_user_id: int) -> TokenRecord | None:
        record = self._records.get(token_id)
        if record is None or record.owner_user_id != owner_user_id:
            return None
        return replace(record)

    async def mark_revoked(self, token_id: str, revoked_at: datetime) -> bool:
        record = self._records.get(token_id)
        if record is None or record.revoked:
            return False
        record.revoked = True
        record.revoked_at = revoked_at
        return True

    async def list_delegated_from(self, issuer: str) -> list[TokenRecord]:
        return [replace(r) for r in self._records.values() if r.delegated_from == issuer]

    def __len__(self) -> int:
        return len(self._records)


class PostgresTokenStore(TokenStore):
    """:class:`TokenStore` backed by the ``capability_tokens`` table."""

    def __init__(self, pool: DatabasePool) -> None:
        self._pool = pool

    async def save(self, record: TokenRecord) -> None:
        async with self._pool.connection() as conn:
            try:
                await conn.execute(
                    f"""
                    INSERT INTO capability_tokens ({_COLUMNS})
                    VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
                    """,  # noqa: S608
                    record.token_id,
                    record.owner_user_id,
                    record.token,
                    record.audience,
                    record.issued_at,
                    record.expires_at,
                    record.revoked,
                    record.revoked_at,
                    record.delegated_from,
                )
            except asyncpg.UniqueViolationError as e:
                logger.warning("Duplicate token id on insert: %s", record.token_id)
                raise DuplicateRecordError(
                    f"Token {record.token_id} already exists",
                    existing_id=record.token_id,
                ) from e

    async def get(self, token_id: str) -> TokenRecord | None:
        async with self._pool.connection() as conn:
            row = await conn.fetchrow(
                f"SELECT {_COLUMNS} FROM capability_tokens WHERE token_id = $1",  # noqa: S608
                token_id,
            )
        return TokenRecord.from_row(row) if row else None

    async def get_owned(self, token_id: str, owner_user_id: int) -> TokenRecord | None:
        async with self._pool.connection() as conn:
            row = await conn.fetchrow(
                f"SELECT {_COLUMNS} FROM capability_tokens WHERE token_id = $1 AND owner_user_id = $2",  # noqa: S608
                token_id,
                owner_user_id,
            )
        return TokenRecord.from_row(row) if row else None

    async def mark_revoked(self, token_id: str, revoked_at: datetime) -> bool:
        async with self._pool.connection() as conn:
            status = await conn.execute(
                """
                UPDATE capability_tokens
                SET revoked = TRUE, revoked_at = $2
                WHERE token_id = $1 AND NOT revoked
                """,
                token_id,
                revoked_at,
            )
        return status.split()[-1] == "1"

    async def list_delegated_from(self, issuer: str) -> list[TokenRecord]:
        async with self._pool.connection() as conn:
            rows = await conn.fetch(
                f"SELECT {_COLUMNS} FROM capability_tokens WHERE delegated_from = $1 ORDER BY issued_at",  # noqa: S608
                issuer,
            )
        return [TokenRecord.from_row(row) for row in rows]
