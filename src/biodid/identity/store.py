# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Pointer rows mapping identity ids to the content address of their
current document.

Storage is pluggable: the in-memory backend is suitable for tests, the
PostgreSQL backend takes a :class:`~biodid.storage.db.DatabasePool`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol

import asyncpg

from ..core.exceptions import DuplicateRecordError
from ..storage.db import DatabasePool

logger = logging.getLogger(__name__)


@dataclass
class IdentityPointerRecord:
    """Row pointing an identity at its current document."""

    identity_id: str
    content_address: str
    owner_user_id: int
    created_at: datetime
    updated_at: datetime
    external_link: str | None = None

    @classmethod
    def from_row(cls, row: Any) -> IdentityPointerRecord:
        return cls(
            identity_id=row["identity_id"],
            content_address=row["content_address"],
            owner_user_id=row["owner_user_id"],
            external_link=row["external_link"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )


# ---------------------------------------------------------------------------
# Storage protocol
# ---------------------------------------------------------------------------


class IdentityStore(Protocol):
    """Persistence for identity pointer rows."""

    async def insert(self, record: IdentityPointerRecord) -> None:
        """Insert a new pointer row.

        Raises:
            DuplicateRecordError: If a row for the identity id already exists
            PersistenceError: On any other store failure
        """
        ...

    async def get(self, identity_id: str) -> IdentityPointerRecord | None: ...

    async def compare_and_swap(
        self,
        identity_id: str,
        expected_address: str,
        new_address: str,
        updated_at: datetime,
        external_link: str | None = None,
    ) -> bool:
        """Point ``identity_id`` at ``new_address`` if it still points at
        ``expected_address``, in a single statement.

        ``external_link`` is written alongside when given. Returns False
        (and changes nothing) if the pointer has moved.
        """
        ...


# ---------------------------------------------------------------------------
# In-memory store (default / tests)
# ---------------------------------------------------------------------------


class InMemoryIdentityStore:
    """Simple in-memory implementation of :class:`IdentityStore`."""

    def __init__(self) -> None:
        self._records: dict[str, IdentityPointerRecord] = {}

    async def insert(self, record: IdentityPointerRecord) -> None:
        if record.identity_id in self._records:
            raise DuplicateRecordError(
                f"Identity {record.identity_id} already exists",
                existing_id=record.identity_id,
            )
        self._records[record.identity_id] = record

    async def get(self, identity_id: str) -> IdentityPointerRecord | None:
        record = self._records.get(identity_id)
        if record is None:
            return None
        # Hand out copies so callers cannot mutate stored state
        return IdentityPointerRecord(**record.__dict__)

    async def compare_and_swap(
        self,
        identity_id: str,
        expected_address: str,
        new_address: str,
        updated_at: datetime,
        external_link: str | None = None,
    ) -> bool:
        record = self._records.get(identity_id)
        if record is None or record.content_address != expected_address:
            return False
        record.content_address = new_address
        record.updated_at = updated_at
        if external_link is not None:
            record.external_link = external_link
        return True

    def __len__(self) -> int:
        return len(self._records)


# ---------------------------------------------------------------------------
# PostgreSQL store
# ---------------------------------------------------------------------------


class PostgresIdentityStore:
    """:class:`IdentityStore` backed by the ``identity_documents`` table."""

    def __init__(self, pool: DatabasePool) -> None:
        self._pool = pool

    async def insert(self, record: IdentityPointerRecord) -> None:
        async with self._pool.connection() as conn:
            try:
                await conn.execute(
                    """
                    INSERT INTO identity_documents
                        (identity_id, content_address, owner_user_id, external_link, created_at, updated_at)
                    VALUES ($1, $2, $3, $4, $5, $6)
                    """,
                    record.identity_id,
                    record.content_address,
                    record.owner_user_id,
                    record.external_link,
                    record.created_at,
                    record.updated_at,
                )
            except asyncpg.UniqueViolationError as e:
                logger.warning("Duplicate identity id on insert: %s", record.identity_id)
                raise DuplicateRecordError(
                    f"Identity {record.identity_id} already exists",
                    existing_id=record.identity_id,
                ) from e

    async def get(self, identity_id: str) -> IdentityPointerRecord | None:
        async with self._pool.connection() as conn:
            row = await conn.fetchrow(
                """
                SELECT identity_id, content_address, owner_user_id, external_link, created_at, updated_at
                FROM identity_documents
                WHERE identity_id = $1
                """,
                identity_id,
            )
        return IdentityPointerRecord.from_row(row) if row else None

    async def compare_and_swap(
        self,
        identity_id: str,
        expected_address: str,
        new_address: str,
        updated_at: datetime,
        external_link: str | None = None,
    ) -> bool:
        async with self._pool.connection() as conn:
            status = await conn.execute(
                """
                UPDATE identity_documents
                SET content_address = $3,
                    updated_at = $4,
                    external_link = COALESCE($5, external_link)
                WHERE identity_id = $1 AND content_address = $2
                """,
                identity_id,
                expected_address,
                new_address,
                updated_at,
                external_link,
            )
        # asyncpg returns the command tag, e.g. "UPDATE 1"
        return status.split()[-1] == "1"
