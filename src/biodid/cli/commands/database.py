"""Database commands.

Usage:
    biodid init-db
    biodid init-db --print-sql
"""

from __future__ import annotations

import argparse
import asyncio
import logging

from ...core.exceptions import BioDIDError
from ...storage.db import DatabasePool, init_schema, load_schema_sql
from ..output import output_error

logger = logging.getLogger(__name__)


def register(subparsers: argparse._SubParsersAction) -> None:
    """Register the init-db command on the CLI parser."""
    init_parser = subparsers.add_parser("init-db", help="Create the identity and token tables")
    init_parser.add_argument(
        "--print-sql",
        action="store_true",
        help="Print the schema DDL instead of applying it",
    )
    init_parser.set_defaults(func=cmd_init_db)


async def _apply_schema() -> None:
    pool = DatabasePool.from_config()
    try:
        await init_schema(pool)
    finally:
        await pool.close()


def cmd_init_db(args: argparse.Namespace) -> int:
    """Initialize the database schema."""
    if args.print_sql:
        print(load_schema_sql())
        return 0

    try:
        asyncio.run(_apply_schema())
    except BioDIDError as e:
        output_error(e.message)
        return 1

    print("Database schema initialized")
    return 0
