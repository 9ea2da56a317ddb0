"""Capability token commands.

Usage:
    biodid token decode <token>
    biodid token validate <token>
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from datetime import UTC, datetime

from ...capabilities.service import CapabilityTokenService
from ...capabilities.store import PostgresTokenStore
from ...capabilities.token import decode_token
from ...core.exceptions import BioDIDError, DecodeError
from ...storage.db import DatabasePool
from ..output import output_error, output_result


def register(subparsers: argparse._SubParsersAction) -> None:
    """Register token sub-commands on the CLI parser."""
    token_parser = subparsers.add_parser("token", help="Inspect capability tokens")
    token_sub = token_parser.add_subparsers(dest="token_command", required=True)

    decode_parser = token_sub.add_parser("decode", help="Decode a token offline (no store lookup)")
    decode_parser.add_argument("token", help="Token string")
    decode_parser.set_defaults(func=cmd_token_decode)

    validate_parser = token_sub.add_parser("validate", help="Validate a token against the database")
    validate_parser.add_argument("token", help="Token string")
    validate_parser.set_defaults(func=cmd_token_validate)


def cmd_token_decode(args: argparse.Namespace) -> int:
    """Print the fields carried by a token string."""
    try:
        decoded = decode_token(args.token)
    except DecodeError as e:
        output_error(e.message)
        return 1

    output_result(
        {
            "token_id": decoded.token_id,
            "issuer": decoded.issuer,
            "audience": decoded.audience,
            "issued_at": datetime.fromtimestamp(decoded.issued_at, tz=UTC).isoformat(),
            "capabilities": [cap.to_pair() for cap in decoded.capabilities],
        },
        args.output,
    )
    return 0


async def _validate(token: str):
    pool = DatabasePool.from_config()
    try:
        service = CapabilityTokenService(PostgresTokenStore(pool))
        return await service.validate(token)
    finally:
        await pool.close()


def cmd_token_validate(args: argparse.Namespace) -> int:
    """Validate a token against the stored rows."""
    try:
        result = asyncio.run(_validate(args.token))
    except BioDIDError as e:
        output_error(e.message)
        return 1

    if not result:
        print(f"Invalid: {result.reason}", file=sys.stderr)
        return 2

    output_result(
        {
            "valid": True,
            "token_id": result.token_id,
            "issuer": result.issuer,
            "audience": result.audience,
            "expires_at": datetime.fromtimestamp(result.expires_at, tz=UTC).isoformat(),
            "capabilities": [cap.to_pair() for cap in result.capabilities],
        },
        args.output,
    )
    return 0
