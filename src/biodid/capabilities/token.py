# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Capability token string format.

    ucan:demo:<token_id>:<issuer>:<audience>:<issued_at>:<capabilities>

- ``issuer`` and ``audience`` are percent-encoded, so the colons inside
  identity strings do not collide with the field delimiter.
- ``issued_at`` is unix seconds.
- ``capabilities`` is a JSON list of ``[resource, action]`` pairs and runs
  to the end of the string (it may contain colons).

Tokens are not signed. They are bookkeeping handles; the stored row is
authoritative for revocation and expiry.
"""

from __future__ import annotations

import json
import re
from urllib.parse import quote, unquote

from ..core.exceptions import DecodeError, SerializationError
from .model import (
    INVALID_CAPABILITIES,
    INVALID_FORMAT,
    INVALID_TIMESTAMP,
    Capability,
    DecodedToken,
)

TOKEN_SCHEME = "ucan"
TOKEN_VERSION = "demo"
TOKEN_FIELDS = 7

_TIMESTAMP_RE = re.compile(r"[0-9]+")


class TokenDecodeError(DecodeError):
    """A token string could not be decoded; ``reason`` says which part failed."""

    def __init__(self, reason: str, details: dict | None = None):
        super().__init__(reason, details)
        self.reason = reason


def encode_capabilities(capabilities: list[Capability]) -> str:
    try:
        return json.dumps([cap.to_pair() for cap in capabilities], separators=(",", ":"))
    except (TypeError, ValueError) as e:
        raise SerializationError(f"Failed to serialize capabilities: {e}") from e


def decode_capabilities(text: str) -> list[Capability]:
    """Parse the capabilities segment of a token.

    Raises:
        TokenDecodeError: If the segment is not a list of valid pairs
    """
    try:
        pairs = json.loads(text)
    except (ValueError, RecursionError) as e:
        raise TokenDecodeError(INVALID_CAPABILITIES) from e
    if not isinstance(pairs, list):
        raise TokenDecodeError(INVALID_CAPABILITIES)
    try:
        return [Capability.from_pair(pair) for pair in pairs]
    except ValueError as e:
        raise TokenDecodeError(INVALID_CAPABILITIES, {"error": str(e)}) from e


def encode_token(
    token_id: str,
    issuer: str,
    audience: str,
    issued_at: int,
    capabilities: list[Capability],
) -> str:
    """Build a token string."""
    return ":".join(
        [
            TOKEN_SCHEME,
            TOKEN_VERSION,
            token_id,
            quote(issuer, safe=""),
            quote(audience, safe=""),
            str(issued_at),
            encode_capabilities(capabilities),
        ]
    )


def decode_token(token: str) -> DecodedToken:
    """Parse a token string.

    Raises:
        TokenDecodeError: If the token is malformed. ``reason`` is one of
            the invalid-format, invalid-timestamp or invalid-capabilities
            messages.
    """
    if not isinstance(token, str):
        raise TokenDecodeError(INVALID_FORMAT)

    parts = token.split(":", TOKEN_FIELDS - 1)
    if len(parts) != TOKEN_FIELDS or parts[0] != TOKEN_SCHEME or parts[1] != TOKEN_VERSION:
        raise TokenDecodeError(INVALID_FORMAT)

    token_id, issuer, audience, issued_at, capabilities = parts[2:]
    issuer = unquote(issuer)
    audience = unquote(audience)
    if not token_id or not issuer or not audience:
        raise TokenDecodeError(INVALID_FORMAT)

    if not _TIMESTAMP_RE.fullmatch(issued_at):
        raise TokenDecodeError(INVALID_TIMESTAMP)

    return DecodedToken(
        token_id=token_id,
        issuer=issuer,
        audience=audience,
        issued_at=int(issued_at),
        capabilities=decode_capabilities(capabilities),
    )
