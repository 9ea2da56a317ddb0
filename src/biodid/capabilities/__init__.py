"""Capability tokens for biodid resources.

- model: resources, actions, capabilities and validation results
- token: the token string format
- store: token rows (in-memory and PostgreSQL)
- service: issue / validate / revoke / delegate / check_access
"""

from .model import (
    DEFAULT_TTL_SECONDS,
    BioAction,
    BioResource,
    Capability,
    DecodedToken,
    InvalidToken,
    IssuedToken,
    ResourceKind,
    TokenRecord,
    TokenValidation,
    ValidToken,
)
from .service import CapabilityTokenService
from .store import InMemoryTokenStore, PostgresTokenStore, TokenStore
from .token import TokenDecodeError, decode_token, encode_token

__all__ = [
    "DEFAULT_TTL_SECONDS",
    "BioAction",
    "BioResource",
    "Capability",
    "DecodedToken",
    "InvalidToken",
    "IssuedToken",
    "ResourceKind",
    "TokenRecord",
    "TokenValidation",
    "ValidToken",
    "CapabilityTokenService",
    "TokenStore",
    "InMemoryTokenStore",
    "PostgresTokenStore",
    "TokenDecodeError",
    "decode_token",
    "encode_token",
]
