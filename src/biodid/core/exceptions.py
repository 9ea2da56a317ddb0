# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Custom exception hierarchy for biodid.

Provides specific exception types for different error categories,
enabling better error handling and clearer error messages.

Every exception carries an :class:`ErrorKind`. The kind is the only thing a
transport layer needs to pick a response status (see ``HTTP_STATUS_BY_KIND``);
nothing in the core depends on HTTP.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Closed set of failure categories surfaced by the core."""

    NOT_FOUND = "not_found"
    NOT_AUTHORIZED = "not_authorized"
    VALIDATION = "validation"
    CONFLICT = "conflict"
    SERIALIZATION = "serialization"
    DESERIALIZATION = "deserialization"
    DECODE = "decode"
    STORE = "store"


# Consumed by request handlers only.
HTTP_STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.NOT_AUTHORIZED: 403,
    ErrorKind.VALIDATION: 400,
    ErrorKind.CONFLICT: 409,
    ErrorKind.SERIALIZATION: 500,
    ErrorKind.DESERIALIZATION: 500,
    ErrorKind.DECODE: 401,
    ErrorKind.STORE: 500,
}


class BioDIDError(Exception):
    """Base exception for all biodid errors.

    All biodid-specific exceptions should inherit from this class.
    """

    kind: ErrorKind = ErrorKind.STORE

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    @property
    def http_status(self) -> int:
        """Status a transport layer should answer with."""
        return HTTP_STATUS_BY_KIND[self.kind]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "error": self.__class__.__name__,
            "kind": self.kind.value,
            "message": self.message,
            "details": self.details,
        }


class NotFoundError(BioDIDError):
    """Exception for resource not found errors.

    Raised when:
    - No pointer row exists for an identity
    - No token row exists for a token id (or it is owned by someone else)
    """

    kind = ErrorKind.NOT_FOUND

    def __init__(self, resource_type: str, resource_id: str):
        message = f"{resource_type} not found: {resource_id}"
        details = {
            "resource_type": resource_type,
            "resource_id": resource_id,
        }
        super().__init__(message, details)
        self.resource_type = resource_type
        self.resource_id = resource_id


class NotAuthorizedError(BioDIDError):
    """Exception for ownership mismatches on mutating calls."""

    kind = ErrorKind.NOT_AUTHORIZED

    def __init__(self, message: str, user_id: int | None = None, resource_id: str | None = None):
        details: dict[str, Any] = {}
        if user_id is not None:
            details["user_id"] = user_id
        if resource_id:
            details["resource_id"] = resource_id
        super().__init__(message, details)
        self.user_id = user_id
        self.resource_id = resource_id


class ValidationError(BioDIDError):
    """Exception for validation errors.

    Raised when:
    - Input validation fails
    - Required fields are missing
    - Field values are out of range
    """

    kind = ErrorKind.VALIDATION

    def __init__(self, message: str, field: str | None = None, value: Any = None):
        details: dict[str, Any] = {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)
        super().__init__(message, details)
        self.field = field
        self.value = value


class ConflictError(BioDIDError):
    """Exception for conflict errors.

    Raised when:
    - A document's pointer moved between read and write
    - Attempting to create a duplicate record
    """

    kind = ErrorKind.CONFLICT

    def __init__(self, message: str, existing_id: str | None = None):
        details: dict[str, Any] = {}
        if existing_id:
            details["existing_id"] = existing_id
        super().__init__(message, details)
        self.existing_id = existing_id


class SerializationError(BioDIDError):
    """A document or capability payload could not be encoded."""

    kind = ErrorKind.SERIALIZATION


class DeserializationError(BioDIDError):
    """Stored bytes could not be decoded into a document."""

    kind = ErrorKind.DESERIALIZATION


class DecodeError(BioDIDError):
    """A capability token string is malformed."""

    kind = ErrorKind.DECODE


class StoreError(BioDIDError):
    """Exception for content-store and relational-store I/O errors."""

    kind = ErrorKind.STORE


class StoreReadError(StoreError):
    """Reading from the content store failed."""


class StoreWriteError(StoreError):
    """Writing to the content store failed."""


class ContentNotFoundError(StoreReadError):
    """The content store has no blob at the requested address."""

    def __init__(self, address: str):
        super().__init__(f"Content not found: {address}", {"address": address})
        self.address = address


class PersistenceError(StoreError):
    """Exception for relational-store errors.

    Raised when:
    - Connection or pool acquisition fails (including exhaustion)
    - Query execution fails
    """


class DuplicateRecordError(PersistenceError):
    """An insert collided with an existing primary key."""

    kind = ErrorKind.CONFLICT

    def __init__(self, message: str, existing_id: str | None = None):
        super().__init__(message, {"existing_id": existing_id} if existing_id else None)
        self.existing_id = existing_id
