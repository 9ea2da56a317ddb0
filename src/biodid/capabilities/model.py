# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Capability model for biodid.

A capability grants one action on one resource. Resources are references
into a closed set of kinds (datasets, identity documents, files, metadata
records, user profiles); actions are a closed enum. Both have a text form
used inside token strings:

- resource: ``<Kind>:<identifier>``, e.g. ``Dataset:doi:10.7910/DVN/ABC123``
- action: the enum value, e.g. ``Read`` (parsed case-insensitively)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

# Default TTL: 24 hours
DEFAULT_TTL_SECONDS = 86400

# Identifier that matches any resource of the same kind
WILDCARD_IDENTIFIER = "*"

# Reasons reported by validation
INVALID_FORMAT = "Invalid UCAN token format"
INVALID_TIMESTAMP = "Invalid timestamp in token"
INVALID_CAPABILITIES = "Invalid capabilities format in token"
TOKEN_NOT_FOUND = "Token not found in database"
TOKEN_REVOKED = "Token has been revoked"
TOKEN_EXPIRED = "Token has expired"


class ResourceKind(str, Enum):
    """Kinds of resource a capability can reference."""

    DATASET = "Dataset"
    DID = "DID"
    FILE = "File"
    METADATA = "Metadata"
    USER_PROFILE = "UserProfile"

    @classmethod
    def parse(cls, value: str) -> ResourceKind:
        for kind in cls:
            if kind.value.lower() == value.lower():
                return kind
        raise ValueError(f"Unknown resource kind: {value!r}")


class BioAction(str, Enum):
    """Actions that can be performed on a resource."""

    CREATE = "Create"
    READ = "Read"
    UPDATE = "Update"
    DELETE = "Delete"
    UPLOAD = "Upload"
    DOWNLOAD = "Download"
    PROCESS = "Process"
    PUBLISH = "Publish"

    @classmethod
    def parse(cls, value: str) -> BioAction:
        for action in cls:
            if action.value.lower() == value.lower():
                return action
        raise ValueError(f"Unknown action: {value!r}")


@dataclass(frozen=True)
class BioResource:
    """Reference to a resource of a given kind."""

    kind: ResourceKind
    identifier: str

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.identifier}"

    @classmethod
    def parse(cls, text: str) -> BioResource:
        """Parse ``<Kind>:<identifier>``; the identifier may contain colons."""
        kind, sep, identifier = text.partition(":")
        if not sep or not identifier:
            raise ValueError(f"Resource must look like '<Kind>:<identifier>', got {text!r}")
        return cls(kind=ResourceKind.parse(kind), identifier=identifier)

    def matches(self, other: BioResource) -> bool:
        """Check whether a grant on this resource covers ``other``."""
        if self.kind != other.kind:
            return False
        return self.identifier == WILDCARD_IDENTIFIER or self.identifier == other.identifier


@dataclass(frozen=True)
class Capability:
    """Permission to perform ``action`` on ``resource``.

    Accepts the text forms for either field and parses them.
    """

    resource: BioResource
    action: BioAction

    def __post_init__(self) -> None:
        if isinstance(self.resource, str):
            object.__setattr__(self, "resource", BioResource.parse(self.resource))
        if isinstance(self.action, str) and not isinstance(self.action, BioAction):
            object.__setattr__(self, "action", BioAction.parse(self.action))

    def grants(self, resource: BioResource, action: BioAction) -> bool:
        """Check if this capability permits ``action`` on ``resource``."""
        return self.action == action and self.resource.matches(resource)

    def to_pair(self) -> list[str]:
        """Serialize as ``[resource, action]``."""
        return [str(self.resource), self.action.value]

    @classmethod
    def from_pair(cls, pair: Any) -> Capability:
        """Deserialize from ``[resource, action]``.

        Raises:
            ValueError: If ``pair`` is not two strings naming a known
                resource kind and action
        """
        if not isinstance(pair, (list, tuple)) or len(pair) != 2:
            raise ValueError(f"Capability must be a [resource, action] pair, got {pair!r}")
        resource, action = pair
        if not isinstance(resource, str) or not isinstance(action, str):
            raise ValueError(f"Capability fields must be strings, got {pair!r}")
        return cls(resource=BioResource.parse(resource), action=BioAction.parse(action))


# =============================================================================
# TOKEN RECORDS & RESULTS
# =============================================================================


@dataclass
class TokenRecord:
    """Stored row for an issued capability token.

    Attributes:
        token_id: Unique token identifier (also embedded in the token string)
        owner_user_id: User who issued (or delegated) the token
        token: The full token string
        audience: Identity the token was granted to
        issued_at: Issuance time, whole seconds
        expires_at: Authoritative expiry; validation compares against this
        revoked: Set once, never cleared
        revoked_at: When the token was first revoked
        delegated_from: Issuer of the parent token for delegated tokens
    """

    token_id: str
    owner_user_id: int
    token: str
    audience: str
    issued_at: datetime
    expires_at: datetime
    revoked: bool = False
    revoked_at: datetime | None = None
    delegated_from: str | None = None

    def __post_init__(self) -> None:
        if self.expires_at <= self.issued_at:
            raise ValueError("expires_at must be after issued_at")

    @classmethod
    def from_row(cls, row: Any) -> TokenRecord:
        return cls(
            token_id=row["token_id"],
            owner_user_id=row["owner_user_id"],
            token=row["token"],
            audience=row["audience"],
            issued_at=row["issued_at"],
            expires_at=row["expires_at"],
            revoked=row["revoked"],
            revoked_at=row["revoked_at"],
            delegated_from=row["delegated_from"],
        )


@dataclass(frozen=True)
class DecodedToken:
    """Fields carried by a token string."""

    token_id: str
    issuer: str
    audience: str
    issued_at: int
    capabilities: list[Capability] = field(default_factory=list)


@dataclass(frozen=True)
class IssuedToken:
    """A freshly minted token and its expiry as a unix timestamp."""

    token: str
    expires_at: int


@dataclass(frozen=True)
class ValidToken:
    """Validation outcome for a token that may be used."""

    token_id: str
    issuer: str
    audience: str
    capabilities: list[Capability]
    expires_at: int

    is_valid = True

    def __bool__(self) -> bool:
        return True


@dataclass(frozen=True)
class InvalidToken:
    """Validation outcome for a token that must be refused."""

    reason: str

    is_valid = False

    def __bool__(self) -> bool:
        return False


TokenValidation = ValidToken | InvalidToken
