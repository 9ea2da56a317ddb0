# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Identity documents for biological research data.

Identity ids use the ``did:bio`` method: ``did:bio:<uuid4>``.

Documents follow the W3C DID Core shape (``@context``, ``controller``,
``verificationMethod``, ``authentication``, ``service``) with a ``metadata``
extension block describing the research artifact.

Documents are immutable by replacement: every mutation produces a new
document that is serialized to canonical bytes and stored under a new
content address.
"""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime, timedelta
from typing import Any

from ..core.exceptions import DeserializationError, SerializationError, ValidationError

# =============================================================================
# CONSTANTS
# =============================================================================

DID_METHOD = "bio"
DID_PREFIX = f"did:{DID_METHOD}:"

DEFAULT_CONTEXT = (
    "https://www.w3.org/ns/did/v1",
    "https://w3id.org/security/suites/ed25519-2020/v1",
    "https://w3id.org/biodata/v1",
)

DEFAULT_VERIFICATION_METHOD_TYPE = "Ed25519VerificationKey2020"
PRIMARY_KEY_FRAGMENT = "keys-1"

STORAGE_SERVICE_FRAGMENT = "storage"
STORAGE_SERVICE_TYPE = "IPFSStorage"
STORAGE_SERVICE_DESCRIPTION = "IPFS storage for biological research data"

_ONE_TICK = timedelta(microseconds=1)


def generate_identity_id() -> str:
    """Generate a fresh ``did:bio:<uuid4>`` identity id."""
    return f"{DID_PREFIX}{uuid.uuid4()}"


def utcnow() -> datetime:
    return datetime.now(UTC)


def next_timestamp(previous: datetime, now: datetime) -> datetime:
    """Return ``now``, nudged forward so it is strictly after ``previous``."""
    return now if now > previous else previous + _ONE_TICK


def _format_datetime(value: datetime) -> str:
    return value.isoformat()


def _parse_datetime(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _drop_none(data: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in data.items() if v is not None}


# =============================================================================
# METADATA EXTENSION
# =============================================================================


@dataclass
class Researcher:
    """A person credited on the research artifact."""

    name: str
    role: str
    orcid: str | None = None
    affiliation: str | None = None
    email: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return _drop_none(
            {
                "name": self.name,
                "role": self.role,
                "orcid": self.orcid,
                "affiliation": self.affiliation,
                "email": self.email,
            }
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Researcher:
        return cls(
            name=data["name"],
            role=data["role"],
            orcid=data.get("orcid"),
            affiliation=data.get("affiliation"),
            email=data.get("email"),
        )


@dataclass
class RelatedIdentifier:
    """Cross-reference to another identifier (e.g. a paper DOI)."""

    identifier: str
    identifier_type: str
    relation_type: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "identifier": self.identifier,
            "identifier_type": self.identifier_type,
            "relation_type": self.relation_type,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RelatedIdentifier:
        return cls(
            identifier=data["identifier"],
            identifier_type=data["identifier_type"],
            relation_type=data["relation_type"],
        )


@dataclass
class FundingInfo:
    funder_name: str
    grant_id: str | None = None
    award_title: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return _drop_none(
            {
                "funder_name": self.funder_name,
                "grant_id": self.grant_id,
                "award_title": self.award_title,
            }
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FundingInfo:
        return cls(
            funder_name=data["funder_name"],
            grant_id=data.get("grant_id"),
            award_title=data.get("award_title"),
        )


@dataclass
class BioMetadata:
    """Biological metadata extension block.

    ``external_link`` holds the identifier of the dataset in an external
    repository (typically a DOI) and ``external_url`` the display URL
    derived from it.
    """

    title: str
    data_type: str
    license: str
    description: str | None = None
    researchers: list[Researcher] = field(default_factory=list)
    keywords: list[str] = field(default_factory=list)
    doi: str | None = None
    handle: str | None = None
    external_link: str | None = None
    external_url: str | None = None
    related_identifiers: list[RelatedIdentifier] | None = None
    dataset_size: int | None = None
    funding_info: list[FundingInfo] | None = None
    creation_date: datetime = field(default_factory=utcnow)
    last_modified: datetime = field(default_factory=utcnow)
    custom_fields: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        data: dict[str, Any] = {
            "title": self.title,
            "description": self.description,
            "researchers": [r.to_dict() for r in self.researchers],
            "keywords": list(self.keywords),
            "data_type": self.data_type,
            "license": self.license,
            "doi": self.doi,
            "handle": self.handle,
            "external_link": self.external_link,
            "external_url": self.external_url,
            "dataset_size": self.dataset_size,
            "creation_date": _format_datetime(self.creation_date),
            "last_modified": _format_datetime(self.last_modified),
            "custom_fields": self.custom_fields,
        }
        if self.related_identifiers is not None:
            data["related_identifiers"] = [r.to_dict() for r in self.related_identifiers]
        if self.funding_info is not None:
            data["funding_info"] = [f.to_dict() for f in self.funding_info]
        return _drop_none(data)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BioMetadata:
        """Create from dictionary."""
        related = data.get("related_identifiers")
        funding = data.get("funding_info")
        return cls(
            title=data["title"],
            description=data.get("description"),
            researchers=[Researcher.from_dict(r) for r in data.get("researchers", [])],
            keywords=list(data.get("keywords", [])),
            data_type=data["data_type"],
            license=data["license"],
            doi=data.get("doi"),
            handle=data.get("handle"),
            external_link=data.get("external_link"),
            external_url=data.get("external_url"),
            related_identifiers=[RelatedIdentifier.from_dict(r) for r in related] if related is not None else None,
            dataset_size=data.get("dataset_size"),
            funding_info=[FundingInfo.from_dict(f) for f in funding] if funding is not None else None,
            creation_date=_parse_datetime(data["creation_date"]),
            last_modified=_parse_datetime(data["last_modified"]),
            custom_fields=data.get("custom_fields"),
        )


# =============================================================================
# DOCUMENT
# =============================================================================


@dataclass
class VerificationMethod:
    """Verification method in an identity document."""

    id: str
    controller: str
    type: str = DEFAULT_VERIFICATION_METHOD_TYPE
    public_key_multibase: str | None = None
    public_key_jwk: dict[str, str] | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return _drop_none(
            {
                "id": self.id,
                "controller": self.controller,
                "type": self.type,
                "publicKeyMultibase": self.public_key_multibase,
                "publicKeyJwk": self.public_key_jwk,
            }
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> VerificationMethod:
        return cls(
            id=data["id"],
            controller=data["controller"],
            type=data.get("type", DEFAULT_VERIFICATION_METHOD_TYPE),
            public_key_multibase=data.get("publicKeyMultibase"),
            public_key_jwk=data.get("publicKeyJwk"),
        )


@dataclass
class Service:
    """Service entry describing where the underlying data lives."""

    id: str
    type: str
    endpoint: str
    description: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return _drop_none(
            {
                "id": self.id,
                "type": self.type,
                "serviceEndpoint": self.endpoint,
                "description": self.description,
            }
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Service:
        return cls(
            id=data["id"],
            type=data["type"],
            endpoint=data["serviceEndpoint"],
            description=data.get("description"),
        )


@dataclass
class IdentityDocument:
    """Identity document for a piece of research data.

    ``authentication`` and ``assertion_method`` only ever reference ids of
    entries in ``verification_methods``.
    """

    id: str
    controllers: list[str]
    verification_methods: list[VerificationMethod]
    authentication: list[str]
    services: list[Service]
    created: datetime
    updated: datetime
    context: list[str] = field(default_factory=lambda: list(DEFAULT_CONTEXT))
    also_known_as: list[str] | None = None
    assertion_method: list[str] | None = None
    metadata: BioMetadata | None = None

    @property
    def primary_verification_method(self) -> VerificationMethod | None:
        """Get the primary verification method."""
        if self.verification_methods:
            return self.verification_methods[0]
        return None

    def verification_method_ids(self) -> list[str]:
        return [vm.id for vm in self.verification_methods]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary (JSON-LD format)."""
        doc: dict[str, Any] = {
            "@context": list(self.context),
            "id": self.id,
            "controller": list(self.controllers),
            "verificationMethod": [vm.to_dict() for vm in self.verification_methods],
            "authentication": list(self.authentication),
            "service": [s.to_dict() for s in self.services],
            "created": _format_datetime(self.created),
            "updated": _format_datetime(self.updated),
        }

        if self.also_known_as is not None:
            doc["alsoKnownAs"] = list(self.also_known_as)

        if self.assertion_method is not None:
            doc["assertionMethod"] = list(self.assertion_method)

        if self.metadata is not None:
            doc["metadata"] = self.metadata.to_dict()

        return doc

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> IdentityDocument:
        """Create from dictionary."""
        metadata = data.get("metadata")
        also_known_as = data.get("alsoKnownAs")
        assertion_method = data.get("assertionMethod")
        return cls(
            id=data["id"],
            context=list(data.get("@context", DEFAULT_CONTEXT)),
            controllers=list(data["controller"]),
            verification_methods=[VerificationMethod.from_dict(vm) for vm in data["verificationMethod"]],
            authentication=list(data.get("authentication", [])),
            services=[Service.from_dict(s) for s in data.get("service", [])],
            created=_parse_datetime(data["created"]),
            updated=_parse_datetime(data["updated"]),
            also_known_as=list(also_known_as) if also_known_as is not None else None,
            assertion_method=list(assertion_method) if assertion_method is not None else None,
            metadata=BioMetadata.from_dict(metadata) if metadata is not None else None,
        )

    def to_bytes(self) -> bytes:
        """Serialize to the canonical byte form stored in the content store.

        Raises:
            SerializationError: If the document holds values JSON cannot encode
        """
        try:
            text = json.dumps(
                self.to_dict(),
                sort_keys=True,
                separators=(",", ":"),
                ensure_ascii=False,
                allow_nan=False,
            )
        except (TypeError, ValueError) as e:
            raise SerializationError(f"Failed to serialize identity document {self.id}: {e}") from e
        return text.encode("utf-8")

    @classmethod
    def from_bytes(cls, data: bytes) -> IdentityDocument:
        """Parse canonical bytes back into a document.

        Raises:
            DeserializationError: If the bytes are not a well-formed document
        """
        try:
            payload = json.loads(data.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as e:
            raise DeserializationError(f"Stored document is not valid JSON: {e}") from e
        if not isinstance(payload, dict):
            raise DeserializationError("Stored document is not a JSON object")
        try:
            return cls.from_dict(payload)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise DeserializationError(f"Stored document is malformed: {e!r}") from e


# =============================================================================
# REQUESTS
# =============================================================================


@dataclass
class DocumentCreateRequest:
    """Inputs for creating an identity document."""

    controller: str
    public_key: str
    service_endpoints: list[Service] = field(default_factory=list)
    metadata: BioMetadata | None = None

    def validate(self) -> None:
        """Raise ValidationError for requests that cannot produce a document."""
        if not self.controller or not self.controller.strip():
            raise ValidationError("Controller must not be empty", field="controller")
        if not self.public_key or not self.public_key.strip():
            raise ValidationError("Public key must not be empty", field="public_key")


@dataclass
class DocumentPatch:
    """Partial update to an identity document.

    Fields left as ``None`` are not touched. Removals match by id; ids that
    are not present are ignored.
    """

    controller: str | None = None
    add_verification_methods: list[VerificationMethod] | None = None
    remove_verification_methods: list[str] | None = None
    add_services: list[Service] | None = None
    remove_services: list[str] | None = None
    metadata: BioMetadata | None = None

    def apply(self, document: IdentityDocument, now: datetime) -> IdentityDocument:
        """Return a new document with this patch applied and ``updated`` advanced."""
        controllers = [self.controller] if self.controller is not None else list(document.controllers)

        verification_methods = list(document.verification_methods)
        if self.add_verification_methods:
            verification_methods.extend(self.add_verification_methods)

        authentication = list(document.authentication)
        assertion_method = list(document.assertion_method) if document.assertion_method is not None else None
        if self.remove_verification_methods:
            removed = set(self.remove_verification_methods)
            verification_methods = [vm for vm in verification_methods if vm.id not in removed]
            authentication = [ref for ref in authentication if ref not in removed]
            if assertion_method is not None:
                assertion_method = [ref for ref in assertion_method if ref not in removed]

        services = list(document.services)
        if self.add_services:
            services.extend(self.add_services)
        if self.remove_services:
            removed = set(self.remove_services)
            services = [s for s in services if s.id not in removed]

        metadata = self.metadata if self.metadata is not None else document.metadata

        return replace(
            document,
            controllers=controllers,
            verification_methods=verification_methods,
            authentication=authentication,
            assertion_method=assertion_method,
            services=services,
            metadata=metadata,
            updated=next_timestamp(document.updated, now),
        )


def create_default_document(
    identity_id: str,
    request: DocumentCreateRequest,
    *,
    storage_endpoint: str,
    now: datetime,
) -> IdentityDocument:
    """Build the initial document for a new identity.

    The document gets one verification method ``<id>#keys-1`` carrying the
    request's public key, referenced from ``authentication``, and a default
    storage service ``<id>#storage`` followed by the request's own services.
    """
    vm_id = f"{identity_id}#{PRIMARY_KEY_FRAGMENT}"
    vm = VerificationMethod(
        id=vm_id,
        controller=identity_id,
        type=DEFAULT_VERIFICATION_METHOD_TYPE,
        public_key_multibase=request.public_key,
    )

    services = [
        Service(
            id=f"{identity_id}#{STORAGE_SERVICE_FRAGMENT}",
            type=STORAGE_SERVICE_TYPE,
            endpoint=storage_endpoint,
            description=STORAGE_SERVICE_DESCRIPTION,
        )
    ]
    services.extend(request.service_endpoints)

    return IdentityDocument(
        id=identity_id,
        controllers=[request.controller],
        verification_methods=[vm],
        authentication=[vm_id],
        services=services,
        created=now,
        updated=now,
        metadata=request.metadata,
    )
