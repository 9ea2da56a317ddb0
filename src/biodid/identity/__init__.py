"""Identity documents for biological research data.

- document: the ``did:bio`` document model and its canonical byte form
- keys: multibase/Ed25519 helpers for verification methods
- store: pointer rows (in-memory and PostgreSQL)
- manager: create / get / update / link / resolve
"""

from .document import (
    DID_PREFIX,
    BioMetadata,
    DocumentCreateRequest,
    DocumentPatch,
    FundingInfo,
    IdentityDocument,
    RelatedIdentifier,
    Researcher,
    Service,
    VerificationMethod,
    create_default_document,
    generate_identity_id,
)
from .keys import KeyPair, generate_keypair, multibase_decode, multibase_encode
from .manager import IdentityDocumentManager
from .store import IdentityPointerRecord, IdentityStore, InMemoryIdentityStore, PostgresIdentityStore

__all__ = [
    "DID_PREFIX",
    "BioMetadata",
    "DocumentCreateRequest",
    "DocumentPatch",
    "FundingInfo",
    "IdentityDocument",
    "RelatedIdentifier",
    "Researcher",
    "Service",
    "VerificationMethod",
    "create_default_document",
    "generate_identity_id",
    "KeyPair",
    "generate_keypair",
    "multibase_encode",
    "multibase_decode",
    "IdentityDocumentManager",
    "IdentityPointerRecord",
    "IdentityStore",
    "InMemoryIdentityStore",
    "PostgresIdentityStore",
]
