# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Identity Document Manager: service layer for identity document lifecycle.

Documents live in a content store; the identity store only holds a pointer
row per identity (current content address plus owning user). Every mutation
writes a new snapshot and then moves the pointer with a compare-and-swap on
the address the mutation started from, so concurrent writers cannot silently
overwrite each other.

Typical workflow::

    manager = IdentityDocumentManager(MemoryContentStore(), InMemoryIdentityStore())

    doc = await manager.create(
        DocumentCreateRequest(controller="did:key:z6Mk...", public_key="z6Mk..."),
        owner_user_id=7,
    )
    doc = await manager.update(doc.id, DocumentPatch(controller="did:key:z6Mn..."), requester_user_id=7)
    await manager.link_external_reference(doc.id, "doi:10.7910/DVN/ABC123", requester_user_id=7)
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime

from ..core.config import get_config
from ..core.exceptions import ConflictError, NotAuthorizedError, NotFoundError
from ..storage.content import ContentStore
from .document import (
    DocumentCreateRequest,
    DocumentPatch,
    IdentityDocument,
    create_default_document,
    generate_identity_id,
    next_timestamp,
    utcnow,
)
from .store import IdentityPointerRecord, IdentityStore

logger = logging.getLogger(__name__)


class IdentityDocumentManager:
    """Creates, mutates and resolves identity documents."""

    def __init__(
        self,
        content_store: ContentStore,
        identity_store: IdentityStore,
        *,
        storage_endpoint: str | None = None,
        external_url_template: str | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        config = get_config()
        self._content = content_store
        self._store = identity_store
        self._storage_endpoint = storage_endpoint or config.storage_endpoint
        self._external_url_template = external_url_template or config.external_url_template
        self._clock = clock or utcnow

    # -- Creation -----------------------------------------------------------

    async def create(self, request: DocumentCreateRequest, owner_user_id: int) -> IdentityDocument:
        """Create a new identity document owned by ``owner_user_id``.

        Raises:
            ValidationError: If the controller or public key is empty
            SerializationError: If the document cannot be encoded
            StoreWriteError: If the content store write fails
            PersistenceError: If the pointer insert fails (DuplicateRecordError
                on an id collision)
        """
        request.validate()

        now = self._clock()
        identity_id = generate_identity_id()
        document = create_default_document(
            identity_id,
            request,
            storage_endpoint=self._storage_endpoint,
            now=now,
        )

        address = await self._content.put(document.to_bytes())
        await self._store.insert(
            IdentityPointerRecord(
                identity_id=identity_id,
                content_address=address,
                owner_user_id=owner_user_id,
                created_at=now,
                updated_at=now,
            )
        )

        logger.info(
            "Created identity document %s for user %s at %s",
            identity_id,
            owner_user_id,
            address,
            extra={"identity_id": identity_id, "user_id": owner_user_id},
        )
        return document

    # -- Resolution ---------------------------------------------------------

    async def get(self, identity_id: str) -> IdentityDocument:
        """Fetch the current document for ``identity_id``.

        Raises:
            NotFoundError: If no pointer row exists
            StoreReadError: If the content store read fails
            DeserializationError: If the stored bytes are malformed
        """
        record = await self._require_record(identity_id)
        return await self._load(record)

    async def resolve(self, identity_id: str) -> IdentityDocument:
        """Resolve an identity to its current document (same as :meth:`get`)."""
        return await self.get(identity_id)

    async def current_address(self, identity_id: str) -> str:
        """Content address the pointer row currently references."""
        record = await self._require_record(identity_id)
        return record.content_address

    # -- Mutation -----------------------------------------------------------

    async def update(
        self,
        identity_id: str,
        patch: DocumentPatch,
        requester_user_id: int,
        *,
        expected_address: str | None = None,
    ) -> IdentityDocument:
        """Apply ``patch`` and store the result as a new version.

        If ``expected_address`` is given, the update only proceeds while the
        pointer still references it.

        Raises:
            NotFoundError: If no pointer row exists
            NotAuthorizedError: If the requester does not own the identity
            ConflictError: If the pointer moved before the write completed
            SerializationError, StoreReadError, StoreWriteError,
            DeserializationError, PersistenceError: As for create/get
        """
        record = await self._require_owned(identity_id, requester_user_id)
        if expected_address is not None and expected_address != record.content_address:
            raise self._conflict(identity_id)

        document = await self._load(record)
        updated = patch.apply(document, self._clock())
        await self._persist(record, updated)

        logger.info("Updated identity document %s", identity_id, extra={"identity_id": identity_id})
        return updated

    async def link_external_reference(self, identity_id: str, external_id: str, requester_user_id: int) -> None:
        """Record the id of the dataset in an external repository.

        Sets ``metadata.external_link`` and the derived ``external_url`` when
        the document has metadata; a document without metadata is rewritten
        unchanged. The pointer row's ``external_link`` is written either way.
        ``metadata.doi`` is left as it is: the DOI names the dataset itself,
        and an external repository id is not a substitute for it.

        Raises:
            NotFoundError: If no pointer row exists
            NotAuthorizedError: If the requester does not own the identity
            ConflictError: If the pointer moved before the write completed
        """
        record = await self._require_owned(identity_id, requester_user_id)
        document = await self._load(record)

        if document.metadata is not None:
            metadata = replace(
                document.metadata,
                external_link=external_id,
                external_url=self._external_url_template.format(external_id),
            )
            document = replace(
                document,
                metadata=metadata,
                updated=next_timestamp(document.updated, self._clock()),
            )
        else:
            logger.debug(
                "Identity document %s has no metadata to link",
                identity_id,
                extra={"identity_id": identity_id},
            )

        await self._persist(record, document, external_link=external_id)
        logger.info(
            "Linked identity document %s to external reference %s",
            identity_id,
            external_id,
            extra={"identity_id": identity_id},
        )

    # -- Helpers ------------------------------------------------------------

    async def _require_record(self, identity_id: str) -> IdentityPointerRecord:
        record = await self._store.get(identity_id)
        if record is None:
            raise NotFoundError("Identity document", identity_id)
        return record

    async def _require_owned(self, identity_id: str, requester_user_id: int) -> IdentityPointerRecord:
        record = await self._require_record(identity_id)
        if record.owner_user_id != requester_user_id:
            logger.warning(
                "User %s denied write to identity document %s",
                requester_user_id,
                identity_id,
                extra={"identity_id": identity_id, "user_id": requester_user_id},
            )
            raise NotAuthorizedError(
                f"User {requester_user_id} does not own identity document {identity_id}",
                user_id=requester_user_id,
                resource_id=identity_id,
            )
        return record

    async def _load(self, record: IdentityPointerRecord) -> IdentityDocument:
        data = await self._content.get(record.content_address)
        return IdentityDocument.from_bytes(data)

    async def _persist(
        self,
        record: IdentityPointerRecord,
        document: IdentityDocument,
        external_link: str | None = None,
    ) -> str:
        address = await self._content.put(document.to_bytes())
        swapped = await self._store.compare_and_swap(
            record.identity_id,
            record.content_address,
            address,
            document.updated,
            external_link=external_link,
        )
        if not swapped:
            # The new blob stays in the content store, unreferenced
            logger.warning(
                "Pointer for %s moved during write; discarding version %s",
                record.identity_id,
                address,
                extra={"identity_id": record.identity_id},
            )
            raise self._conflict(record.identity_id)
        return address

    @staticmethod
    def _conflict(identity_id: str) -> ConflictError:
        return ConflictError(
            f"Identity document {identity_id} was modified concurrently",
            existing_id=identity_id,
        )
