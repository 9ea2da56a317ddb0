# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Capability Token Service: issue, validate, revoke and delegate tokens.

Tokens are bearer handles: whoever holds the string can present it. The
service's job is bookkeeping. Every issued token has a stored row, and the
row (not the string) decides whether the token is revoked or expired.

Validation never raises for a token that simply does not work; it returns
an :class:`InvalidToken` with a human-readable reason. Store failures still
propagate as :class:`~biodid.core.exceptions.PersistenceError`.

Delegation records provenance only. A delegated token's ``delegated_from``
is the parent token's issuer; the parent's validity is not checked and the
delegated capability set is not narrowed to the parent's.

Log lines reference token ids only, never full token strings.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable, Iterable
from datetime import datetime, timedelta

from ..core.config import get_config
from ..core.exceptions import DecodeError, NotFoundError, ValidationError
from ..identity.document import utcnow
from .model import (
    TOKEN_EXPIRED,
    TOKEN_NOT_FOUND,
    TOKEN_REVOKED,
    BioAction,
    BioResource,
    Capability,
    InvalidToken,
    IssuedToken,
    TokenRecord,
    TokenValidation,
    ValidToken,
)
from .store import TokenStore
from .token import decode_token, encode_token

logger = logging.getLogger(__name__)

CapabilityLike = Capability | tuple[str, str] | list[str]


def _coerce_capabilities(capabilities: Iterable[CapabilityLike]) -> list[Capability]:
    """Normalize caller input to a non-empty list of capabilities.

    Raises:
        ValidationError: If the list is empty or an entry cannot be parsed
    """
    result: list[Capability] = []
    for cap in capabilities:
        if isinstance(cap, Capability):
            result.append(cap)
            continue
        try:
            result.append(Capability.from_pair(cap))
        except ValueError as e:
            raise ValidationError(str(e), field="capabilities", value=cap) from e
    if not result:
        raise ValidationError("At least one capability is required", field="capabilities")
    return result


class CapabilityTokenService:
    """Service for issuing and checking capability tokens.

    Example:
        service = CapabilityTokenService(InMemoryTokenStore())

        issued = await service.issue(
            issuer_user_id=7,
            audience_id="did:key:z6Mk...",
            capabilities=[("Dataset:doi:10.7910/DVN/ABC123", "Read")],
        )
        result = await service.validate(issued.token)
        if result:
            ...
    """

    def __init__(
        self,
        store: TokenStore,
        *,
        service_did: str | None = None,
        default_ttl_seconds: int | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        config = get_config()
        self._store = store
        self._service_did = service_did or config.service_did
        self._default_ttl_seconds = default_ttl_seconds or config.token_ttl_seconds
        self._clock = clock or utcnow

    @property
    def service_did(self) -> str:
        return self._service_did

    # -------------------------------------------------------------------------
    # Issuance
    # -------------------------------------------------------------------------

    async def issue(
        self,
        issuer_user_id: int,
        audience_id: str,
        capabilities: Iterable[CapabilityLike],
        requested_ttl_seconds: int | None = None,
    ) -> IssuedToken:
        """Issue a root token from the service to ``audience_id``.

        Args:
            issuer_user_id: User the token row is owned by
            audience_id: Identity the token is granted to
            capabilities: Capabilities or ``(resource, action)`` pairs
            requested_ttl_seconds: Lifetime; defaults to 24 hours

        Raises:
            ValidationError: If capabilities are empty/unparseable or the TTL
                is not positive
            PersistenceError: If the row cannot be stored
        """
        caps = _coerce_capabilities(capabilities)
        ttl = self._default_ttl_seconds if requested_ttl_seconds is None else requested_ttl_seconds
        return await self._mint(
            owner_user_id=issuer_user_id,
            issuer=self._service_did,
            audience=audience_id,
            capabilities=caps,
            ttl_seconds=ttl,
        )

    async def delegate(
        self,
        delegator_user_id: int,
        parent_token: str,
        audience_id: str,
        capabilities: Iterable[CapabilityLike],
    ) -> IssuedToken:
        """Issue a token derived from ``parent_token``.

        The new token is issued by the parent's audience and records the
        parent's issuer as ``delegated_from``. It uses the default lifetime.

        Raises:
            DecodeError: If ``parent_token`` is malformed
            ValidationError: If capabilities are empty or unparseable
            PersistenceError: If the row cannot be stored
        """
        parent = decode_token(parent_token)
        caps = _coerce_capabilities(capabilities)
        issued = await self._mint(
            owner_user_id=delegator_user_id,
            issuer=parent.audience,
            audience=audience_id,
            capabilities=caps,
            ttl_seconds=self._default_ttl_seconds,
            delegated_from=parent.issuer,
        )
        logger.info(
            "Token %s delegated a new token by user %s",
            parent.token_id,
            delegator_user_id,
            extra={"token_id": parent.token_id, "user_id": delegator_user_id},
        )
        return issued

    async def _mint(
        self,
        *,
        owner_user_id: int,
        issuer: str,
        audience: str,
        capabilities: list[Capability],
        ttl_seconds: int,
        delegated_from: str | None = None,
    ) -> IssuedToken:
        if not audience:
            raise ValidationError("Audience must not be empty", field="audience_id")
        if ttl_seconds <= 0:
            raise ValidationError("TTL must be positive", field="requested_ttl_seconds", value=ttl_seconds)

        # Tokens carry whole seconds; keep the row consistent with the string
        now = self._clock().replace(microsecond=0)
        expires_at = now + timedelta(seconds=ttl_seconds)
        token_id = str(uuid.uuid4())
        token = encode_token(token_id, issuer, audience, int(now.timestamp()), capabilities)

        await self._store.save(
            TokenRecord(
                token_id=token_id,
                owner_user_id=owner_user_id,
                token=token,
                audience=audience,
                issued_at=now,
                expires_at=expires_at,
                delegated_from=delegated_from,
            )
        )

        logger.info(
            "Issued token %s for user %s (expires %s)",
            token_id,
            owner_user_id,
            expires_at.isoformat(),
            extra={"token_id": token_id, "user_id": owner_user_id},
        )
        return IssuedToken(token=token, expires_at=int(expires_at.timestamp()))

    # -------------------------------------------------------------------------
    # Validation
    # -------------------------------------------------------------------------

    async def validate(self, token: str) -> TokenValidation:
        """Check whether ``token`` may currently be used.

        A token is valid when it decodes, has a stored row, is not revoked
        and the stored expiry has not passed. Expiry is checked in whole
        seconds, so a token stays valid through the second it expires in.

        Raises:
            PersistenceError: If the store cannot be read
        """
        try:
            decoded = decode_token(token)
        except DecodeError as e:
            logger.debug("Rejected malformed token: %s", e.message)
            return InvalidToken(reason=e.message)

        record = await self._store.get(decoded.token_id)
        if record is None:
            return InvalidToken(reason=TOKEN_NOT_FOUND)
        if record.revoked:
            return InvalidToken(reason=TOKEN_REVOKED)
        # Stored expiry has whole-second precision
        if int(self._clock().timestamp()) > int(record.expires_at.timestamp()):
            return InvalidToken(reason=TOKEN_EXPIRED)

        return ValidToken(
            token_id=decoded.token_id,
            issuer=decoded.issuer,
            audience=decoded.audience,
            capabilities=decoded.capabilities,
            expires_at=int(record.expires_at.timestamp()),
        )

    async def check_access(
        self,
        token: str,
        resource: BioResource | str,
        action: BioAction | str,
    ) -> TokenValidation:
        """Validate ``token`` and check it grants ``action`` on ``resource``.

        Raises:
            ValidationError: If the resource or action text cannot be parsed
            PersistenceError: If the store cannot be read
        """
        try:
            requested = Capability(resource=resource, action=action)
        except ValueError as e:
            raise ValidationError(str(e), field="resource") from e

        result = await self.validate(token)
        if not result:
            return result

        if any(cap.grants(requested.resource, requested.action) for cap in result.capabilities):
            return result
        return InvalidToken(
            reason=f"Token does not grant {requested.action.value} on {requested.resource}",
        )

    # -------------------------------------------------------------------------
    # Revocation
    # -------------------------------------------------------------------------

    async def revoke(self, requester_user_id: int, token: str) -> None:
        """Revoke a token owned by ``requester_user_id``.

        Revoking an already revoked token is not an error.

        Raises:
            DecodeError: If the token is malformed
            NotFoundError: If no token with that id is owned by the requester
            PersistenceError: If the store cannot be updated
        """
        decoded = decode_token(token)
        record = await self._store.get_owned(decoded.token_id, requester_user_id)
        if record is None:
            raise NotFoundError("Token", decoded.token_id)

        if await self._store.mark_revoked(decoded.token_id, self._clock()):
            logger.info(
                "Revoked token %s for user %s",
                decoded.token_id,
                requester_user_id,
                extra={"token_id": decoded.token_id, "user_id": requester_user_id},
            )
        else:
            logger.debug("Token %s was already revoked", decoded.token_id, extra={"token_id": decoded.token_id})

    async def delegations_from(self, issuer: str) -> list[TokenRecord]:
        """Token rows delegated from tokens issued by ``issuer``."""
        return await self._store.list_delegated_from(issuer)
