"""
Derivation Engine - restricted child tokens in a parent -> child tree.

All validation happens before anything is written, so a rejected request
leaves no partial state.
"""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

from bearer.db.models import AccessToken
from bearer.exceptions import (
    CannotDeriveTokenError,
    InvalidDerivedAbilitiesError,
    InvalidDerivedExpirationError,
    MissingOwnerError,
)
from bearer.models.domain import EntityRef, NewAccessToken
from bearer.models.enums import AuditEvent
from bearer.observability.logging import get_logger
from bearer.services.issuance import TokenSpec, mint_token

if TYPE_CHECKING:
    from bearer.services.manager import BearerManager

logger = get_logger(__name__)


def _cannot_derive_reason(parent: AccessToken, max_depth: int, at: datetime) -> str:
    if parent.revoked_at is not None:
        return "parent token is revoked"
    if parent.is_expired(at):
        return "parent token is expired"
    return f"maximum derivation depth {max_depth} reached"


@dataclass(frozen=True)
class TokenDerivationConductor:
    """
    Chainable derivation request.

    Usage:
        child = await (
            manager.derive(parent)
            .abilities(["invoices:read"])
            .expires_in(3600)
            .metadata({"purpose": "reporting"})
            .derive("Reporting key")
        )
    """

    manager: "BearerManager"
    parent: AccessToken
    requested_abilities: tuple[str, ...] = ()
    requested_expires_at: datetime | None = None
    derived_metadata: Mapping[str, Any] = field(default_factory=dict)

    def abilities(self, abilities: Sequence[str]) -> "TokenDerivationConductor":
        return replace(self, requested_abilities=tuple(abilities))

    def expires_at(self, expires_at: datetime | None) -> "TokenDerivationConductor":
        return replace(self, requested_expires_at=expires_at)

    def expires_in(self, seconds: int) -> "TokenDerivationConductor":
        return self.expires_at(self.manager.now() + timedelta(seconds=seconds))

    def metadata(self, derived_metadata: Mapping[str, Any]) -> "TokenDerivationConductor":
        return replace(self, derived_metadata=dict(derived_metadata))

    def validate(self) -> None:
        """
        Check the request against the parent, in order.

        Raises:
            CannotDeriveTokenError: parent revoked, expired, or at maximum depth.
            InvalidDerivedAbilitiesError: abilities not a subset of the parent's.
            InvalidDerivedExpirationError: expiration later than the parent's.
        """
        parent = self.parent
        max_depth = self.manager.settings.max_derivation_depth
        now = self.manager.now()

        if not parent.can_derive(max_depth, now):
            self.manager.metrics.record_derivation_rejected("cannot_derive")
            raise CannotDeriveTokenError(parent.id, _cannot_derive_reason(parent, max_depth, now))

        if not AccessToken.are_abilities_subset(self.requested_abilities, parent.abilities or []):
            self.manager.metrics.record_derivation_rejected("invalid_abilities")
            raise InvalidDerivedAbilitiesError(self.requested_abilities, parent.abilities or [])

        if (
            self.requested_expires_at is not None
            and parent.expires_at is not None
            and self.requested_expires_at > parent.expires_at
        ):
            self.manager.metrics.record_derivation_rejected("invalid_expiration")
            raise InvalidDerivedExpirationError(self.requested_expires_at, parent.expires_at)

    async def derive(self, name: str) -> NewAccessToken:
        """
        Create the child token.

        Raises:
            CannotDeriveTokenError, InvalidDerivedAbilitiesError,
            InvalidDerivedExpirationError: see validate().
            MissingOwnerError: the parent's owner is gone or cannot hold tokens.
        """
        self.validate()

        manager = self.manager
        parent = self.parent
        owner = EntityRef(parent.owner_type, parent.owner_id)
        if await manager.resolver.load_holder(owner) is None:
            manager.metrics.record_derivation_rejected("missing_owner")
            raise MissingOwnerError(parent.owner_type, parent.owner_id, "derivation")

        spec = TokenSpec(
            token_type=parent.type,
            name=name,
            environment=parent.environment,
            owner=owner,
            abilities=list(self.requested_abilities),
            metadata=dict(parent.token_metadata or {}),
            derived_metadata=dict(self.derived_metadata),
            allowed_ips=parent.allowed_ips,
            allowed_domains=parent.allowed_domains,
            rate_limit_per_minute=parent.rate_limit_per_minute,
            expires_at=self.requested_expires_at or parent.expires_at,
            context=EntityRef(parent.context_type, parent.context_id)
            if parent.context_type and parent.context_id
            else None,
            boundary=EntityRef(parent.boundary_type, parent.boundary_id)
            if parent.boundary_type and parent.boundary_id
            else None,
        )
        new = await mint_token(manager, spec)
        child = new.access_token

        await manager.hierarchy.add(child, parent)

        await manager.audit(
            child,
            AuditEvent.DERIVED,
            {"parent_token_id": str(parent.id), "depth": child.depth},
        )
        await manager.session.commit()

        manager.metrics.record_derived()
        logger.info(
            "token_derived",
            token_id=str(child.id),
            parent_token_id=str(parent.id),
            depth=child.depth,
            abilities=list(child.abilities),
        )
        return new
