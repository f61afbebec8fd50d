"""
Rotation Engine - replace a token and decide the fate of the old one.

The new token always copies type, environment, name, abilities, group,
context, boundary, restrictions and expiration from the old token, plus its
parent and derived metadata when the old token was derived.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from bearer.config import Settings
from bearer.db.models import AccessToken
from bearer.exceptions import CannotRotateTokenError, MissingOwnerError
from bearer.models.domain import EntityRef, NewAccessToken
from bearer.models.enums import AuditEvent, RotationMode
from bearer.observability.logging import get_logger
from bearer.registry import Registry
from bearer.services.issuance import TokenSpec, mint_token

if TYPE_CHECKING:
    from bearer.services.manager import BearerManager

logger = get_logger(__name__)


def _revoke_no_later_than(token: AccessToken, instant: datetime) -> datetime:
    """Schedule revocation at `instant` unless an earlier one is already set."""
    if token.revoked_at is None or token.revoked_at > instant:
        token.revoked_at = instant
    return token.revoked_at


class RotationStrategy(ABC):
    """Contract for rotation strategies (what happens to the old token)."""

    name: str

    @abstractmethod
    def apply(self, old: AccessToken, new: AccessToken, now: datetime) -> None: ...

    def is_old_token_valid(self, old: AccessToken, at: datetime | None = None) -> bool:
        return old.is_valid(at)

    def grace_period_minutes(self) -> int | None:
        return None


class ImmediateRotation(RotationStrategy):
    name = RotationMode.IMMEDIATE.value

    def apply(self, old: AccessToken, new: AccessToken, now: datetime) -> None:
        _revoke_no_later_than(old, now)


class GracePeriodRotation(RotationStrategy):
    """Old token stays valid for `minutes`, then its scheduled revocation takes effect."""

    name = RotationMode.GRACE_PERIOD.value

    def __init__(self, minutes: int) -> None:
        self.minutes = minutes

    def apply(self, old: AccessToken, new: AccessToken, now: datetime) -> None:
        boundary = _revoke_no_later_than(old, now + timedelta(minutes=self.minutes))
        old.token_metadata = {
            **(old.token_metadata or {}),
            "grace_period_expires_at": boundary.isoformat(),
        }

    def grace_period_minutes(self) -> int:
        return self.minutes


class DualValidRotation(RotationStrategy):
    """Old token stays valid until revoked separately; only stamped as rotated."""

    name = RotationMode.DUAL_VALID.value

    def apply(self, old: AccessToken, new: AccessToken, now: datetime) -> None:
        old.token_metadata = {
            **(old.token_metadata or {}),
            "rotated": True,
            "rotated_at": now.isoformat(),
        }


def build_rotation_registry(settings: Settings) -> Registry[RotationStrategy]:
    registry: Registry[RotationStrategy] = Registry(
        "rotation strategy", default=settings.default_rotation_strategy
    )
    registry.register(RotationMode.IMMEDIATE.value, ImmediateRotation())
    registry.register(
        RotationMode.GRACE_PERIOD.value, GracePeriodRotation(settings.grace_period_minutes)
    )
    registry.register(RotationMode.DUAL_VALID.value, DualValidRotation())
    return registry


@dataclass(frozen=True)
class TokenRotationConductor:
    """
    Chainable rotation request for one token.

    Usage:
        new = await manager.rotate(token).with_grace_period(30).rotate()
    """

    manager: "BearerManager"
    token: AccessToken
    mode: str | None = None
    grace_period: int | None = None

    def using(self, mode: str | RotationMode) -> "TokenRotationConductor":
        return replace(self, mode=mode.value if isinstance(mode, RotationMode) else mode)

    def immediate(self) -> "TokenRotationConductor":
        return self.using(RotationMode.IMMEDIATE)

    def with_grace_period(self, minutes: int) -> "TokenRotationConductor":
        if minutes < 0:
            raise ValueError("Grace period cannot be negative")
        return replace(self, mode=RotationMode.GRACE_PERIOD.value, grace_period=minutes)

    def dual_valid(self) -> "TokenRotationConductor":
        return self.using(RotationMode.DUAL_VALID)

    def strategy(self) -> RotationStrategy:
        """Explicit mode -> configured default -> registry default."""
        if self.mode == RotationMode.GRACE_PERIOD.value and self.grace_period is not None:
            return GracePeriodRotation(self.grace_period)
        return self.manager.rotation_strategies.resolve(
            self.mode, configured=self.manager.settings.default_rotation_strategy
        )

    async def rotate(self) -> NewAccessToken:
        """
        Create the replacement token and apply the strategy to the old one.

        A derived token's replacement takes its place under the same parent,
        so descendant revocation and the depth bound still cover it.

        Raises:
            CannotRotateTokenError: the old token is already revoked.
            MissingOwnerError: the old token's owner is gone or cannot hold tokens.
            NotRegisteredError: unknown rotation mode.
        """
        manager = self.manager
        old = self.token
        strategy = self.strategy()

        if old.is_revoked(manager.now()):
            raise CannotRotateTokenError(old.id, "token is revoked")

        owner = EntityRef(old.owner_type, old.owner_id)
        if await manager.resolver.load_holder(owner) is None:
            raise MissingOwnerError(old.owner_type, old.owner_id, "rotation")

        spec = TokenSpec(
            token_type=old.type,
            name=old.name,
            environment=old.environment,
            owner=owner,
            abilities=list(old.abilities or []),
            metadata={
                **(old.token_metadata or {}),
                "rotated_from": str(old.id),
                "rotation_mode": strategy.name,
            },
            derived_metadata=dict(old.derived_metadata or {}),
            allowed_ips=old.allowed_ips,
            allowed_domains=old.allowed_domains,
            rate_limit_per_minute=old.rate_limit_per_minute,
            expires_at=old.expires_at,
            context=EntityRef(old.context_type, old.context_id)
            if old.context_type and old.context_id
            else None,
            boundary=EntityRef(old.boundary_type, old.boundary_id)
            if old.boundary_type and old.boundary_id
            else None,
            group_id=old.group_id,
        )
        new = await mint_token(manager, spec)

        if old.parent_id is not None:
            parent = await manager.session.get(AccessToken, old.parent_id)
            if parent is not None:
                await manager.hierarchy.add(new.access_token, parent)

        strategy.apply(old, new.access_token, manager.now())
        await manager.session.flush()

        await manager.audit(
            old,
            AuditEvent.ROTATED,
            {
                "mode": strategy.name,
                "grace_period": strategy.grace_period_minutes(),
                "new_token_id": str(new.access_token.id),
            },
        )
        await manager.session.commit()

        manager.metrics.record_rotated(strategy.name)
        logger.info(
            "token_rotated",
            old_token_id=str(old.id),
            new_token_id=str(new.access_token.id),
            mode=strategy.name,
            grace_period=strategy.grace_period_minutes(),
        )
        return new
