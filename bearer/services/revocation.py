"""
Revocation Engine - interchangeable strategies plus the chainable conductor.

Strategies only mark rows; the conductor owns the audit write, metrics and
commit. Every token in a strategy's affected set counts towards the outcome,
but a token that is already revoked keeps its earlier revoked_at so the
timestamp never moves later (revocation is monotonic).
"""

from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bearer.config import Settings
from bearer.db.models import AccessToken
from bearer.models.domain import RevocationOutcome
from bearer.models.enums import AuditEvent, RevocationMode
from bearer.observability.logging import get_logger
from bearer.registry import Registry
from bearer.services.hierarchy import HierarchyIndex

if TYPE_CHECKING:
    from bearer.services.manager import BearerManager

logger = get_logger(__name__)


def _mark(tokens: Iterable[AccessToken], revoked_at: datetime, now: datetime) -> None:
    for token in tokens:
        if token.is_revoked(now):
            continue
        if token.revoked_at is not None and token.revoked_at <= revoked_at:
            continue
        token.revoked_at = revoked_at


class RevocationStrategy(ABC):
    """Contract for revocation strategies."""

    name: str

    @abstractmethod
    async def affected_tokens(
        self, session: AsyncSession, token: AccessToken, hierarchy: HierarchyIndex
    ) -> Sequence[AccessToken]:
        """Tokens this strategy would revoke for `token`."""

    def revocation_instant(self, now: datetime) -> datetime:
        return now

    def audit_details(self) -> dict[str, Any]:
        return {}

    async def revoke(
        self,
        session: AsyncSession,
        token: AccessToken,
        hierarchy: HierarchyIndex,
        now: datetime,
    ) -> RevocationOutcome:
        candidates = await self.affected_tokens(session, token, hierarchy)
        _mark(candidates, self.revocation_instant(now), now)
        await session.flush()
        return RevocationOutcome(
            mode=self.name,
            affected_count=len(candidates),
            token_ids=tuple(t.id for t in candidates),
            group_id=token.group_id,
            details=self.audit_details(),
        )


class SingleRevocation(RevocationStrategy):
    """Revokes the target only."""

    name = RevocationMode.NONE.value

    async def affected_tokens(
        self, session: AsyncSession, token: AccessToken, hierarchy: HierarchyIndex
    ) -> Sequence[AccessToken]:
        return [token]


class CascadeRevocation(RevocationStrategy):
    """Revokes every member of the token's group (the token alone when ungrouped)."""

    name = RevocationMode.CASCADE.value

    async def affected_tokens(
        self, session: AsyncSession, token: AccessToken, hierarchy: HierarchyIndex
    ) -> Sequence[AccessToken]:
        if token.group_id is None:
            return [token]
        result = await session.execute(
            select(AccessToken).where(AccessToken.group_id == token.group_id)
        )
        return result.scalars().all()


class PartialRevocation(RevocationStrategy):
    """
    Revokes only group members whose type is in a fixed configured list.

    The triggering token is not revoked unless its own type is in that list.
    Ungrouped tokens fall back to single revocation.
    """

    name = RevocationMode.PARTIAL.value

    def __init__(self, types: Iterable[str]) -> None:
        self.types = list(types)

    async def affected_tokens(
        self, session: AsyncSession, token: AccessToken, hierarchy: HierarchyIndex
    ) -> Sequence[AccessToken]:
        if token.group_id is None:
            return [token]
        result = await session.execute(
            select(AccessToken).where(
                AccessToken.group_id == token.group_id,
                AccessToken.type.in_(self.types),
            )
        )
        return result.scalars().all()

    def audit_details(self) -> dict[str, Any]:
        return {"partial_types": list(self.types)}


class TimedRevocation(RevocationStrategy):
    """Schedules revocation of the target `delay_minutes` from now."""

    name = RevocationMode.TIMED.value

    def __init__(self, delay_minutes: int) -> None:
        self.delay_minutes = delay_minutes

    async def affected_tokens(
        self, session: AsyncSession, token: AccessToken, hierarchy: HierarchyIndex
    ) -> Sequence[AccessToken]:
        return [token]

    def revocation_instant(self, now: datetime) -> datetime:
        return now + timedelta(minutes=self.delay_minutes)

    async def revoke(
        self,
        session: AsyncSession,
        token: AccessToken,
        hierarchy: HierarchyIndex,
        now: datetime,
    ) -> RevocationOutcome:
        outcome = await super().revoke(session, token, hierarchy, now)
        details = {
            **outcome.details,
            "delay_minutes": self.delay_minutes,
            "effective_at": self.revocation_instant(now).isoformat(),
        }
        return replace(outcome, details=details)


class CascadeDescendantsRevocation(RevocationStrategy):
    """Revokes the token and every transitive descendant in the derivation tree."""

    name = RevocationMode.CASCADE_DESCENDANTS.value

    async def affected_tokens(
        self, session: AsyncSession, token: AccessToken, hierarchy: HierarchyIndex
    ) -> Sequence[AccessToken]:
        descendant_ids = await hierarchy.descendants_of(token)
        if not descendant_ids:
            return [token]
        result = await session.execute(
            select(AccessToken).where(AccessToken.id.in_(descendant_ids))
        )
        return [token, *result.scalars().all()]


def build_revocation_registry(settings: Settings) -> Registry[RevocationStrategy]:
    registry: Registry[RevocationStrategy] = Registry(
        "revocation strategy", default=settings.default_revocation_strategy
    )
    registry.register(RevocationMode.NONE.value, SingleRevocation())
    registry.register(RevocationMode.CASCADE.value, CascadeRevocation())
    registry.register(
        RevocationMode.PARTIAL.value, PartialRevocation(settings.partial_revocation_types)
    )
    registry.register(
        RevocationMode.TIMED.value, TimedRevocation(settings.timed_revocation_delay_minutes)
    )
    registry.register(RevocationMode.CASCADE_DESCENDANTS.value, CascadeDescendantsRevocation())
    return registry


@dataclass(frozen=True)
class TokenRevocationConductor:
    """
    Chainable revocation request for one token.

    Usage:
        await manager.revoke(token).cascade().with_reason("leaked").revoke()
        await manager.revoke(root).with_descendants()
    """

    manager: "BearerManager"
    token: AccessToken
    mode: str | None = None
    reason: str | None = None

    def using(self, mode: str | RevocationMode) -> "TokenRevocationConductor":
        return replace(self, mode=mode.value if isinstance(mode, RevocationMode) else mode)

    def cascade(self) -> "TokenRevocationConductor":
        return self.using(RevocationMode.CASCADE)

    def partial(self) -> "TokenRevocationConductor":
        return self.using(RevocationMode.PARTIAL)

    def timed(self) -> "TokenRevocationConductor":
        return self.using(RevocationMode.TIMED)

    def with_reason(self, reason: str) -> "TokenRevocationConductor":
        return replace(self, reason=reason)

    def resolve_mode(self) -> str:
        """Explicit mode -> per-type configured mode -> configured default -> registry default."""
        registry = self.manager.revocation_strategies
        if self.mode is not None:
            return registry.resolve_name(self.mode)
        return registry.resolve_name(self.manager.settings.revocation_mode_for(self.token.type))

    async def revoke(self) -> RevocationOutcome:
        return await self._execute(self.resolve_mode())

    async def with_descendants(self) -> RevocationOutcome:
        return await self._execute(RevocationMode.CASCADE_DESCENDANTS.value)

    async def _execute(self, mode: str) -> RevocationOutcome:
        manager = self.manager
        strategy = manager.revocation_strategies.get(mode)

        outcome = await strategy.revoke(
            manager.session, self.token, manager.hierarchy, manager.now()
        )

        await manager.audit(
            self.token,
            AuditEvent.REVOKED,
            {
                "mode": outcome.mode,
                "affected_count": outcome.affected_count,
                "group_id": str(outcome.group_id) if outcome.group_id else None,
                "reason": self.reason,
                **outcome.details,
            },
        )
        await manager.session.commit()

        manager.metrics.record_revoked(outcome.mode, outcome.affected_count)
        logger.info(
            "token_revoked",
            token_id=str(self.token.id),
            mode=outcome.mode,
            affected_count=outcome.affected_count,
            reason=self.reason,
        )
        return outcome
