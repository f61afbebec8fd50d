"""
Query Conductor - read-only filter builder over an owner's tokens.
"""

from collections.abc import Sequence
from dataclasses import dataclass, replace
from datetime import datetime
from typing import TYPE_CHECKING, Any, Literal
from uuid import UUID

from sqlalchemy import Select, and_, func, or_, select

from bearer.db.models import AccessToken
from bearer.models.domain import EntityRef

if TYPE_CHECKING:
    from bearer.services.manager import BearerManager

Direction = Literal["asc", "desc"]


@dataclass(frozen=True)
class TokenQueryConductor:
    """
    Chainable token query.

    Time-based filters (valid, expired, revoked) are evaluated against the
    manager clock when the terminal operation runs.

    Usage:
        live_keys = await (
            manager.query(user).type("sk").environment("live").valid().get()
        )
    """

    manager: "BearerManager"
    owner: EntityRef
    token_type: str | None = None
    environment_name: str | None = None
    group_id: UUID | None = None
    only_ungrouped: bool = False
    ability: str | None = None
    only_valid: bool = False
    only_expired: bool = False
    only_revoked: bool = False
    ordering: tuple[tuple[str, Direction], ...] = ()
    max_results: int | None = None

    def type(self, token_type: str) -> "TokenQueryConductor":
        return replace(self, token_type=token_type)

    def environment(self, environment: str) -> "TokenQueryConductor":
        return replace(self, environment_name=environment)

    def group(self, group_id: UUID) -> "TokenQueryConductor":
        return replace(self, group_id=group_id, only_ungrouped=False)

    def ungrouped(self) -> "TokenQueryConductor":
        return replace(self, group_id=None, only_ungrouped=True)

    def with_ability(self, ability: str) -> "TokenQueryConductor":
        """Tokens holding `ability` exactly or through the '*' wildcard."""
        return replace(self, ability=ability)

    def valid(self) -> "TokenQueryConductor":
        return replace(self, only_valid=True)

    def expired(self) -> "TokenQueryConductor":
        return replace(self, only_expired=True)

    def revoked(self) -> "TokenQueryConductor":
        return replace(self, only_revoked=True)

    def order_by_created(self, direction: Direction = "desc") -> "TokenQueryConductor":
        return replace(self, ordering=(*self.ordering, ("created_at", direction)))

    def order_by_last_used(self, direction: Direction = "desc") -> "TokenQueryConductor":
        return replace(self, ordering=(*self.ordering, ("last_used_at", direction)))

    def limit(self, limit: int) -> "TokenQueryConductor":
        return replace(self, max_results=limit)

    def _conditions(self, now: datetime) -> list[Any]:
        conditions: list[Any] = [
            AccessToken.owner_type == self.owner.type,
            AccessToken.owner_id == self.owner.id,
        ]
        if self.token_type is not None:
            conditions.append(AccessToken.type == self.token_type)
        if self.environment_name is not None:
            conditions.append(AccessToken.environment == self.environment_name)
        if self.group_id is not None:
            conditions.append(AccessToken.group_id == self.group_id)
        if self.only_ungrouped:
            conditions.append(AccessToken.group_id.is_(None))
        if self.only_valid:
            conditions.append(
                and_(
                    or_(AccessToken.revoked_at.is_(None), AccessToken.revoked_at > now),
                    or_(AccessToken.expires_at.is_(None), AccessToken.expires_at > now),
                )
            )
        if self.only_expired:
            conditions.append(
                and_(AccessToken.expires_at.is_not(None), AccessToken.expires_at <= now)
            )
        if self.only_revoked:
            conditions.append(
                and_(AccessToken.revoked_at.is_not(None), AccessToken.revoked_at <= now)
            )
        return conditions

    def to_statement(self) -> Select[tuple[AccessToken]]:
        stmt = select(AccessToken).where(*self._conditions(self.manager.now()))
        for column, direction in self.ordering:
            attr = getattr(AccessToken, column)
            stmt = stmt.order_by(attr.desc() if direction == "desc" else attr.asc())
        # Ability filtering happens in Python, so the limit is applied afterwards
        if self.max_results is not None and self.ability is None:
            stmt = stmt.limit(self.max_results)
        return stmt

    async def get(self) -> Sequence[AccessToken]:
        result = await self.manager.session.execute(self.to_statement())
        tokens = list(result.scalars().all())
        if self.ability is not None:
            tokens = [t for t in tokens if t.can(self.ability)]
            if self.max_results is not None:
                tokens = tokens[: self.max_results]
        return tokens

    async def first(self) -> AccessToken | None:
        tokens = await self.limit(1).get()
        return tokens[0] if tokens else None

    async def count(self) -> int:
        if self.ability is not None or self.max_results is not None:
            return len(await self.get())
        stmt = (
            select(func.count())
            .select_from(AccessToken)
            .where(*self._conditions(self.manager.now()))
        )
        result = await self.manager.session.execute(stmt)
        return int(result.scalar_one())

    async def exists(self) -> bool:
        return await self.first() is not None
