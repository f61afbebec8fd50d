"""
Issuance Builder - configures and persists new tokens and token groups.

The plaintext secret is only ever returned inside NewAccessToken /
NewAccessTokenGroup; only its hash is stored.
"""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

from sqlalchemy import select
from sqlalchemy.orm import selectinload

from bearer.db.models import AccessToken, AccessTokenGroup
from bearer.exceptions import GroupRefreshError
from bearer.models.domain import EntityRef, NewAccessToken, NewAccessTokenGroup
from bearer.models.enums import AuditEvent
from bearer.observability.logging import get_logger
from bearer.services.generators import check_environment
from bearer.services.owners import EntityReference, to_ref

if TYPE_CHECKING:
    from bearer.services.manager import BearerManager

logger = get_logger(__name__)


@dataclass(frozen=True)
class TokenSpec:
    """Fully resolved attributes of a token about to be persisted."""

    token_type: str
    name: str
    environment: str
    owner: EntityRef
    abilities: list[str]
    metadata: dict[str, Any]
    derived_metadata: dict[str, Any] | None = None
    allowed_ips: list[str] | None = None
    allowed_domains: list[str] | None = None
    rate_limit_per_minute: int | None = None
    expires_at: datetime | None = None
    context: EntityRef | None = None
    boundary: EntityRef | None = None
    group_id: Any = None


async def mint_token(
    manager: "BearerManager",
    spec: TokenSpec,
    generator: str | None = None,
    hasher: str | None = None,
) -> NewAccessToken:
    """
    Generate a secret, hash it and add the row to the session (flushed, not committed).

    Raises:
        NotRegisteredError: unknown token type, generator or hasher.
        ValueError: the environment tag contains the secret separator.
    """
    check_environment(spec.environment)
    token_type = manager.token_types.get(spec.token_type)
    token_generator = manager.generator(generator)
    token_hasher = manager.hasher(hasher)

    plain_text = token_generator.generate(token_type.prefix(), spec.environment)

    token = AccessToken(
        owner_type=spec.owner.type,
        owner_id=spec.owner.id,
        context_type=spec.context.type if spec.context else None,
        context_id=spec.context.id if spec.context else None,
        boundary_type=spec.boundary.type if spec.boundary else None,
        boundary_id=spec.boundary.id if spec.boundary else None,
        group_id=spec.group_id,
        depth=0,
        type=spec.token_type,
        environment=spec.environment,
        name=spec.name,
        prefix=token_type.prefix(),
        token=token_hasher.hash(plain_text),
        abilities=list(spec.abilities),
        token_metadata=dict(spec.metadata),
        derived_metadata=dict(spec.derived_metadata or {}),
        allowed_ips=list(spec.allowed_ips) if spec.allowed_ips is not None else None,
        allowed_domains=list(spec.allowed_domains) if spec.allowed_domains is not None else None,
        rate_limit_per_minute=spec.rate_limit_per_minute,
        expires_at=spec.expires_at,
    )
    manager.session.add(token)
    await manager.session.flush()

    return NewAccessToken(access_token=token, plain_text_token=plain_text)


def _pick(override: Any, builder: Any, fallback: Any) -> Any:
    if override is not None:
        return override
    if builder is not None:
        return builder
    return fallback


@dataclass(frozen=True)
class TokenIssuanceConductor:
    """
    Immutable issuance builder for one owner.

    Every configuration method returns a new conductor. Values resolve as
    per-call override -> builder default -> token type default.

    Usage:
        new = await (
            manager.for_owner(user)
            .abilities(["users:read"])
            .environment("live")
            .issue("sk", "Backend key")
        )
        new.plain_text_token  # shown once
    """

    manager: "BearerManager"
    owner: EntityRef
    default_abilities: tuple[str, ...] | None = None
    default_environment: str | None = None
    default_allowed_ips: tuple[str, ...] | None = None
    default_allowed_domains: tuple[str, ...] | None = None
    default_rate_limit: int | None = None
    default_expires_at: datetime | None = None
    default_metadata: Mapping[str, Any] | None = None
    context_ref: EntityRef | None = None
    boundary_ref: EntityRef | None = None
    generator_name: str | None = None
    hasher_name: str | None = None

    # Builder methods

    def abilities(self, abilities: Sequence[str]) -> "TokenIssuanceConductor":
        return replace(self, default_abilities=tuple(abilities))

    def environment(self, environment: str) -> "TokenIssuanceConductor":
        return replace(self, default_environment=check_environment(environment))

    def allowed_ips(self, ips: Sequence[str]) -> "TokenIssuanceConductor":
        return replace(self, default_allowed_ips=tuple(ips))

    def allowed_domains(self, domains: Sequence[str]) -> "TokenIssuanceConductor":
        return replace(self, default_allowed_domains=tuple(domains))

    def rate_limit(self, per_minute: int) -> "TokenIssuanceConductor":
        return replace(self, default_rate_limit=per_minute)

    def expires_at(self, expires_at: datetime) -> "TokenIssuanceConductor":
        return replace(self, default_expires_at=expires_at)

    def expires_in(self, minutes: int) -> "TokenIssuanceConductor":
        return self.expires_at(self.manager.now() + timedelta(minutes=minutes))

    def metadata(self, metadata: Mapping[str, Any]) -> "TokenIssuanceConductor":
        return replace(self, default_metadata=dict(metadata))

    def context(self, entity: EntityReference | EntityRef) -> "TokenIssuanceConductor":
        return replace(self, context_ref=to_ref(entity))

    def boundary(self, entity: EntityReference | EntityRef) -> "TokenIssuanceConductor":
        return replace(self, boundary_ref=to_ref(entity))

    def generator(self, name: str) -> "TokenIssuanceConductor":
        return replace(self, generator_name=name)

    def hasher(self, name: str) -> "TokenIssuanceConductor":
        return replace(self, hasher_name=name)

    # Terminal operations

    async def issue(
        self,
        token_type: str,
        name: str,
        *,
        abilities: Sequence[str] | None = None,
        environment: str | None = None,
        expires_at: datetime | None = None,
        metadata: Mapping[str, Any] | None = None,
        allowed_ips: Sequence[str] | None = None,
        allowed_domains: Sequence[str] | None = None,
        rate_limit: int | None = None,
    ) -> NewAccessToken:
        """
        Issue one token of `token_type`.

        Returns:
            NewAccessToken with the persisted row and the plaintext secret.

        Raises:
            NotRegisteredError: unknown token type, generator or hasher.
        """
        new = await self._issue_one(
            token_type,
            name,
            group_id=None,
            abilities=abilities,
            environment=environment,
            expires_at=expires_at,
            metadata=metadata,
            allowed_ips=allowed_ips,
            allowed_domains=allowed_domains,
            rate_limit=rate_limit,
        )
        await self.manager.session.commit()
        return new

    async def issue_group(
        self,
        token_types: Sequence[str],
        name: str,
        *,
        abilities: Sequence[str] | None = None,
        environment: str | None = None,
        metadata: Mapping[str, Any] | None = None,
    ) -> NewAccessTokenGroup:
        """
        Issue one token per type, all members of a new group.

        Members share name, metadata and environment.

        Raises:
            GroupRefreshError: the group could not be reloaded after creation.
        """
        session = self.manager.session
        shared_metadata = dict(_pick(metadata, self.default_metadata, {}))

        group = AccessTokenGroup(
            owner_type=self.owner.type,
            owner_id=self.owner.id,
            name=name,
            group_metadata=shared_metadata,
        )
        session.add(group)
        await session.flush()
        group_id = group.id

        plain_text_tokens: dict[str, str] = {}
        for token_type in token_types:
            new = await self._issue_one(
                token_type,
                name,
                group_id=group_id,
                abilities=abilities,
                environment=environment,
                metadata=shared_metadata,
            )
            plain_text_tokens[token_type] = new.plain_text_token

        await session.commit()

        stmt = (
            select(AccessTokenGroup)
            .where(AccessTokenGroup.id == group_id)
            .options(selectinload(AccessTokenGroup.tokens))
            .execution_options(populate_existing=True)
        )
        result = await session.execute(stmt)
        fresh = result.scalar_one_or_none()
        if fresh is None:
            raise GroupRefreshError(group_id)

        logger.info(
            "token_group_issued",
            group_id=str(group_id),
            owner=str(self.owner),
            token_types=list(token_types),
        )
        return NewAccessTokenGroup(group=fresh, plain_text_tokens=plain_text_tokens)

    async def _issue_one(
        self,
        token_type: str,
        name: str,
        *,
        group_id: Any,
        abilities: Sequence[str] | None = None,
        environment: str | None = None,
        expires_at: datetime | None = None,
        metadata: Mapping[str, Any] | None = None,
        allowed_ips: Sequence[str] | None = None,
        allowed_domains: Sequence[str] | None = None,
        rate_limit: int | None = None,
    ) -> NewAccessToken:
        manager = self.manager
        type_impl = manager.token_types.get(token_type)

        default_expiration = type_impl.default_expiration()
        type_expires_at = (
            manager.now() + timedelta(minutes=default_expiration)
            if default_expiration is not None
            else None
        )

        spec = TokenSpec(
            token_type=token_type,
            name=name,
            environment=_pick(
                environment, self.default_environment, manager.settings.default_environment
            ),
            owner=self.owner,
            abilities=list(_pick(abilities, self.default_abilities, type_impl.default_abilities())),
            metadata=dict(_pick(metadata, self.default_metadata, {})),
            allowed_ips=_pick(allowed_ips, self.default_allowed_ips, None),
            allowed_domains=_pick(allowed_domains, self.default_allowed_domains, None),
            rate_limit_per_minute=_pick(
                rate_limit, self.default_rate_limit, type_impl.default_rate_limit()
            ),
            expires_at=_pick(expires_at, self.default_expires_at, type_expires_at),
            context=self.context_ref,
            boundary=self.boundary_ref,
            group_id=group_id,
        )

        new = await mint_token(manager, spec, self.generator_name, self.hasher_name)
        token = new.access_token

        await manager.audit(
            token,
            AuditEvent.CREATED,
            {"token_type": token.type, "environment": token.environment, "name": token.name},
        )
        manager.metrics.record_issued(token.type)
        logger.info(
            "token_issued",
            token_id=str(token.id),
            token_type=token.type,
            environment=token.environment,
            owner=str(self.owner),
            group_id=str(group_id) if group_id else None,
        )
        return new
