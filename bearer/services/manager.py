"""
Bearer Manager - entry point to the token lifecycle engine.

One manager per unit of work: it wraps a single AsyncSession, an explicit
Settings instance and the component registries, and hands out conductors.
"""

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bearer.config import Settings
from bearer.db.models import AccessToken, AccessTokenAuditLog, AccessTokenGroup, utc_now
from bearer.models.domain import EntityRef
from bearer.models.enums import AuditEvent
from bearer.observability.logging import get_logger
from bearer.observability.metrics import TokenMetrics
from bearer.observability.metrics import metrics as default_metrics
from bearer.registry import Registry
from bearer.services.audit import AuditDriver, build_audit_registry
from bearer.services.derivation import TokenDerivationConductor
from bearer.services.generators import TokenGenerator, build_generator_registry
from bearer.services.hashers import TokenHasher, build_hasher_registry
from bearer.services.hierarchy import AdjacencyListHierarchy, HierarchyIndex
from bearer.services.issuance import TokenIssuanceConductor
from bearer.services.owners import EntityReference, EntityResolver, to_ref
from bearer.services.query import TokenQueryConductor
from bearer.services.revocation import (
    RevocationStrategy,
    TokenRevocationConductor,
    build_revocation_registry,
)
from bearer.services.rotation import (
    RotationStrategy,
    TokenRotationConductor,
    build_rotation_registry,
)
from bearer.services.token_types import TokenType, build_token_type_registry

logger = get_logger(__name__)

COMPOSITE_SEPARATOR = "|"


@dataclass
class Registries:
    """Every pluggable component family, keyed by name."""

    token_types: Registry[TokenType]
    generators: Registry[TokenGenerator]
    hashers: Registry[TokenHasher]
    audit_drivers: Registry[AuditDriver]
    revocation_strategies: Registry[RevocationStrategy]
    rotation_strategies: Registry[RotationStrategy]


def build_registries(settings: Settings) -> Registries:
    """Registries pre-loaded with the built-in components and configured token types."""
    return Registries(
        token_types=build_token_type_registry(settings),
        generators=build_generator_registry(default=settings.default_generator),
        hashers=build_hasher_registry(default=settings.default_hasher),
        audit_drivers=build_audit_registry(default=settings.default_audit_driver),
        revocation_strategies=build_revocation_registry(settings),
        rotation_strategies=build_rotation_registry(settings),
    )


class BearerManager:
    """
    Token lifecycle manager.

    Usage:
        manager = BearerManager(session, settings, resolver=resolver)
        new = await manager.for_owner(user).issue("sk", "CI key")
        token = await manager.find_token(new.plain_text_token)
        await manager.revoke(token).cascade().revoke()

    Registries are built from settings unless shared ones are passed in, so
    custom components registered once can be reused across managers.
    """

    def __init__(
        self,
        session: AsyncSession,
        settings: Settings,
        registries: Registries | None = None,
        resolver: EntityResolver | None = None,
        hierarchy: HierarchyIndex | None = None,
        metrics: TokenMetrics | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.session = session
        self.settings = settings
        self.registries = registries or build_registries(settings)
        self.resolver = resolver or EntityResolver()
        self.hierarchy: HierarchyIndex = hierarchy or AdjacencyListHierarchy(session)
        self.metrics = metrics or default_metrics
        self._clock = clock or utc_now

    def now(self) -> datetime:
        return self._clock()

    # Registries

    @property
    def token_types(self) -> Registry[TokenType]:
        return self.registries.token_types

    @property
    def revocation_strategies(self) -> Registry[RevocationStrategy]:
        return self.registries.revocation_strategies

    @property
    def rotation_strategies(self) -> Registry[RotationStrategy]:
        return self.registries.rotation_strategies

    def token_type(self, key: str) -> TokenType:
        return self.registries.token_types.get(key)

    def generator(self, name: str | None = None) -> TokenGenerator:
        return self.registries.generators.resolve(name, configured=self.settings.default_generator)

    def hasher(self, name: str | None = None) -> TokenHasher:
        return self.registries.hashers.resolve(name, configured=self.settings.default_hasher)

    def lookup_hashers(self) -> list[TokenHasher]:
        """The configured hasher followed by every other registered hasher."""
        configured = self.hasher()
        others = [self.registries.hashers.get(name) for name in self.registries.hashers.names()]
        return [configured, *(h for h in others if h is not configured)]

    def audit_driver(self, name: str | None = None) -> AuditDriver:
        return self.registries.audit_drivers.resolve(
            name, configured=self.settings.default_audit_driver
        )

    def register_token_type(self, key: str, token_type: TokenType) -> None:
        self.registries.token_types.register(key, token_type)

    def register_generator(self, name: str, generator: TokenGenerator) -> None:
        self.registries.generators.register(name, generator)

    def register_hasher(self, name: str, hasher: TokenHasher) -> None:
        self.registries.hashers.register(name, hasher)

    def register_audit_driver(self, name: str, driver: AuditDriver) -> None:
        self.registries.audit_drivers.register(name, driver)

    def register_revocation_strategy(self, name: str, strategy: RevocationStrategy) -> None:
        self.registries.revocation_strategies.register(name, strategy)

    def register_rotation_strategy(self, name: str, strategy: RotationStrategy) -> None:
        self.registries.rotation_strategies.register(name, strategy)

    # Conductors

    def for_owner(self, owner: EntityReference | EntityRef) -> TokenIssuanceConductor:
        return TokenIssuanceConductor(manager=self, owner=to_ref(owner))

    def query(self, owner: EntityReference | EntityRef) -> TokenQueryConductor:
        return TokenQueryConductor(manager=self, owner=to_ref(owner))

    def revoke(self, token: AccessToken) -> TokenRevocationConductor:
        return TokenRevocationConductor(manager=self, token=token)

    def rotate(self, token: AccessToken, mode: str | None = None) -> TokenRotationConductor:
        return TokenRotationConductor(manager=self, token=token, mode=mode)

    def derive(self, parent: AccessToken) -> TokenDerivationConductor:
        return TokenDerivationConductor(manager=self, parent=parent)

    # Lookup

    async def find_token(self, presented: str) -> AccessToken | None:
        """
        Find the token for a presented credential.

        Tokens may have been issued with any registered hasher, so the
        configured hasher is tried first and the others after it. A raw
        secret is matched by its hash, which only deterministic hashers allow.
        An `{id}|{secret}` composite is split on the first pipe only; the
        token is loaded by id and the remainder verified against its hash.
        """
        hashers = self.lookup_hashers()
        token: AccessToken | None = None

        if COMPOSITE_SEPARATOR not in presented:
            deterministic = [h for h in hashers if h.deterministic]
            if not deterministic:
                logger.warning("raw_token_lookup_unsupported", hasher=type(hashers[0]).__name__)
            for hasher in deterministic:
                result = await self.session.execute(
                    select(AccessToken).where(AccessToken.token == hasher.hash(presented))
                )
                token = result.scalars().first()
                if token is not None:
                    break
        else:
            raw_id, secret = presented.split(COMPOSITE_SEPARATOR, 1)
            try:
                token_id = UUID(raw_id)
            except ValueError:
                token_id = None
            if token_id is not None:
                candidate = await self.session.get(AccessToken, token_id)
                if candidate is not None and any(
                    h.verify(secret, candidate.token) for h in hashers
                ):
                    token = candidate

        self.metrics.record_lookup(token is not None)
        return token

    async def find_by_prefix(self, prefix: str) -> AccessToken | None:
        result = await self.session.execute(
            select(AccessToken)
            .where(AccessToken.prefix == prefix)
            .order_by(AccessToken.created_at)
        )
        return result.scalars().first()

    async def sibling(self, token: AccessToken, token_type: str) -> AccessToken | None:
        """Another member of the token's group with the given type."""
        if token.group_id is None:
            return None
        result = await self.session.execute(
            select(AccessToken).where(
                AccessToken.group_id == token.group_id,
                AccessToken.type == token_type,
                AccessToken.id != token.id,
            )
        )
        return result.scalars().first()

    def group_token(self, group: AccessTokenGroup, alias: str) -> AccessToken | None:
        """Group member for a configured helper alias ('secret', 'publishable', ...)."""
        return group.helper_token(alias, self.settings.group_helpers)

    async def audit_logs(self, token: AccessToken) -> Sequence[AccessTokenAuditLog]:
        return await self.audit_driver().logs_for_token(self.session, token)

    # Usage

    async def mark_used(
        self, token: AccessToken, context: Mapping[str, Any] | None = None
    ) -> AccessToken:
        """Stamp last_used_at and record an authenticated event."""
        token.last_used_at = self.now()
        await self.session.flush()
        await self.audit(token, AuditEvent.AUTHENTICATED, context)
        await self.session.commit()
        return token

    async def record_event(
        self,
        token: AccessToken,
        event: AuditEvent,
        context: Mapping[str, Any] | None = None,
    ) -> None:
        """Record a transport-level event (failed, rate_limited, ip_blocked, ...)."""
        await self.audit(token, event, context)
        await self.session.commit()

    async def audit(
        self,
        token: AccessToken,
        event: AuditEvent,
        context: Mapping[str, Any] | None = None,
    ) -> None:
        """
        Write one audit entry without ever failing the caller.

        The write runs in a SAVEPOINT so a failed insert cannot poison the
        surrounding transaction. Failures are logged and counted only.
        """
        driver_name = self.settings.default_audit_driver
        try:
            driver = self.audit_driver()
            async with self.session.begin_nested():
                await driver.log(self.session, token, event, context)
        except Exception as e:
            logger.warning(
                "audit_log_failed",
                token_id=str(token.id),
                audit_event=event.value,
                driver=driver_name,
                error=str(e),
            )
            self.metrics.record_audit_failure(event.value)
