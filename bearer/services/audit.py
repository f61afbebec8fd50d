"""
Audit Drivers - append-only trail of token lifecycle events.

Callers never let an audit failure escape; see BearerManager.audit().
"""

from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bearer.db.models import AccessToken, AccessTokenAuditLog
from bearer.models.enums import AuditEvent
from bearer.observability.logging import get_logger
from bearer.registry import Registry

logger = get_logger(__name__)

# Request context keys stored in dedicated columns instead of metadata
_REQUEST_KEYS = ("ip_address", "user_agent")


class AuditDriver(ABC):
    """Contract for audit sinks."""

    @abstractmethod
    async def log(
        self,
        session: AsyncSession,
        token: AccessToken,
        event: AuditEvent,
        context: Mapping[str, Any] | None = None,
    ) -> None: ...

    async def logs_for_token(
        self, session: AsyncSession, token: AccessToken
    ) -> Sequence[AccessTokenAuditLog]:
        """Drivers that do not persist have nothing to return."""
        return []


class DatabaseAuditDriver(AuditDriver):
    """Writes rows to access_token_audit_logs in the caller's session."""

    async def log(
        self,
        session: AsyncSession,
        token: AccessToken,
        event: AuditEvent,
        context: Mapping[str, Any] | None = None,
    ) -> None:
        data = dict(context or {})
        entry = AccessTokenAuditLog(
            token_id=token.id,
            event=event.value,
            ip_address=data.pop("ip_address", None),
            user_agent=data.pop("user_agent", None),
            event_metadata=data,
        )
        session.add(entry)
        await session.flush()

    async def logs_for_token(
        self, session: AsyncSession, token: AccessToken
    ) -> Sequence[AccessTokenAuditLog]:
        stmt = (
            select(AccessTokenAuditLog)
            .where(AccessTokenAuditLog.token_id == token.id)
            .order_by(AccessTokenAuditLog.created_at)
        )
        result = await session.execute(stmt)
        return result.scalars().all()


class LogAuditDriver(AuditDriver):
    """Emits one structured log line per event (no persistence)."""

    async def log(
        self,
        session: AsyncSession,
        token: AccessToken,
        event: AuditEvent,
        context: Mapping[str, Any] | None = None,
    ) -> None:
        data = dict(context or {})
        logger.info(
            "token_audit_event",
            audit_event=event.value,
            token_id=str(token.id),
            token_type=token.type,
            owner=f"{token.owner_type}:{token.owner_id}",
            **{key: data.pop(key) for key in _REQUEST_KEYS if key in data},
            metadata=data,
        )


class NullAuditDriver(AuditDriver):
    async def log(
        self,
        session: AsyncSession,
        token: AccessToken,
        event: AuditEvent,
        context: Mapping[str, Any] | None = None,
    ) -> None:
        return None


def build_audit_registry(default: str | None = None) -> Registry[AuditDriver]:
    registry: Registry[AuditDriver] = Registry("audit driver", default=default)
    registry.register("database", DatabaseAuditDriver())
    registry.register("log", LogAuditDriver())
    registry.register("null", NullAuditDriver())
    return registry
