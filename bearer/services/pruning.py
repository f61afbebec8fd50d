"""
Pruning Service - delete stale tokens and old audit log entries.

Meant to be run on a schedule (see scripts/prune_tokens.py); nothing in the
engine calls it implicitly.
"""

from datetime import UTC, datetime, timedelta

from sqlalchemy import delete, or_
from sqlalchemy.ext.asyncio import AsyncSession

from bearer.config import Settings
from bearer.db.models import AccessToken, AccessTokenAuditLog
from bearer.models.domain import PruneResult
from bearer.observability.logging import get_logger

logger = get_logger(__name__)


class PruningService:
    """Retention enforcement for tokens and audit logs."""

    def __init__(self, session: AsyncSession, settings: Settings) -> None:
        self.session = session
        self.settings = settings

    async def prune_tokens(
        self, hours: int | None = None, now: datetime | None = None
    ) -> PruneResult:
        """
        Delete tokens that expired or were revoked more than `hours` ago.

        Defaults to settings.prune_expired_hours. Scheduled revocations still
        in the future are never pruned.
        """
        hours = self.settings.prune_expired_hours if hours is None else hours
        if hours < 0:
            raise ValueError("hours cannot be negative")
        cutoff = (now or datetime.now(UTC)) - timedelta(hours=hours)

        stmt = (
            delete(AccessToken)
            .where(or_(AccessToken.expires_at < cutoff, AccessToken.revoked_at < cutoff))
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        await self.session.commit()

        count = result.rowcount or 0
        summary = f"Pruned {count} expired or revoked token(s) older than {hours} hour(s)."
        logger.info("tokens_pruned", count=count, hours=hours, cutoff=cutoff.isoformat())
        return PruneResult(count=count, summary=summary)

    async def prune_audit_logs(
        self, days: int | None = None, now: datetime | None = None
    ) -> PruneResult:
        """Delete audit log entries older than `days` (default settings.audit_retention_days)."""
        days = self.settings.audit_retention_days if days is None else days
        if days < 0:
            raise ValueError("days cannot be negative")
        cutoff = (now or datetime.now(UTC)) - timedelta(days=days)

        stmt = (
            delete(AccessTokenAuditLog)
            .where(AccessTokenAuditLog.created_at < cutoff)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        await self.session.commit()

        count = result.rowcount or 0
        noun = "entry" if count == 1 else "entries"
        summary = f"Pruned {count} audit log {noun} older than {days} day(s)."
        logger.info("audit_logs_pruned", count=count, days=days, cutoff=cutoff.isoformat())
        return PruneResult(count=count, summary=summary)
