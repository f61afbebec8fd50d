"""
Database Models - SQLAlchemy ORM models with strict typing.

All columns use Mapped[] type annotations. Column types are portable between
PostgreSQL (JSONB, native UUID) and SQLite (JSON text, CHAR(32) UUID).
"""

from collections.abc import Iterable, Mapping
from datetime import UTC, datetime
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    TypeDecorator,
    Uuid,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

JSONType = JSON().with_variant(JSONB(), "postgresql")


class UTCDateTime(TypeDecorator[datetime]):
    """Timezone-aware datetime that always comes back as UTC."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Any) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Any) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


def utc_now() -> datetime:
    """Get current UTC timestamp."""
    return datetime.now(UTC)


class AccessTokenGroup(Base):
    """
    ORM model for access_token_groups table.

    Sibling tokens issued together (typically one per type) share a group.
    """

    __tablename__ = "access_token_groups"

    # Primary Key
    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)

    # Owner reference (type tag + id)
    owner_type: Mapped[str] = mapped_column(String(255), nullable=False)
    owner_id: Mapped[str] = mapped_column(String(255), nullable=False)

    # Shared attributes
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    # Database column is "metadata"; Python uses group_metadata to avoid the Base.metadata clash
    group_metadata: Mapped[dict[str, Any]] = mapped_column(
        "metadata", JSONType, nullable=False, default=dict
    )

    # Audit timestamps
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=utc_now, onupdate=utc_now
    )

    tokens: Mapped[list["AccessToken"]] = relationship(
        "AccessToken",
        lazy="selectin",
        order_by="AccessToken.created_at",
        viewonly=True,
    )

    __table_args__ = (Index("idx_access_token_groups_owner", "owner_type", "owner_id"),)

    def token(self, token_type: str) -> "AccessToken | None":
        """First member token of the given type."""
        return next((t for t in self.tokens if t.type == token_type), None)

    def helper_token(self, alias: str, helpers: Mapping[str, str]) -> "AccessToken | None":
        """Member token for a helper alias such as 'secret' or 'publishable'."""
        token_type = helpers.get(alias)
        if token_type is None:
            return None
        return self.token(token_type)

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"<AccessTokenGroup(id={self.id}, name={self.name}, "
            f"owner={self.owner_type}:{self.owner_id})>"
        )


class AccessToken(Base):
    """
    ORM model for access_tokens table.

    Stores only the one-way hash of each secret. The plaintext is returned
    once, at issuance, and never persisted.
    """

    __tablename__ = "access_tokens"

    # Primary Key
    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)

    # Owner / context / boundary references (type tag + id)
    owner_type: Mapped[str] = mapped_column(String(255), nullable=False)
    owner_id: Mapped[str] = mapped_column(String(255), nullable=False)
    context_type: Mapped[str | None] = mapped_column(String(255), nullable=True)
    context_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    boundary_type: Mapped[str | None] = mapped_column(String(255), nullable=True)
    boundary_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Grouping and derivation hierarchy
    group_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("access_token_groups.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    parent_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("access_tokens.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    depth: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Classification
    type: Mapped[str] = mapped_column(String(32), nullable=False)
    environment: Mapped[str] = mapped_column(String(32), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    prefix: Mapped[str] = mapped_column(String(32), nullable=False, index=True)

    # Hashed secret (sha256/sha512 hex or argon2 encoded hash)
    token: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)

    # Authorization
    abilities: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)

    # Metadata (issuer-set) and derived metadata (set only by derivation)
    token_metadata: Mapped[dict[str, Any]] = mapped_column(
        "metadata", JSONType, nullable=False, default=dict
    )
    derived_metadata: Mapped[dict[str, Any]] = mapped_column(
        JSONType, nullable=False, default=dict
    )

    # Restrictions
    allowed_ips: Mapped[list[str] | None] = mapped_column(JSONType, nullable=True)
    allowed_domains: Mapped[list[str] | None] = mapped_column(JSONType, nullable=True)
    rate_limit_per_minute: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Lifecycle
    last_used_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    expires_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True, index=True)
    revoked_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True, index=True)

    # Audit timestamps
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=utc_now, onupdate=utc_now
    )

    __table_args__ = (
        Index("idx_access_tokens_owner", "owner_type", "owner_id"),
        Index("idx_access_tokens_context", "context_type", "context_id"),
        Index("idx_access_tokens_boundary", "boundary_type", "boundary_id"),
        Index("idx_access_tokens_type_env", "type", "environment"),
    )

    @staticmethod
    def are_abilities_subset(requested: Iterable[str], parent: Iterable[str]) -> bool:
        """True when every requested ability is held by the parent ('*' holds all)."""
        parent_set = set(parent)
        if "*" in parent_set:
            return True
        return set(requested) <= parent_set

    def can(self, ability: str) -> bool:
        return "*" in self.abilities or ability in self.abilities

    def cant(self, ability: str) -> bool:
        return not self.can(ability)

    def is_expired(self, at: datetime | None = None) -> bool:
        at = at or utc_now()
        return self.expires_at is not None and self.expires_at <= at

    def is_revoked(self, at: datetime | None = None) -> bool:
        """Revoked once revoked_at has been reached; a future value is a scheduled revocation."""
        at = at or utc_now()
        return self.revoked_at is not None and self.revoked_at <= at

    def is_valid(self, at: datetime | None = None) -> bool:
        return not self.is_expired(at) and not self.is_revoked(at)

    def is_root(self) -> bool:
        return self.parent_id is None

    def can_derive(self, max_depth: int, at: datetime | None = None) -> bool:
        """Parents must be unrevoked (even if only scheduled), unexpired and below max depth."""
        return self.depth < max_depth and self.revoked_at is None and not self.is_expired(at)

    def owner_ref(self) -> tuple[str, str]:
        return self.owner_type, self.owner_id

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"<AccessToken(id={self.id}, type={self.type}, environment={self.environment}, "
            f"name={self.name}, revoked_at={self.revoked_at})>"
        )


class AccessTokenAuditLog(Base):
    """
    ORM model for access_token_audit_logs table.

    Append-only trail of token lifecycle events.
    """

    __tablename__ = "access_token_audit_logs"

    # Primary Key
    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)

    token_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("access_tokens.id", ondelete="CASCADE"),
        nullable=False,
    )
    event: Mapped[str] = mapped_column(String(32), nullable=False)

    # Request context (set by the transport when known)
    ip_address: Mapped[str | None] = mapped_column(String(45), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(Text, nullable=True)

    event_metadata: Mapped[dict[str, Any]] = mapped_column(
        "metadata", JSONType, nullable=False, default=dict
    )

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utc_now)

    __table_args__ = (
        Index("idx_access_token_audit_logs_token_event", "token_id", "event"),
        Index("idx_access_token_audit_logs_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        """String representation for debugging."""
        return f"<AccessTokenAuditLog(id={self.id}, token_id={self.token_id}, event={self.event})>"
