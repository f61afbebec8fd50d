"""Create access token, token group and audit log tables.

Revision ID: 2026_10_17_0001
Revises:
Create Date: 2026-10-17

"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "2026_10_17_0001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

JSON = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def upgrade() -> None:
    """Create access_token_groups, access_tokens and access_token_audit_logs."""
    op.create_table(
        "access_token_groups",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("owner_type", sa.String(255), nullable=False),
        sa.Column("owner_id", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("metadata", JSON, nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )
    op.create_index(
        "idx_access_token_groups_owner", "access_token_groups", ["owner_type", "owner_id"]
    )

    op.create_table(
        "access_tokens",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("owner_type", sa.String(255), nullable=False),
        sa.Column("owner_id", sa.String(255), nullable=False),
        sa.Column("context_type", sa.String(255), nullable=True),
        sa.Column("context_id", sa.String(255), nullable=True),
        sa.Column("boundary_type", sa.String(255), nullable=True),
        sa.Column("boundary_id", sa.String(255), nullable=True),
        sa.Column(
            "group_id",
            sa.Uuid(),
            sa.ForeignKey("access_token_groups.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "parent_id",
            sa.Uuid(),
            sa.ForeignKey("access_tokens.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("depth", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("type", sa.String(32), nullable=False),
        sa.Column("environment", sa.String(32), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("prefix", sa.String(32), nullable=False),
        sa.Column("token", sa.String(255), nullable=False, unique=True),
        sa.Column("abilities", JSON, nullable=False),
        sa.Column("metadata", JSON, nullable=False),
        sa.Column("derived_metadata", JSON, nullable=False),
        sa.Column("allowed_ips", JSON, nullable=True),
        sa.Column("allowed_domains", JSON, nullable=True),
        sa.Column("rate_limit_per_minute", sa.Integer(), nullable=True),
        sa.Column("last_used_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )
    op.create_index("ix_access_tokens_group_id", "access_tokens", ["group_id"])
    op.create_index("ix_access_tokens_parent_id", "access_tokens", ["parent_id"])
    op.create_index("ix_access_tokens_prefix", "access_tokens", ["prefix"])
    op.create_index("ix_access_tokens_expires_at", "access_tokens", ["expires_at"])
    op.create_index("ix_access_tokens_revoked_at", "access_tokens", ["revoked_at"])
    op.create_index("idx_access_tokens_owner", "access_tokens", ["owner_type", "owner_id"])
    op.create_index("idx_access_tokens_context", "access_tokens", ["context_type", "context_id"])
    op.create_index(
        "idx_access_tokens_boundary", "access_tokens", ["boundary_type", "boundary_id"]
    )
    op.create_index("idx_access_tokens_type_env", "access_tokens", ["type", "environment"])

    op.create_table(
        "access_token_audit_logs",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "token_id",
            sa.Uuid(),
            sa.ForeignKey("access_tokens.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("event", sa.String(32), nullable=False),
        sa.Column("ip_address", sa.String(45), nullable=True),
        sa.Column("user_agent", sa.Text(), nullable=True),
        sa.Column("metadata", JSON, nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )
    op.create_index(
        "idx_access_token_audit_logs_token_event",
        "access_token_audit_logs",
        ["token_id", "event"],
    )
    op.create_index(
        "idx_access_token_audit_logs_created_at", "access_token_audit_logs", ["created_at"]
    )


def downgrade() -> None:
    """Drop the token tables (audit logs first, then tokens, then groups)."""
    op.drop_index("idx_access_token_audit_logs_created_at", table_name="access_token_audit_logs")
    op.drop_index("idx_access_token_audit_logs_token_event", table_name="access_token_audit_logs")
    op.drop_table("access_token_audit_logs")

    for index in (
        "idx_access_tokens_type_env",
        "idx_access_tokens_boundary",
        "idx_access_tokens_context",
        "idx_access_tokens_owner",
        "ix_access_tokens_revoked_at",
        "ix_access_tokens_expires_at",
        "ix_access_tokens_prefix",
        "ix_access_tokens_parent_id",
        "ix_access_tokens_group_id",
    ):
        op.drop_index(index, table_name="access_tokens")
    op.drop_table("access_tokens")

    op.drop_index("idx_access_token_groups_owner", table_name="access_token_groups")
    op.drop_table("access_token_groups")
