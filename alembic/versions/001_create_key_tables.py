"""Create workspaces, key_auth, keys and audit_logs tables.

Revision ID: 001
Revises:
Create Date: 2026-10-17

Adds:
- workspaces - tenant boundary for keys and audit entries
- key_auth - groups the keys of one protected API
- keys - hashed API keys with mutable attributes
  - Only the SHA-256 hash is stored, never the raw key
  - for_workspace_id marks root keys and the workspace they administer
  - The four ratelimit_* columns are all set or all NULL (CHECK constraint)
- audit_logs - append-only record of administrative actions

Indexes:
- ix_keys_key_auth_id - listing keys per API
- ix_keys_workspace_id - listing keys per workspace
- ix_audit_workspace_time - workspace audit history
- ix_audit_key_auth - per-API audit history
"""

from __future__ import annotations

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create key tables with indexes and constraints."""
    op.create_table(
        "workspaces",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )

    op.create_table(
        "key_auth",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("workspace_id", sa.String(64), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.ForeignKeyConstraint(
            ["workspace_id"],
            ["workspaces.id"],
            name="fk_key_auth_workspace_id",
            ondelete="CASCADE",
        ),
    )
    op.create_index("ix_key_auth_workspace_id", "key_auth", ["workspace_id"])

    op.create_table(
        "keys",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("key_auth_id", sa.String(64), nullable=False),
        sa.Column("workspace_id", sa.String(64), nullable=False),

        # Security - only hash stored, never raw key
        sa.Column(
            "hash",
            sa.String(64),
            nullable=False,
            unique=True,
            comment="SHA-256 hash of the raw key (never store raw key)",
        ),
        sa.Column(
            "start",
            sa.String(16),
            nullable=False,
            comment="First characters of the key for identification",
        ),
        sa.Column("for_workspace_id", sa.String(64), nullable=True),

        # Mutable attributes
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column(
            "owner_id",
            sa.String(255),
            nullable=True,
            comment="Caller-defined reference to the tenant using this key",
        ),
        sa.Column(
            "meta",
            sa.Text(),
            nullable=True,
            comment="JSON-serialized metadata object",
        ),
        sa.Column(
            "expires",
            sa.DateTime(timezone=True),
            nullable=True,
            comment="Expiration timestamp (None = never expires)",
        ),
        sa.Column(
            "remaining",
            sa.Integer(),
            nullable=True,
            comment="Uses left before the key becomes invalid (None = unlimited)",
        ),

        # Rate limiting
        sa.Column("ratelimit_type", sa.String(16), nullable=True),
        sa.Column("ratelimit_limit", sa.Integer(), nullable=True),
        sa.Column("ratelimit_refill_rate", sa.Integer(), nullable=True),
        sa.Column(
            "ratelimit_refill_interval",
            sa.Integer(),
            nullable=True,
            comment="Refill interval in milliseconds",
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),

        # Foreign keys
        sa.ForeignKeyConstraint(
            ["key_auth_id"],
            ["key_auth.id"],
            name="fk_keys_key_auth_id",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["workspace_id"],
            ["workspaces.id"],
            name="fk_keys_workspace_id",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["for_workspace_id"],
            ["workspaces.id"],
            name="fk_keys_for_workspace_id",
            ondelete="CASCADE",
        ),
        sa.CheckConstraint(
            "(ratelimit_type IS NULL) = (ratelimit_limit IS NULL)"
            " AND (ratelimit_type IS NULL) = (ratelimit_refill_rate IS NULL)"
            " AND (ratelimit_type IS NULL) = (ratelimit_refill_interval IS NULL)",
            name="ck_keys_ratelimit_all_or_nothing",
        ),
    )
    op.create_index("ix_keys_key_auth_id", "keys", ["key_auth_id"])
    op.create_index("ix_keys_workspace_id", "keys", ["workspace_id"])

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column(
            "time",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column("workspace_id", sa.String(64), nullable=False),
        sa.Column("actor_type", sa.String(32), nullable=False),
        sa.Column("actor_id", sa.String(64), nullable=False),
        sa.Column("event", sa.String(128), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("key_auth_id", sa.String(64), nullable=True),
        sa.ForeignKeyConstraint(
            ["workspace_id"],
            ["workspaces.id"],
            name="fk_audit_logs_workspace_id",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["key_auth_id"],
            ["key_auth.id"],
            name="fk_audit_logs_key_auth_id",
            ondelete="SET NULL",
        ),
    )
    op.create_index("ix_audit_workspace_time", "audit_logs", ["workspace_id", "time"])
    op.create_index("ix_audit_key_auth", "audit_logs", ["key_auth_id"])


def downgrade() -> None:
    """Drop key tables in reverse dependency order."""
    op.drop_index("ix_audit_key_auth", table_name="audit_logs")
    op.drop_index("ix_audit_workspace_time", table_name="audit_logs")
    op.drop_table("audit_logs")
    op.drop_index("ix_keys_workspace_id", table_name="keys")
    op.drop_index("ix_keys_key_auth_id", table_name="keys")
    op.drop_table("keys")
    op.drop_index("ix_key_auth_workspace_id", table_name="key_auth")
    op.drop_table("key_auth")
    op.drop_table("workspaces")
