"""Initial schema — users and refresh_tokens.

Revision: 001_initial_schema
Created:  2026-10-19

Append-only:
  This file must NEVER be edited after it has been applied to any database.
  If a schema change is required, create a NEW migration file.

Creation order:
  1. users
  2. refresh_tokens (FK → users.user_id)
  3. Indexes

ON DELETE policies:
  refresh_tokens.user_id → CASCADE (token owned by user)

Notes:
  - No plaintext PII columns: email is stored as email_hash (lookup) plus
    email_cipher (AES-GCM token); phone and addresses likewise.
  - users.version_id backs SQLAlchemy's optimistic concurrency check.
  - refresh_tokens rows are never deleted by the service; revoked_at marks
    them inert.
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

# ── Alembic revision identifiers ──────────────────────────────────────────
revision: str = "001_initial_schema"
down_revision: str | None = None      # first migration, no parent
branch_labels: tuple | None = None
depends_on: tuple | None = None


def upgrade() -> None:
    """Apply the full initial schema."""

    # ── Step 1: users ──────────────────────────────────────────────────────

    op.create_table(
        "users",
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column("email_hash", sa.String(64), nullable=False),
        sa.Column("email_cipher", sa.Text(), nullable=True),
        sa.Column("phone_cipher", sa.Text(), nullable=True),
        sa.Column("addresses_cipher", sa.Text(), nullable=True),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("password_changed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("disabled_reason", sa.String(255), nullable=True),
        sa.Column("profile_image_url", sa.String(512), nullable=True),
        sa.Column("language", sa.String(10), nullable=False, server_default="en"),
        sa.Column("default_currency", sa.String(3), nullable=False, server_default="USD"),
        sa.Column("is_member", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("created_ip", sa.String(64), nullable=True),
        sa.Column("user_agent", sa.String(512), nullable=True),
        sa.Column("last_login_ip", sa.String(64), nullable=True),
        sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True),
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
        sa.Column("version_id", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("user_id", name="pk_users"),
        sa.UniqueConstraint("email_hash", name="uq_users_email_hash"),
    )

    # ── Step 2: refresh_tokens ─────────────────────────────────────────────
    # FK: user_id ON DELETE CASCADE, token is destroyed when user is deleted.

    op.create_table(
        "refresh_tokens",
        sa.Column("token_id", sa.String(36), nullable=False),
        sa.Column(
            "user_id",
            sa.String(36),
            sa.ForeignKey("users.user_id", ondelete="CASCADE", name="fk_refresh_tokens_user"),
            nullable=False,
        ),
        sa.Column("token_hash", sa.String(64), nullable=False),
        sa.Column("user_agent", sa.String(512), nullable=True),
        sa.Column("ip_address", sa.String(64), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.PrimaryKeyConstraint("token_id", name="pk_refresh_tokens"),
        sa.UniqueConstraint("token_hash", name="uq_refresh_tokens_token_hash"),
    )

    # ── Step 3: Indexes ────────────────────────────────────────────────────

    op.create_index("ix_refresh_tokens_user_id", "refresh_tokens", ["user_id"])


def downgrade() -> None:
    """
    Drop all objects created in upgrade(), in reverse dependency order.

    Provided for local development reset. Production schema changes go
    forward through new migrations.
    """
    op.drop_index("ix_refresh_tokens_user_id", table_name="refresh_tokens")
    op.drop_table("refresh_tokens")
    op.drop_table("users")
