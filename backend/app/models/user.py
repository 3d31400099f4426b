"""
models/user.py — User table definition.

No business logic. No imports from services or routes.

PII never appears in plaintext here:
  email_hash        sha256_hex(normalized email) — the only lookup key
  email_cipher      AES-GCM token of the normalized email
  phone_cipher      AES-GCM token of the phone number
  addresses_cipher  AES-GCM token of the JSON address list (one blob per user)

version_id is SQLAlchemy's optimistic-concurrency counter: every UPDATE is
issued as "... WHERE user_id = ? AND version_id = ?", so a concurrent
read-modify-write on the same row raises StaleDataError instead of silently
overwriting the other writer.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.app.extensions import db


def _new_id() -> str:
    return str(uuid.uuid4())


class User(db.Model):
    __tablename__ = "users"

    user_id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=_new_id,
    )

    email_hash: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        unique=True,
    )

    email_cipher: Mapped[str | None] = mapped_column(Text, nullable=True)
    phone_cipher: Mapped[str | None] = mapped_column(Text, nullable=True)
    addresses_cipher: Mapped[str | None] = mapped_column(Text, nullable=True)

    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)

    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    # Access tokens with iat earlier than this are rejected.
    password_changed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="active",
        server_default="active",
    )
    disabled_reason: Mapped[str | None] = mapped_column(String(255), nullable=True)

    profile_image_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    language: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        default="en",
        server_default="en",
    )
    default_currency: Mapped[str] = mapped_column(
        String(3),
        nullable=False,
        default="USD",
        server_default="USD",
    )
    is_member: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default="false",
    )

    # ── Provenance / audit ─────────────────────────────────────────────────
    created_ip: Mapped[str | None] = mapped_column(String(64), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(512), nullable=True)
    last_login_ip: Mapped[str | None] = mapped_column(String(64), nullable=True)
    last_login_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    version_id: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version_id}

    # ── Relationships ──────────────────────────────────────────────────────

    refresh_tokens: Mapped[list["RefreshToken"]] = relationship(  # noqa: F821
        "RefreshToken",
        back_populates="user",
        passive_deletes=True,
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<User user_id={self.user_id!r} status={self.status!r}>"
