"""
repositories/user_directory.py — Persistence for user records.

Users are looked up by primary key or by email_hash only; the plaintext
email is never stored or queried.

Writes go through the ORM so that User.version_id guards every UPDATE
(optimistic concurrency, see models/user.py). A lost race surfaces as
sqlalchemy.orm.exc.StaleDataError at flush time, which the global error
handler turns into 409 CONCURRENT_MODIFICATION.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from backend.app.errors import ConflictError, ErrorCode
from backend.app.models.user import User
from backend.app.utils.clock import utcnow


def find_user_by_email_hash(session: Session, email_hash: str) -> User | None:
    return session.execute(
        select(User).where(User.email_hash == email_hash)
    ).scalar_one_or_none()


def find_user_by_id(session: Session, user_id: str) -> User | None:
    return session.get(User, user_id)


def email_hash_taken(session: Session, email_hash: str, exclude_user_id: str | None = None) -> bool:
    stmt = select(User.user_id).where(User.email_hash == email_hash)
    if exclude_user_id is not None:
        stmt = stmt.where(User.user_id != exclude_user_id)
    return session.execute(stmt.limit(1)).first() is not None


def insert_user(session: Session, **columns: Any) -> User:
    """
    Inserts a user row and flushes it.

    Raises:
      ConflictError(DUPLICATE_EMAIL) — a concurrent registration won the
        email_hash unique constraint after our existence check passed.
    """
    user = User(**columns)
    session.add(user)
    try:
        session.flush()
    except IntegrityError as exc:
        session.rollback()
        raise ConflictError(
            ErrorCode.DUPLICATE_EMAIL,
            "An account with this email address already exists.",
            field="email",
        ) from exc
    return user


def update_user(session: Session, user: User, updates: dict[str, Any]) -> User:
    """
    Applies `updates` column-by-column and flushes. Empty updates are a no-op.

    Raises:
      ConflictError(DUPLICATE_EMAIL) — `updates` moves the user onto an
        email_hash another account claimed after the caller's check.
    """
    if not updates:
        return user
    for column, value in updates.items():
        setattr(user, column, value)
    try:
        session.flush()
    except IntegrityError as exc:
        session.rollback()
        if "email_hash" not in updates:
            raise
        raise ConflictError(
            ErrorCode.DUPLICATE_EMAIL,
            "An account with this email address already exists.",
            field="email",
        ) from exc
    return user


def update_last_login(session: Session, user: User, ip: str | None) -> User:
    return update_user(session, user, {
        "last_login_ip": ip,
        "last_login_at": utcnow(),
    })
