"""
repositories/refresh_token_store.py — Persistence for refresh-token records.

Access pattern:
  store_refresh_token          INSERT (hash + provenance + expiry)
  get_active_refresh_token     SELECT by token_hash WHERE revoked_at IS NULL
  revoke_refresh_token         conditional UPDATE, single row
  revoke_all_user_refresh_tokens  conditional UPDATE, every row of a user

Revocation is always "SET revoked_at = now WHERE ... AND revoked_at IS NULL".
The conditional form is what makes rotation safe under concurrency: when two
requests present the same token, the database lets exactly one UPDATE match,
and revoke_refresh_token reports which caller won via its return value.

Nothing here commits. The route owning the request commits or rolls back.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from backend.app.models.refresh_token import RefreshToken
from backend.app.utils.clock import utcnow


def store_refresh_token(
        session: Session,
        *,
        user_id: str,
        token_hash: str,
        expires_at: datetime,
        user_agent: str | None = None,
        ip_address: str | None = None,
) -> RefreshToken:
    record = RefreshToken(
        user_id=user_id,
        token_hash=token_hash,
        expires_at=expires_at,
        user_agent=user_agent,
        ip_address=ip_address,
    )
    session.add(record)
    # flush so the row exists before we return; commit is the route's job
    session.flush()
    return record


def get_active_refresh_token(session: Session, token_hash: str) -> RefreshToken | None:
    """Returns the unrevoked record for `token_hash`. Expiry is the caller's check."""
    return session.execute(
        select(RefreshToken)
        .where(RefreshToken.token_hash == token_hash)
        .where(RefreshToken.revoked_at.is_(None))
        .limit(1)
    ).scalar_one_or_none()


def revoke_refresh_token(
        session: Session,
        token_hash: str,
        now: datetime | None = None,
) -> bool:
    """
    Revokes one token. Returns True only for the caller whose UPDATE matched,
    False if the token is unknown or was already revoked.
    """
    result = session.execute(
        update(RefreshToken)
        .where(RefreshToken.token_hash == token_hash)
        .where(RefreshToken.revoked_at.is_(None))
        .values(revoked_at=now or utcnow())
        .execution_options(synchronize_session="fetch")
    )
    return result.rowcount == 1


def revoke_all_user_refresh_tokens(
        session: Session,
        user_id: str,
        now: datetime | None = None,
) -> int:
    """Revokes every active token of `user_id`. Returns how many were revoked."""
    result = session.execute(
        update(RefreshToken)
        .where(RefreshToken.user_id == user_id)
        .where(RefreshToken.revoked_at.is_(None))
        .values(revoked_at=now or utcnow())
        .execution_options(synchronize_session="fetch")
    )
    return result.rowcount
