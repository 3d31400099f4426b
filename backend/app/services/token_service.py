"""
services/token_service.py — Access-token minting/verification and refresh-token secrets.

Access token (stateless JWT, HS256 by default, 15 min TTL):
  sub         user_id
  iat / exp   epoch seconds
  first_name, last_name, email_hash   non-sensitive display fields
  pwd         exact epoch microseconds of password_changed_at at mint time (0 if never)
  jti         random, so two tokens minted in the same second differ

  A token is accepted only if its signature is valid, it is unexpired, and
  its pwd claim is not older than the user's current password_changed_at.
  Tokens minted before the last password change are therefore rejected even
  while still inside their 15 minutes, including ones minted earlier in the
  same second.

Refresh token:
  256-bit random secret, base64url-encoded. Only sha256_hex(secret) is ever
  persisted; the raw value goes to the client once (cookie).

This module has no Flask or database dependency: secrets, TTLs and the
current password stamp are passed in by the caller.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass, field
from datetime import datetime, timedelta

import jwt

from backend.app.utils.clock import to_epoch_micros, utcnow
from backend.app.utils.crypto_util import generate_token, sha256_hex

ACCESS_TOKEN_TTL = timedelta(minutes=15)
REFRESH_TOKEN_BYTES = 32


class TokenRejection:
    BAD_SIGNATURE    = "bad-signature"
    MALFORMED        = "malformed"
    EXPIRED          = "expired"
    PASSWORD_CHANGED = "password-changed"


@dataclass(frozen=True)
class TokenVerification:
    valid: bool
    claims: dict = field(default_factory=dict)
    reason: str | None = None

    @classmethod
    def accept(cls, claims: dict) -> "TokenVerification":
        return cls(valid=True, claims=claims)

    @classmethod
    def reject(cls, reason: str) -> "TokenVerification":
        return cls(valid=False, reason=reason)


def create_access_token(
        user,
        secret: str,
        *,
        ttl: timedelta = ACCESS_TOKEN_TTL,
        algorithm: str = "HS256",
        now: datetime | None = None,
) -> str:
    """Mints a signed access token for `user` (any object with the User columns)."""
    issued_at = int((now or utcnow()).timestamp())
    payload = {
        "sub": str(user.user_id),
        "iat": issued_at,
        "exp": issued_at + int(ttl.total_seconds()),
        "first_name": user.first_name,
        "last_name": user.last_name,
        "email_hash": user.email_hash,
        "pwd": to_epoch_micros(user.password_changed_at),
        "jti": secrets.token_hex(8),
    }
    return jwt.encode(payload, secret, algorithm=algorithm)


def issued_before_password_change(
        claims: dict,
        password_changed_at: datetime | None = None,
) -> bool:
    """True when the user's password changed after `claims` were minted."""
    return int(claims.get("pwd") or 0) < to_epoch_micros(password_changed_at)


def verify_access_token(
        token: str,
        secret: str,
        *,
        algorithm: str = "HS256",
        password_changed_at: datetime | None = None,
) -> TokenVerification:
    """
    Verifies an access token and returns a TokenVerification. Never raises.

    `password_changed_at` is the user's current stamp; pass None when the
    caller has not loaded the user (the password check is then skipped).
    """
    try:
        claims = jwt.decode(
            token,
            secret,
            algorithms=[algorithm],
            options={"require": ["sub", "iat", "exp"]},
        )
    except jwt.ExpiredSignatureError:
        return TokenVerification.reject(TokenRejection.EXPIRED)
    except jwt.InvalidSignatureError:
        return TokenVerification.reject(TokenRejection.BAD_SIGNATURE)
    except jwt.InvalidTokenError:
        # Covers: undecodable token, wrong algorithm, missing/invalid claims.
        return TokenVerification.reject(TokenRejection.MALFORMED)

    try:
        stale = issued_before_password_change(claims, password_changed_at)
    except (TypeError, ValueError):
        return TokenVerification.reject(TokenRejection.MALFORMED)
    if stale:
        return TokenVerification.reject(TokenRejection.PASSWORD_CHANGED)

    return TokenVerification.accept(claims)


def generate_refresh_token() -> str:
    return generate_token(REFRESH_TOKEN_BYTES)


def hash_refresh_token(raw_token: str) -> str:
    """SHA-256 hex digest of a raw refresh token. This is what gets stored."""
    return sha256_hex(raw_token)
