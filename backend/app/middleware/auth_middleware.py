"""
middleware/auth_middleware.py — Bearer access-token authentication decorator.

The @require_auth decorator:
  1. Reads the Authorization header (expected: "Bearer <token>")
  2. Verifies signature and expiry via token_service.verify_access_token
  3. Loads the user and rejects tokens minted before the user's last
     password change (iat < password_changed_at)
  4. Rejects disabled accounts
  5. Attaches user_id (str) to flask.g for the duration of the request

Services receive user_id as a plain argument, with no knowledge of JWT or
HTTP headers.

Error codes (all 401):
  TOKEN_MISSING    — no Authorization header
  TOKEN_INVALID    — malformed header, bad signature, malformed token,
                     unknown user, or issued before the last password change
  TOKEN_EXPIRED    — valid token but exp claim is in the past
  ACCOUNT_DISABLED — the user's status is not active
"""

from __future__ import annotations

import functools
from typing import Callable

from flask import current_app, g, request

from backend.app.errors import AuthError, ErrorCode
from backend.app.extensions import db
from backend.app.repositories import user_directory
from backend.app.services import token_service
from backend.app.services.token_service import TokenRejection


def require_auth(f: Callable) -> Callable:
    """
    Route decorator that enforces access-token authentication.

    Attaches the authenticated user's ID to flask.g.user_id.
    Raises AuthError for all auth failures — the global error handler converts
    these to the correct JSON response. Routes never catch AppError.
    """
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        _authenticate_request()
        return f(*args, **kwargs)

    return decorated


def _authenticate_request() -> None:
    """
    Performs the full authentication sequence and sets flask.g.user_id.

    Separated from the decorator wrapper for testability.
    """
    auth_header = request.headers.get("Authorization", "")

    # ── Step 1: Require Authorization header ──────────────────────────────
    if not auth_header:
        raise AuthError(
            ErrorCode.TOKEN_MISSING,
            "Authentication required. Provide a Bearer token in the Authorization header.",
        )

    # ── Step 2: Parse "Bearer <token>" format ─────────────────────────────
    parts = auth_header.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise AuthError(
            ErrorCode.TOKEN_INVALID,
            "Authorization header must be in the format: Bearer <token>.",
        )

    # ── Step 3: Verify signature and expiry ───────────────────────────────
    result = token_service.verify_access_token(
        parts[1],
        current_app.config["JWT_SECRET_KEY"],
        algorithm=current_app.config.get("JWT_ALGORITHM", "HS256"),
    )
    if not result.valid:
        if result.reason == TokenRejection.EXPIRED:
            raise AuthError(
                ErrorCode.TOKEN_EXPIRED,
                "The access token has expired. Use POST /auth/refresh to obtain a new one.",
            )
        raise AuthError(
            ErrorCode.TOKEN_INVALID,
            "The access token is invalid or has been tampered with.",
        )

    # ── Step 4: Check against the user's current state ────────────────────
    user = user_directory.find_user_by_id(db.session, str(result.claims["sub"]))
    if user is None:
        raise AuthError(
            ErrorCode.TOKEN_INVALID,
            "The access token refers to an account that no longer exists.",
        )

    if token_service.issued_before_password_change(result.claims, user.password_changed_at):
        raise AuthError(
            ErrorCode.TOKEN_INVALID,
            "The access token was issued before the last password change. Log in again.",
        )

    if user.status != "active":
        raise AuthError(ErrorCode.ACCOUNT_DISABLED, "This account is disabled.")

    # ── Step 5: Attach user_id to flask.g ─────────────────────────────────
    g.user_id = user.user_id
