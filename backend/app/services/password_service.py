"""
services/password_service.py — bcrypt password hashing.

  - Cost factor comes from config BCRYPT_LOG_ROUNDS (passed in by the caller).
  - verify_password never raises for user-supplied input: a mismatch, an
    empty or malformed stored hash, or an over-long password all return False.
  - Raw passwords are never stored and never logged.
"""

from __future__ import annotations

import bcrypt

# bcrypt only looks at the first 72 bytes; newer releases reject longer input.
MAX_PASSWORD_BYTES = 72


def hash_password(password: str, rounds: int = 12) -> str:
    return bcrypt.hashpw(
        str(password).encode("utf-8"),
        bcrypt.gensalt(rounds=rounds),
    ).decode("utf-8")


def verify_password(password: str, password_hash: str | None) -> bool:
    if not isinstance(password, str) or not password_hash:
        return False
    try:
        # bcrypt.checkpw compares in constant time.
        return bcrypt.checkpw(
            password.encode("utf-8"),
            password_hash.encode("utf-8"),
        )
    except ValueError:
        # Malformed stored hash ("Invalid salt") or password over 72 bytes.
        return False
