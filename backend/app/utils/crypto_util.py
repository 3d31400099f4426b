"""
utils/crypto_util.py — Small stateless crypto helpers.

  normalize_email  — canonical form used for the lookup hash and the cipher
  sha256_hex       — deterministic one-way hash (email lookup, refresh tokens)
  base64url        — URL/cookie-safe encoding without padding
  generate_token   — CSPRNG bytes encoded with base64url
"""

from __future__ import annotations

import base64
import hashlib
import secrets


def normalize_email(email: str | None) -> str:
    return str(email or "").strip().lower()


def sha256_hex(value: str) -> str:
    """Lower-case hex SHA-256 digest of the UTF-8 encoding of `value`."""
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def base64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def generate_token(nbytes: int = 32) -> str:
    """Random token of `nbytes` bytes (256 bits by default), base64url-encoded."""
    return base64url(secrets.token_bytes(nbytes))
