"""
services/encryption_service.py — AES-GCM field encryption for PII at rest.

Token format: base64( iv[12] || ciphertext || tag[16] )

  - A fresh 96-bit IV is drawn for every call, so encrypting the same
    plaintext twice never yields the same token.
  - The key is the raw UTF-8 bytes of a single static secret (16, 24 or 32
    bytes). There is no per-record key derivation and no key id in the token.
  - Pure functions: no module-level cipher objects or encoders.

Failures:
  encrypt_data → CryptoError      (unusable key)
  decrypt_data → DecryptionError  (bad base64, truncated token, failed tag
                                   check, wrong or unusable key)
"""

from __future__ import annotations

import base64
import binascii
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from backend.app.errors import CryptoError, DecryptionError

IV_SIZE = 12
TAG_SIZE = 16


def _load_key(secret: str | bytes | None) -> AESGCM:
    key = secret if isinstance(secret, bytes) else str(secret or "").encode("utf-8")
    try:
        return AESGCM(key)
    except ValueError as exc:
        raise CryptoError(
            "Encryption key must be 16, 24 or 32 bytes long."
        ) from exc


def encrypt_data(plaintext: str, secret: str | bytes) -> str:
    """Encrypts `plaintext` (coerced to str) and returns the transport token."""
    cipher = _load_key(secret)
    iv = os.urandom(IV_SIZE)
    ciphertext = cipher.encrypt(iv, str(plaintext).encode("utf-8"), None)
    return base64.b64encode(iv + ciphertext).decode("ascii")


def decrypt_data(token: str, secret: str | bytes) -> str:
    """Reverses encrypt_data. Never returns wrong plaintext silently."""
    try:
        raw = base64.b64decode(str(token or ""), validate=True)
    except (binascii.Error, ValueError) as exc:
        raise DecryptionError("Ciphertext is not valid base64.") from exc

    if len(raw) < IV_SIZE + TAG_SIZE:
        raise DecryptionError("Ciphertext is too short.")

    try:
        cipher = _load_key(secret)
    except CryptoError as exc:
        raise DecryptionError(str(exc)) from exc

    iv, ciphertext = raw[:IV_SIZE], raw[IV_SIZE:]
    try:
        plaintext = cipher.decrypt(iv, ciphertext, None)
    except InvalidTag as exc:
        raise DecryptionError("Ciphertext failed authentication.") from exc

    try:
        return plaintext.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise DecryptionError("Decrypted payload is not valid UTF-8.") from exc
