"""
services/auth_service.py — Credential lifecycle and profile business logic.

Responsibilities:
  - Registration, login, refresh-token rotation, logout
  - Current-user profile read with best-effort PII decryption
  - Partial profile update (password change revokes every session)
  - Address list mutations under one encrypted blob

Layer rules:
  - No imports from routes or schemas
  - No use of flask.request, flask.g, or HTTP status codes
  - current_app.config is used ONLY to read secrets, TTLs and policy flags
  - Functions take a Session and plain values; routes commit

Token design:
  - Access token: JWT (token_service), 15 min TTL, sub = user_id
  - Refresh token: 256-bit random secret stored as SHA-256 hash only, 7 day
    TTL, single use. Every refresh revokes the presented token (conditional
    UPDATE, exactly one concurrent caller wins) and issues a new pair.
  - Password change revokes ALL of the user's refresh tokens and stamps
    password_changed_at, which also invalidates older access tokens.

PII handling:
  - Email is looked up only via sha256_hex(normalize_email(email)).
  - Email, phone and the address list are AES-GCM encrypted at rest.
  - Nothing sensitive is logged: audit events carry ids and field names only.
"""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass
from typing import Any

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.app.errors import (
    AuthError,
    ConflictError,
    DecryptionError,
    ErrorCode,
    InternalError,
    InvalidInputError,
    NotFoundError,
)
from backend.app.models.user import User
from backend.app.repositories import refresh_token_store, user_directory
from backend.app.services import token_service
from backend.app.services.encryption_service import decrypt_data, encrypt_data
from backend.app.services.log_service import log_error, log_event
from backend.app.services.password_service import hash_password, verify_password
from backend.app.services.profile_patch import ProfilePatch
from backend.app.utils.clock import as_utc, utcnow
from backend.app.utils.crypto_util import normalize_email, sha256_hex

# Profile columns copied from a patch without transformation.
_PLAIN_PROFILE_FIELDS = (
    "first_name",
    "last_name",
    "language",
    "default_currency",
    "is_member",
    "status",
    "disabled_reason",
    "profile_image_url",
)


@dataclass(frozen=True)
class FieldResult:
    """Outcome of decrypting one PII column: a value or the error that hid it."""

    value: Any = None
    error: DecryptionError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


# ── Private helpers ────────────────────────────────────────────────────────

def _enc_key() -> str:
    return current_app.config["AUTH_ENC_KEY"]


def _new_address_id() -> str:
    return str(uuid.uuid4())


def _decrypt_field(cipher: str | None, key: str, *, as_list: bool = False) -> FieldResult:
    if cipher is None:
        return FieldResult([] if as_list else None)
    try:
        plaintext = decrypt_data(cipher, key)
    except DecryptionError as exc:
        return FieldResult(error=exc)
    if not as_list:
        return FieldResult(plaintext)
    try:
        value = json.loads(plaintext)
    except ValueError as exc:
        return FieldResult(error=DecryptionError(f"Stored list is not JSON: {exc}"))
    if not isinstance(value, list):
        return FieldResult(error=DecryptionError("Stored value is not a list."))
    return FieldResult(value)


def _require_user(session: Session, user_id: str) -> User:
    user = user_directory.find_user_by_id(session, user_id)
    if user is None:
        raise NotFoundError(ErrorCode.USER_NOT_FOUND, f"User {user_id} not found.")
    return user


def _create_access_token(user: User) -> str:
    config = current_app.config
    return token_service.create_access_token(
        user,
        config["JWT_SECRET_KEY"],
        ttl=config["JWT_ACCESS_TOKEN_EXPIRES"],
        algorithm=config.get("JWT_ALGORITHM", "HS256"),
    )


def _create_refresh_token(
        user: User,
        session: Session,
        ip: str | None,
        user_agent: str | None,
) -> str:
    """
    Creates a new refresh token, stores its hash, and returns the raw value
    to be sent to the client once.
    """
    raw_token = token_service.generate_refresh_token()
    refresh_token_store.store_refresh_token(
        session,
        user_id=user.user_id,
        token_hash=token_service.hash_refresh_token(raw_token),
        expires_at=utcnow() + current_app.config["JWT_REFRESH_TOKEN_EXPIRES"],
        user_agent=user_agent,
        ip_address=ip,
    )
    return raw_token


def _build_token_pair(
        user: User,
        session: Session,
        ip: str | None,
        user_agent: str | None,
) -> dict:
    return {
        "user_id": user.user_id,
        "access_token": _create_access_token(user),
        "refresh_token": _create_refresh_token(user, session, ip, user_agent),
    }


def _isoformat(value) -> str | None:
    return as_utc(value).isoformat() if value is not None else None


def _build_user_dict(user: User, email, phone, addresses) -> dict:
    """Serialises a User plus its decrypted PII. No business logic."""
    return {
        "user_id": user.user_id,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "email": email,
        "phone": phone,
        "addresses": addresses,
        "profile_image_url": user.profile_image_url,
        "language": user.language,
        "default_currency": user.default_currency,
        "is_member": bool(user.is_member),
        "status": user.status,
        "created_at": _isoformat(user.created_at),
        "updated_at": _isoformat(user.updated_at),
    }


def _load_addresses(user: User, key: str) -> list[dict]:
    """
    Decrypts the address list for a mutation. Unlike reads, a mutation must
    not degrade: writing back an empty list would destroy the stored data.
    """
    result = _decrypt_field(user.addresses_cipher, key, as_list=True)
    if not result.ok:
        log_error("addresses_decrypt_error", user_id=user.user_id)
        raise InternalError(
            ErrorCode.PII_DECRYPTION_FAILED,
            "Stored addresses could not be read.",
        )
    return list(result.value)


def _store_addresses(session: Session, user: User, addresses: list[dict], key: str) -> None:
    user_directory.update_user(session, user, {
        "addresses_cipher": encrypt_data(json.dumps(addresses), key),
    })


# ── Public service functions ───────────────────────────────────────────────

def register_user(
        email: str | None,
        password: str | None,
        first_name: str | None,
        last_name: str | None,
        session: Session,
        *,
        phone: str | None = None,
        addresses: list[dict] | None = None,
        profile_image_url: str | None = None,
        language: str | None = None,
        default_currency: str | None = None,
        is_member: bool = False,
        ip: str | None = None,
        user_agent: str | None = None,
) -> dict:
    """
    Creates a new user account and issues an access + refresh token pair.

    Raises:
      InvalidInputError(MISSING_FIELD, 400) — email/password/names absent
      ConflictError(DUPLICATE_EMAIL, 409)   — normalized email already registered

    Returns: {"user_id": "...", "access_token": "...", "refresh_token": "..."}
    """
    email_norm = normalize_email(email)
    for name, value in (
            ("email", email_norm),
            ("password", password),
            ("first_name", first_name),
            ("last_name", last_name),
    ):
        if not value:
            raise InvalidInputError(
                ErrorCode.MISSING_FIELD,
                "Missing required fields.",
                field=name,
            )

    email_hash = sha256_hex(email_norm)
    if user_directory.email_hash_taken(session, email_hash):
        raise ConflictError(
            ErrorCode.DUPLICATE_EMAIL,
            "An account with this email address already exists.",
            field="email",
        )

    key = _enc_key()
    stored_addresses = None
    if addresses is not None:
        # Server-generated ids; any client-supplied id is replaced.
        stored_addresses = encrypt_data(
            json.dumps([{**address, "id": _new_address_id()} for address in addresses]),
            key,
        )

    user = user_directory.insert_user(
        session,
        email_hash=email_hash,
        email_cipher=encrypt_data(email_norm, key),
        phone_cipher=encrypt_data(str(phone), key) if phone else None,
        addresses_cipher=stored_addresses,
        first_name=first_name,
        last_name=last_name,
        password_hash=hash_password(password, current_app.config.get("BCRYPT_LOG_ROUNDS", 12)),
        profile_image_url=profile_image_url,
        language=language or "en",
        default_currency=default_currency or "USD",
        is_member=bool(is_member),
        status="active",
        disabled_reason=None,
        created_ip=ip,
        user_agent=user_agent,
    )

    tokens = _build_token_pair(user, session, ip, user_agent)
    log_event("register_success", user_id=user.user_id)
    return tokens


def login_user(
        email: str | None,
        password: str | None,
        session: Session,
        *,
        ip: str | None = None,
        user_agent: str | None = None,
) -> dict:
    """
    Validates credentials and issues a new access + refresh token pair.

    Raises:
      AuthError(INVALID_CREDENTIALS, 401) — email unknown or password wrong.
        Uses the same error for both to avoid account enumeration.
      AuthError(ACCOUNT_DISABLED, 401) — correct password, disabled account.

    Returns: {"user_id": "...", "access_token": "...", "refresh_token": "..."}
    """
    email_norm = normalize_email(email)
    user = None
    if email_norm:
        user = user_directory.find_user_by_email_hash(session, sha256_hex(email_norm))

    if user is None or not verify_password(password, user.password_hash):
        log_event("login_failed")
        raise AuthError(
            ErrorCode.INVALID_CREDENTIALS,
            "Invalid credentials.",
        )

    if user.status != "active":
        log_event("login_rejected_disabled", user_id=user.user_id)
        raise AuthError(
            ErrorCode.ACCOUNT_DISABLED,
            "This account is disabled.",
        )

    user_directory.update_last_login(session, user, ip)
    tokens = _build_token_pair(user, session, ip, user_agent)
    log_event("login_success", user_id=user.user_id)
    return tokens


def refresh_session(
        raw_refresh_token: str | None,
        session: Session,
        *,
        ip: str | None = None,
        user_agent: str | None = None,
) -> dict:
    """
    Rotates a refresh token: revokes the presented one and issues a new pair.

    Raises:
      AuthError(REFRESH_TOKEN_MISSING, 401) — nothing presented
      AuthError(REFRESH_TOKEN_INVALID, 401) — unknown, already used/revoked,
        lost a concurrent rotation, or owner gone/disabled
      AuthError(REFRESH_TOKEN_EXPIRED, 401) — past expires_at; the row is
        revoked and that revocation is committed before raising

    Returns: {"user_id": "...", "access_token": "...", "refresh_token": "..."}
    """
    if not raw_refresh_token:
        raise AuthError(ErrorCode.REFRESH_TOKEN_MISSING, "No refresh token.")

    token_hash = token_service.hash_refresh_token(raw_refresh_token)
    record = refresh_token_store.get_active_refresh_token(session, token_hash)
    if record is None:
        raise AuthError(ErrorCode.REFRESH_TOKEN_INVALID, "Invalid refresh token.")

    user_id = record.user_id
    now = utcnow()
    if as_utc(record.expires_at) <= now:
        refresh_token_store.revoke_refresh_token(session, token_hash, now)
        # The route never commits on error; persist the revocation here.
        session.commit()
        log_event("refresh_rejected_expired", user_id=user_id)
        raise AuthError(ErrorCode.REFRESH_TOKEN_EXPIRED, "Refresh token expired.")

    if not refresh_token_store.revoke_refresh_token(session, token_hash, now):
        # Another request rotated this token between our SELECT and UPDATE.
        log_event("refresh_rejected_replay", user_id=user_id)
        raise AuthError(ErrorCode.REFRESH_TOKEN_INVALID, "Invalid refresh token.")

    user = user_directory.find_user_by_id(session, user_id)
    if user is None or user.status != "active":
        raise AuthError(ErrorCode.REFRESH_TOKEN_INVALID, "Invalid refresh token.")

    tokens = _build_token_pair(user, session, ip, user_agent)
    log_event("refresh_success", user_id=user_id)
    return tokens


def logout_user(raw_refresh_token: str | None, session: Session) -> None:
    """
    Best-effort revocation of the presented refresh token.

    Never raises: a missing, unknown or already-revoked token is a no-op, and
    a persistence failure is logged and rolled back.
    """
    if not raw_refresh_token:
        return

    token_hash = token_service.hash_refresh_token(raw_refresh_token)
    try:
        revoked = refresh_token_store.revoke_refresh_token(session, token_hash)
    except SQLAlchemyError as exc:
        session.rollback()
        log_error("logout_error", message=type(exc).__name__)
        return

    if revoked:
        log_event("logout_success")


def get_current_user(user_id: str, session: Session) -> dict:
    """
    Returns the profile of the currently authenticated user with PII decrypted.

    A PII column that fails to decrypt is reported via `pii_decrypt_error` and:
      PII_DECRYPT_FAIL_CLOSED False → that field is null ([] for addresses)
      PII_DECRYPT_FAIL_CLOSED True  → InternalError(PII_DECRYPTION_FAILED, 500)

    Raises:
      NotFoundError(USER_NOT_FOUND, 404) — user_id from the token no longer exists.
    """
    user = _require_user(session, user_id)
    key = _enc_key()

    results = {
        "email": _decrypt_field(user.email_cipher, key),
        "phone": _decrypt_field(user.phone_cipher, key),
        "addresses": _decrypt_field(user.addresses_cipher, key, as_list=True),
    }
    failed = [name for name, result in results.items() if not result.ok]
    if failed:
        log_error("pii_decrypt_error", user_id=user.user_id, fields=failed)
        if current_app.config.get("PII_DECRYPT_FAIL_CLOSED", False):
            raise InternalError(
                ErrorCode.PII_DECRYPTION_FAILED,
                "Stored profile data could not be read.",
            )

    return _build_user_dict(
        user,
        email=results["email"].value,
        phone=results["phone"].value,
        addresses=results["addresses"].value if results["addresses"].ok else [],
    )


def update_profile(user_id: str, patch: ProfilePatch, session: Session) -> dict:
    """
    Applies the fields present in `patch` and nothing else.

      email    → renormalized; email_hash and email_cipher recomputed
      phone    → re-encrypted; None or "" clears it
      password → rehashed, password_changed_at stamped, and every refresh
                 token of the user revoked (all devices must log in again)

    Raises:
      NotFoundError(USER_NOT_FOUND, 404)
      InvalidInputError(INVALID_FIELD, 400) — email normalizes to empty
      ConflictError(DUPLICATE_EMAIL, 409)   — email belongs to another user
    """
    user = _require_user(session, user_id)
    changes = patch.present()
    if not changes:
        return {"ok": True}

    key = _enc_key()
    updates: dict[str, Any] = {
        name: changes[name] for name in _PLAIN_PROFILE_FIELDS if name in patch
    }

    if "email" in patch:
        email_norm = normalize_email(patch.email)
        if not email_norm:
            raise InvalidInputError(
                ErrorCode.INVALID_FIELD,
                "Email must not be empty.",
                field="email",
            )
        email_hash = sha256_hex(email_norm)
        if email_hash != user.email_hash and user_directory.email_hash_taken(
                session, email_hash, exclude_user_id=user.user_id,
        ):
            raise ConflictError(
                ErrorCode.DUPLICATE_EMAIL,
                "An account with this email address already exists.",
                field="email",
            )
        updates["email_hash"] = email_hash
        updates["email_cipher"] = encrypt_data(email_norm, key)

    if "phone" in patch:
        phone = patch.phone
        updates["phone_cipher"] = encrypt_data(str(phone), key) if phone else None

    revoked_sessions = None
    if "password" in patch and patch.password:
        updates["password_hash"] = hash_password(
            patch.password,
            current_app.config.get("BCRYPT_LOG_ROUNDS", 12),
        )
        updates["password_changed_at"] = utcnow()
        revoked_sessions = refresh_token_store.revoke_all_user_refresh_tokens(
            session, user.user_id,
        )

    user_directory.update_user(session, user, updates)

    log_event("profile_updated", user_id=user.user_id, fields=sorted(changes))
    if revoked_sessions is not None:
        log_event("password_changed", user_id=user.user_id, revoked_sessions=revoked_sessions)
    return {"ok": True}


def add_address(user_id: str, address: dict, session: Session) -> dict:
    """Appends an address and returns its server-generated id: {"id": "..."}."""
    user = _require_user(session, user_id)
    key = _enc_key()
    addresses = _load_addresses(user, key)

    address_id = _new_address_id()
    addresses.append({**address, "id": address_id})
    _store_addresses(session, user, addresses, key)

    log_event("address_added", user_id=user.user_id, address_id=address_id)
    return {"id": address_id}


def update_address(user_id: str, address_id: str, changes: dict, session: Session) -> dict:
    """
    Merges `changes` into the address with `address_id`. The id itself is immutable.

    Raises:
      NotFoundError(ADDRESS_NOT_FOUND, 404)
    """
    user = _require_user(session, user_id)
    key = _enc_key()
    addresses = _load_addresses(user, key)

    for index, existing in enumerate(addresses):
        if existing.get("id") == address_id:
            addresses[index] = {**existing, **changes, "id": address_id}
            break
    else:
        raise NotFoundError(ErrorCode.ADDRESS_NOT_FOUND, "Address not found.")

    _store_addresses(session, user, addresses, key)
    log_event("address_updated", user_id=user.user_id, address_id=address_id)
    return {"ok": True}


def delete_address(user_id: str, address_id: str, session: Session) -> dict:
    """
    Removes the address with `address_id`.

    Raises:
      NotFoundError(ADDRESS_NOT_FOUND, 404) — unknown id (including one
        already deleted)
    """
    user = _require_user(session, user_id)
    key = _enc_key()
    addresses = _load_addresses(user, key)

    remaining = [address for address in addresses if address.get("id") != address_id]
    if len(remaining) == len(addresses):
        raise NotFoundError(ErrorCode.ADDRESS_NOT_FOUND, "Address not found.")

    _store_addresses(session, user, remaining, key)
    log_event("address_deleted", user_id=user.user_id, address_id=address_id)
    return {"ok": True}
