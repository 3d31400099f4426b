"""
errors.py — AppError base class, taxonomy subclasses and error code registry.

Every error returned by the API must use a code defined here.
Do not raise strings or generic exceptions from service or route code.

Rules:
  - Error codes are a versioned contract. They do not change once published.
  - Error messages are human-readable prose. They may be improved at any time.
  - Auth failures are always 401 and never reveal which check failed
    (unknown email vs wrong password).
  - CryptoError is internal. It never reaches the caller directly: token
    failures become AuthError, PII failures degrade or become InternalError.
"""

from __future__ import annotations


class AppError(Exception):

    def __init__(
            self,
            code: str,
            message: str,
            http_status: int,
            field: str | None = None,
    ) -> None:
        super().__init__(message)
        self.code        = code
        self.message     = message
        self.http_status = http_status
        self.field       = field  # which request field caused the error

    def to_dict(self) -> dict:
        payload = {
            "error": self.message,
            "code":  self.code,
        }
        if self.field is not None:
            payload["field"] = self.field
        return payload

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(code={self.code!r}, "
            f"http_status={self.http_status}, "
            f"message={self.message!r})"
        )


class InvalidInputError(AppError):
    """Missing or malformed input (400)."""

    def __init__(self, code: str, message: str, field: str | None = None) -> None:
        super().__init__(code, message, 400, field=field)


class AuthError(AppError):
    """Bad credentials or an invalid/expired/revoked token (401)."""

    def __init__(self, code: str, message: str) -> None:
        super().__init__(code, message, 401)


class NotFoundError(AppError):

    def __init__(self, code: str, message: str) -> None:
        super().__init__(code, message, 404)


class ConflictError(AppError):

    def __init__(self, code: str, message: str, field: str | None = None) -> None:
        super().__init__(code, message, 409, field=field)


class InternalError(AppError):
    """Unexpected failure. The message must stay generic."""

    def __init__(self, code: str, message: str) -> None:
        super().__init__(code, message, 500)


class CryptoError(Exception):
    """Field encryption could not be performed (bad key, bad input)."""


class DecryptionError(CryptoError):
    """Ciphertext is malformed, failed authentication, or the key is wrong."""


# ── Error Code Registry ────────────────────────────────────────────────────
#
# Organised by category. HTTP status is indicated in the comment.
#
# IMPORTANT: these are the string values sent in the API response.
# Do not rename them without a major version bump.
# ──────────────────────────────────────────────────────────────────────────

class ErrorCode:

    # ── Schema / Input Errors (400) ────────────────────────────────────────
    MISSING_FIELD              = "MISSING_FIELD"
    INVALID_FIELD              = "INVALID_FIELD"
    BAD_REQUEST                = "BAD_REQUEST"

    # ── Conflict Errors (409) ──────────────────────────────────────────────
    DUPLICATE_EMAIL            = "DUPLICATE_EMAIL"
    CONCURRENT_MODIFICATION    = "CONCURRENT_MODIFICATION"

    # ── Not Found Errors (404) ─────────────────────────────────────────────
    USER_NOT_FOUND             = "USER_NOT_FOUND"
    ADDRESS_NOT_FOUND          = "ADDRESS_NOT_FOUND"
    NOT_FOUND                  = "NOT_FOUND"

    # ── Auth Errors (401) ──────────────────────────────────────────────────
    INVALID_CREDENTIALS        = "INVALID_CREDENTIALS"
    ACCOUNT_DISABLED           = "ACCOUNT_DISABLED"
    TOKEN_MISSING              = "TOKEN_MISSING"
    TOKEN_INVALID              = "TOKEN_INVALID"
    TOKEN_EXPIRED              = "TOKEN_EXPIRED"
    REFRESH_TOKEN_MISSING      = "REFRESH_TOKEN_MISSING"
    REFRESH_TOKEN_INVALID      = "REFRESH_TOKEN_INVALID"
    REFRESH_TOKEN_EXPIRED      = "REFRESH_TOKEN_EXPIRED"

    # ── Other HTTP errors raised by the framework (405 etc.) ──────────────
    METHOD_NOT_ALLOWED         = "METHOD_NOT_ALLOWED"
    HTTP_ERROR                 = "HTTP_ERROR"

    # ── System Errors (500) ────────────────────────────────────────────────
    PII_DECRYPTION_FAILED      = "PII_DECRYPTION_FAILED"
    INTERNAL_ERROR             = "INTERNAL_ERROR"
