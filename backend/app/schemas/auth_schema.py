"""
schemas/auth_schema.py — Marshmallow schemas for authentication and profile endpoints.

Validation responsibility:
  - This file: field presence, types, lengths, formats.
  - services/auth_service.py: DUPLICATE_EMAIL checks and anything else that
    needs a DB lookup.

IMPORTANT: All schemas inherit from marshmallow.Schema directly, so unit
           tests can load them without a Flask app context.
"""

from __future__ import annotations

from marshmallow import (
    EXCLUDE,
    Schema,
    ValidationError,
    fields,
    pre_load,
    validate,
    validates,
    validates_schema,
)

from backend.app.services.password_service import MAX_PASSWORD_BYTES


def _check_password_strength(value: str) -> None:
    """min 8 chars, at most 72 bytes, at least one letter and one digit."""
    if len(value) < 8:
        raise ValidationError("Password must be at least 8 characters long.")
    if len(value.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValidationError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes long.")
    if not any(c.isalpha() for c in value):
        raise ValidationError("Password must contain at least one letter.")
    if not any(c.isdigit() for c in value):
        raise ValidationError("Password must contain at least one digit.")


class _StripEmailMixin:
    """Strips surrounding whitespace from `email` before format validation."""

    @pre_load
    def strip_email(self, data, **kwargs):
        if isinstance(data, dict) and isinstance(data.get("email"), str):
            data = {**data, "email": data["email"].strip()}
        return data


class AddressSchema(Schema):
    """
    POST /auth/addresses, PUT /auth/addresses/<id>

    All fields optional; at least one must be present. `id` is never
    accepted from the client — address ids are generated by the server.
    """

    class Meta:
        unknown = EXCLUDE

    label       = fields.Str(validate=validate.Length(max=50))
    recipient   = fields.Str(validate=validate.Length(max=200))
    street      = fields.Str(validate=validate.Length(max=255))
    street2     = fields.Str(allow_none=True, validate=validate.Length(max=255))
    city        = fields.Str(validate=validate.Length(max=100))
    region      = fields.Str(allow_none=True, validate=validate.Length(max=100))
    postal_code = fields.Str(allow_none=True, validate=validate.Length(max=20))
    country     = fields.Str(validate=validate.Length(max=100))
    phone       = fields.Str(allow_none=True, validate=validate.Length(max=32))
    is_default  = fields.Bool()

    @validates_schema
    def require_one_field(self, data, **kwargs):
        if not data:
            raise ValidationError("An address must contain at least one field.")


class RegisterSchema(_StripEmailMixin, Schema):
    """
    POST /auth/register

    Required: email, password, first_name, last_name.
    Optional: phone, addresses, profile metadata.
    """

    email      = fields.Email(required=True, validate=validate.Length(max=255))
    password   = fields.Str(required=True, load_only=True)
    first_name = fields.Str(required=True, validate=validate.Length(min=1, max=100))
    last_name  = fields.Str(required=True, validate=validate.Length(min=1, max=100))

    phone             = fields.Str(allow_none=True, validate=validate.Length(max=32))
    addresses         = fields.List(fields.Nested(AddressSchema), allow_none=True)
    profile_image_url = fields.Url(allow_none=True, validate=validate.Length(max=512))
    language          = fields.Str(validate=validate.Length(min=2, max=10))
    default_currency  = fields.Str(validate=validate.Length(equal=3))
    is_member         = fields.Bool()

    @validates("password")
    def validate_password_strength(self, value: str, **kwargs) -> None:
        _check_password_strength(value)


class LoginSchema(_StripEmailMixin, Schema):
    """
    POST /auth/login

    Only presence is checked here; credential correctness is checked in
    auth_service.py (INVALID_CREDENTIALS, 401).
    """

    email    = fields.Str(required=True, validate=validate.Length(min=1))
    password = fields.Str(required=True, load_only=True, validate=validate.Length(min=1))


class UpdateProfileSchema(_StripEmailMixin, Schema):
    """
    PUT/PATCH /auth/profile — every field optional (partial update).

    phone, disabled_reason and profile_image_url accept null to clear them.
    """

    first_name        = fields.Str(validate=validate.Length(min=1, max=100))
    last_name         = fields.Str(validate=validate.Length(min=1, max=100))
    email             = fields.Email(validate=validate.Length(max=255))
    phone             = fields.Str(allow_none=True, validate=validate.Length(max=32))
    password          = fields.Str(load_only=True)
    language          = fields.Str(validate=validate.Length(min=2, max=10))
    default_currency  = fields.Str(validate=validate.Length(equal=3))
    is_member         = fields.Bool()
    status            = fields.Str(validate=validate.OneOf(["active", "disabled"]))
    disabled_reason   = fields.Str(allow_none=True, validate=validate.Length(max=255))
    profile_image_url = fields.Url(allow_none=True, validate=validate.Length(max=512))

    @validates("password")
    def validate_password_strength(self, value: str, **kwargs) -> None:
        _check_password_strength(value)
