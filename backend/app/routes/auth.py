"""
routes/auth.py — Authentication, profile and address route handlers.

Layer rules:
  - Parse request body
  - Validate with the appropriate schema (raises ValidationError on bad input)
  - Call exactly ONE service function
  - Commit the DB session
  - Set/clear the refresh-token cookie and return the JSON body

No business logic here. No DB queries.
AppError propagates to the global error handler in app/__init__.py — routes
never catch it.

Endpoints (url_prefix=/api/v1/auth):
  POST   /register             → 200 {"accessToken"} + refresh cookie
  POST   /login                → 200 {"accessToken"} + refresh cookie
  POST   /refresh              → 200 {"accessToken"} + rotated cookie
  POST   /logout               → 200 {"ok": true}    + cookie cleared
  GET    /me                   → 200 {"user": {...}}
  PUT    /profile              → 200 {"ok": true}
  POST   /addresses            → 200 {"id": "..."}
  PUT    /addresses/<id>       → 200 {"ok": true}
  DELETE /addresses/<id>       → 200 {"ok": true}
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from backend.app.extensions import db
from backend.app.middleware.auth_middleware import require_auth
from backend.app.schemas.auth_schema import (
    AddressSchema,
    LoginSchema,
    RegisterSchema,
    UpdateProfileSchema,
)
from backend.app.services import auth_service, cookie_service
from backend.app.services.profile_patch import ProfilePatch
from backend.app.utils.client_util import get_client_info

auth_bp = Blueprint("auth", __name__)


def _json_body() -> dict:
    return request.get_json(force=True, silent=False) or {}


def _token_response(tokens: dict):
    response = jsonify({"accessToken": tokens["access_token"]})
    cookie_service.set_refresh_token(response, tokens["refresh_token"])
    return response, 200


@auth_bp.route("/register", methods=["POST"])
def register():
    """POST /auth/register — Create account; return access token. (No auth required.)"""
    data = RegisterSchema().load(_json_body())
    client = get_client_info(request)
    tokens = auth_service.register_user(
        email=data["email"],
        password=data["password"],
        first_name=data["first_name"],
        last_name=data["last_name"],
        session=db.session,
        phone=data.get("phone"),
        addresses=data.get("addresses"),
        profile_image_url=data.get("profile_image_url"),
        language=data.get("language"),
        default_currency=data.get("default_currency"),
        is_member=data.get("is_member", False),
        ip=client.ip,
        user_agent=client.user_agent,
    )
    db.session.commit()
    return _token_response(tokens)


@auth_bp.route("/login", methods=["POST"])
def login():
    """POST /auth/login — Authenticate; return access token. (No auth required.)"""
    data = LoginSchema().load(_json_body())
    client = get_client_info(request)
    tokens = auth_service.login_user(
        email=data["email"],
        password=data["password"],
        session=db.session,
        ip=client.ip,
        user_agent=client.user_agent,
    )
    db.session.commit()
    return _token_response(tokens)


@auth_bp.route("/refresh", methods=["POST"])
def refresh():
    """POST /auth/refresh — Exchange the refresh cookie for a new token pair."""
    client = get_client_info(request)
    tokens = auth_service.refresh_session(
        cookie_service.get_refresh_token(request),
        session=db.session,
        ip=client.ip,
        user_agent=client.user_agent,
    )
    db.session.commit()
    return _token_response(tokens)


@auth_bp.route("/logout", methods=["POST"])
def logout():
    """POST /auth/logout — Revoke the refresh cookie if any. Always succeeds."""
    auth_service.logout_user(cookie_service.get_refresh_token(request), session=db.session)
    db.session.commit()
    response = jsonify({"ok": True})
    cookie_service.clear_refresh_token(response)
    return response, 200


@auth_bp.route("/me", methods=["GET"])
@require_auth
def me():
    """GET /auth/me — Return current user profile. (Auth required.)"""
    result = auth_service.get_current_user(user_id=g.user_id, session=db.session)
    return jsonify({"user": result}), 200


@auth_bp.route("/profile", methods=["PUT", "PATCH"])
@require_auth
def update_profile():
    """PUT /auth/profile — Partial profile update. (Auth required.)"""
    data = UpdateProfileSchema().load(_json_body())
    result = auth_service.update_profile(
        user_id=g.user_id,
        patch=ProfilePatch.from_mapping(data),
        session=db.session,
    )
    db.session.commit()
    return jsonify(result), 200


@auth_bp.route("/addresses", methods=["POST"])
@require_auth
def add_address():
    """POST /auth/addresses — Append an address. (Auth required.)"""
    data = AddressSchema().load(_json_body())
    result = auth_service.add_address(user_id=g.user_id, address=data, session=db.session)
    db.session.commit()
    return jsonify(result), 200


@auth_bp.route("/addresses/<string:address_id>", methods=["PUT"])
@require_auth
def update_address(address_id: str):
    """PUT /auth/addresses/<id> — Merge fields into one address. (Auth required.)"""
    data = AddressSchema().load(_json_body())
    result = auth_service.update_address(
        user_id=g.user_id,
        address_id=address_id,
        changes=data,
        session=db.session,
    )
    db.session.commit()
    return jsonify(result), 200


@auth_bp.route("/addresses/<string:address_id>", methods=["DELETE"])
@require_auth
def delete_address(address_id: str):
    """DELETE /auth/addresses/<id> — Remove one address. (Auth required.)"""
    result = auth_service.delete_address(
        user_id=g.user_id,
        address_id=address_id,
        session=db.session,
    )
    db.session.commit()
    return jsonify(result), 200
