"""
services/cookie_service.py — Refresh-token cookie transport.

The refresh token travels only in this cookie:
  HttpOnly; Secure; SameSite=None; Path=/; Max-Age=<refresh TTL>

Cookie name and flags come from config (REFRESH_COOKIE_*); Max-Age follows
JWT_REFRESH_TOKEN_EXPIRES so cookie and DB expiry agree.
"""

from __future__ import annotations

from flask import current_app


def _cookie_options() -> dict:
    return {
        "httponly": True,
        "secure": current_app.config.get("REFRESH_COOKIE_SECURE", True),
        "samesite": current_app.config.get("REFRESH_COOKIE_SAMESITE", "None"),
        "path": "/",
    }


def _cookie_name() -> str:
    return current_app.config.get("REFRESH_COOKIE_NAME", "refresh_token")


def get_refresh_token(request) -> str | None:
    return request.cookies.get(_cookie_name()) or None


def set_refresh_token(response, raw_token: str):
    ttl = current_app.config["JWT_REFRESH_TOKEN_EXPIRES"]
    response.set_cookie(
        _cookie_name(),
        raw_token,
        max_age=int(ttl.total_seconds()),
        **_cookie_options(),
    )
    return response


def clear_refresh_token(response):
    response.set_cookie(_cookie_name(), "", max_age=0, expires=0, **_cookie_options())
    return response
