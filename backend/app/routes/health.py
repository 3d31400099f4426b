"""
routes/health.py — Liveness/readiness probe.

  GET /health → 200 {"status": "healthy", ...} or 503 {"status": "degraded", ...}
  GET /       → 200 "Auth API running"

Secrets are reported by presence only, never by value.
"""

from __future__ import annotations

from flask import Blueprint, current_app, jsonify
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from backend.app.extensions import db
from backend.app.utils.clock import utcnow

health_bp = Blueprint("health", __name__)


@health_bp.route("/health", methods=["GET"])
def health():
    checks = {
        "status": "healthy",
        "service": "auth-api",
        "timestamp": utcnow().isoformat(),
        "bindings": {},
    }

    try:
        value = db.session.execute(text("SELECT 1")).scalar()
        checks["bindings"]["DB"] = {"status": "ok", "test": value == 1}
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.warning("Health check DB probe failed: %s", exc)
        checks["bindings"]["DB"] = {"status": "error", "error": type(exc).__name__}
        checks["status"] = "degraded"

    checks["secrets"] = {
        "JWT_SECRET_KEY": bool(current_app.config.get("JWT_SECRET_KEY")),
        "AUTH_ENC_KEY": bool(current_app.config.get("AUTH_ENC_KEY")),
    }
    if not all(checks["secrets"].values()):
        checks["status"] = "degraded"

    status_code = 200 if checks["status"] == "healthy" else 503
    return jsonify(checks), status_code


@health_bp.route("/", methods=["GET"])
def root():
    return "Auth API running", 200, {"Content-Type": "text/plain; charset=utf-8"}
