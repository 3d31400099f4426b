"""
app/__init__.py — Flask application factory.

Pattern: create_app(config_name) creates and returns a configured Flask app.
         Nothing is initialised at import time — this enables:
           - Multiple isolated test app instances
           - Clean separation between app creation and app startup
           - Alembic to import the models without starting the server

Responsibilities:
  1. Load configuration from config_by_name[config_name]
  2. Configure logging (LOG_LEVEL) and request lifecycle logging
  3. Initialise SQLAlchemy via init_app()
  4. Register route blueprints (/api/v1/auth and the health probe)
  5. Register global error handlers (AppError → JSON, Exception → 500)
  6. Register CORS headers (credentials allowed, for the refresh cookie)

Note on model imports:
  All model classes are imported inside create_app() so that SQLAlchemy's
  metadata is populated before Alembic inspects it.
"""

from __future__ import annotations

import logging
import traceback
from urllib.parse import urlsplit

from flask import Flask, jsonify, request
from marshmallow import ValidationError
from sqlalchemy.orm.exc import StaleDataError
from werkzeug.exceptions import HTTPException

from backend.config import config_by_name, validate_production_config


# ── Application factory ────────────────────────────────────────────────────

def create_app(config_name: str = "development") -> Flask:
    """
    Creates and returns a configured Flask application instance.

    Args:
        config_name: One of "development", "testing", "production".
                     Resolved via config_by_name in config.py.
                     Defaults to "development".

    Returns:
        A fully configured Flask app ready to serve requests.
    """
    app = Flask(__name__)

    # ── Configuration ──────────────────────────────────────────────────────
    config_class = config_by_name.get(config_name, config_by_name["development"])
    app.config.from_object(config_class)

    if config_name == "production":
        validate_production_config(app)  # raises ValueError if misconfigured

    _configure_logging(app)

    # ── Extensions ─────────────────────────────────────────────────────────
    # Import here (not at module top) to avoid circular imports.
    from backend.app.extensions import db
    db.init_app(app)

    # ── Model registration ─────────────────────────────────────────────────
    # Import all models so that SQLAlchemy's MetaData is populated.
    with app.app_context():
        from backend.app.models import refresh_token, user  # noqa: F401

    _register_blueprints(app)
    _register_error_handlers(app)
    _register_cors(app)

    from backend.app.middleware.logging_middleware import register_request_logging
    register_request_logging(app)

    return app


def _configure_logging(app: Flask) -> None:
    """Applies LOG_LEVEL to the app logger and the audit logger."""
    level = logging.getLevelName(str(app.config.get("LOG_LEVEL", "INFO")).upper())
    if not isinstance(level, int):
        level = logging.INFO

    app.logger.setLevel(level)
    audit_logger = logging.getLogger("auth.audit")
    audit_logger.setLevel(level)
    if not audit_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(message)s"))
        audit_logger.addHandler(handler)


def _register_blueprints(app: Flask) -> None:
    """
    Registers all route blueprints.

    The url_prefix is set here so route files only specify the path
    relative to their resource.
    """
    from backend.app.routes.auth import auth_bp
    from backend.app.routes.health import health_bp

    app.register_blueprint(auth_bp,   url_prefix="/api/v1/auth")
    app.register_blueprint(health_bp)


def _register_error_handlers(app: Flask) -> None:
    """
    Registers global error handlers.

    Handlers:
      AppError        → {"error", "code"[, "field"]} with the error's status
      ValidationError → marshmallow schema errors as MISSING_FIELD /
                        INVALID_FIELD responses (400)
      StaleDataError  → CONCURRENT_MODIFICATION (409): optimistic-concurrency
                        check on the users row failed
      HTTPException   → framework errors (bad JSON, 404, 405) keep their status
      Exception       → generic INTERNAL_ERROR (500); traceback logged and an
                        `<endpoint>_error` audit event emitted

    Stack traces never leave the server.
    """
    from backend.app.errors import AppError, ErrorCode
    from backend.app.extensions import db
    from backend.app.services.log_service import log_error

    @app.errorhandler(AppError)
    def handle_app_error(error: AppError):
        """
        Converts an AppError raised anywhere in the request lifecycle
        (middleware, service, route) into the standard error body.
        """
        return jsonify(error.to_dict()), error.http_status

    @app.errorhandler(ValidationError)
    def handle_validation_error(error: ValidationError):
        """
        Converts marshmallow ValidationError into the standard error body.

        Only the FIRST error is returned. Nested messages (e.g. one address in
        a list) are reported under the top-level field name.
        """
        messages = error.messages  # e.g. {"email": ["Not a valid email address."]}

        field = None
        raw_message = "Invalid input."

        if isinstance(messages, dict):
            for field_name, field_errors in messages.items():
                field = field_name if field_name != "_schema" else None
                raw_message = _first_message(field_errors)
                break
        elif isinstance(messages, list) and messages:
            raw_message = _first_message(messages)

        code = (
            ErrorCode.MISSING_FIELD
            if raw_message.startswith("Missing data for required field")
            else ErrorCode.INVALID_FIELD
        )

        body = {"error": raw_message, "code": code}
        if field is not None:
            body["field"] = field
        return jsonify(body), 400

    @app.errorhandler(StaleDataError)
    def handle_stale_data(error: StaleDataError):
        db.session.rollback()
        log_error("concurrent_modification", endpoint=request.endpoint)
        return jsonify({
            "error": "The record was modified by another request. Please retry.",
            "code": ErrorCode.CONCURRENT_MODIFICATION,
        }), 409

    @app.errorhandler(HTTPException)
    def handle_http_exception(error: HTTPException):
        codes = {
            400: ErrorCode.BAD_REQUEST,
            404: ErrorCode.NOT_FOUND,
            405: ErrorCode.METHOD_NOT_ALLOWED,
        }
        return jsonify({
            "error": error.description or error.name,
            "code": codes.get(error.code, ErrorCode.HTTP_ERROR),
        }), error.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(error: Exception):
        """
        Catches all unhandled exceptions and returns a generic 500 response.

        The full traceback is logged to the application logger. Only the
        exception type goes into the audit event.
        """
        app.logger.error(
            "Unhandled exception: %s\n%s",
            str(error),
            traceback.format_exc(),
        )
        endpoint = (request.endpoint or "request").rsplit(".", 1)[-1]
        log_error(f"{endpoint}_error", error_type=type(error).__name__)
        return jsonify({
            "error": "An unexpected error occurred. Please try again later.",
            "code": ErrorCode.INTERNAL_ERROR,
        }), 500


def _register_cors(app: Flask) -> None:
    """
    Adds CORS headers so browsers can call the API cross-site.

    Listed origins (plus localhost/127.0.0.1 in DEBUG) are reflected with
    credentials, so the refresh cookie travels. With CORS_ALLOWED_ORIGINS
    empty any other Origin is reflected without credentials; production
    refuses to start with an empty list.
    """

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if not origin:
            return response

        allowed = app.config.get("CORS_ALLOWED_ORIGINS") or ()
        try:
            is_local = urlsplit(origin).hostname in ("localhost", "127.0.0.1")
        except ValueError:
            is_local = False
        trusted = origin in allowed or (app.config.get("DEBUG") and is_local)
        if trusted or not allowed:
            response.headers["Access-Control-Allow-Origin"] = origin
            if trusted:
                response.headers["Access-Control-Allow-Credentials"] = "true"
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Methods"] = "GET, POST, PUT, PATCH, DELETE, OPTIONS"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
            response.headers["Access-Control-Expose-Headers"] = "Content-Type"

        return response


def _first_message(errors) -> str:
    """Digs the first human-readable message out of marshmallow's nested errors."""
    while isinstance(errors, (dict, list)):
        if not errors:
            return "Invalid value."
        errors = next(iter(errors.values())) if isinstance(errors, dict) else errors[0]
    return str(errors)
