"""
tests/integration/conftest.py — Fixtures and helpers for all integration tests.

Design:
  - Tests run against an in-memory SQLite database (TestingConfig); set
    TEST_DATABASE_URL to point the suite at PostgreSQL instead.
  - The app is created once per session using create_app("testing").
  - All tables are created once via db.create_all() at session start.
  - Between tests, all rows are deleted so tests are isolated.

Helper functions (not fixtures) are provided for common operations:
  - register(client, ...)        → access token (refresh cookie lands in the client jar)
  - login(client, ...)           → access token
  - auth_headers(token)          → {"Authorization": "Bearer <token>"}
  - refresh_cookie(client)       → current raw refresh token in the jar, or None
  - load_user(app, email)        → User row looked up by email hash

These are plain functions (not pytest fixtures) so they can be called with
arbitrary arguments in any test without fixture parameterization overhead.
"""

from __future__ import annotations

import pytest

from backend.app import create_app
from backend.app.extensions import db as _db
from backend.app.models.user import User
from backend.app.utils.crypto_util import normalize_email, sha256_hex

REFRESH_COOKIE = "refresh_token"


# ═══════════════════════════════════════════════════════════════════════════
# Session-scoped app fixture
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture(scope="session")
def app():
    """
    Creates the Flask application in 'testing' mode once for the entire test session.
    """
    flask_app = create_app("testing")

    with flask_app.app_context():
        _db.create_all()

    yield flask_app

    with flask_app.app_context():
        _db.drop_all()


# ═══════════════════════════════════════════════════════════════════════════
# Function-scoped test isolation
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture(autouse=True)
def clean_tables(app):
    """
    Deletes all rows after every test.

    refresh_tokens first: it references users.
    """
    yield  # run the test

    with app.app_context():
        _db.session.rollback()  # discard any uncommitted state from a failed test

        from sqlalchemy import text
        with _db.engine.connect() as conn:
            conn.execute(text("DELETE FROM refresh_tokens"))
            conn.execute(text("DELETE FROM users"))
            conn.commit()


# ═══════════════════════════════════════════════════════════════════════════
# Client fixture
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def client(app):
    """Flask test client. Each test gets a fresh client and cookie jar."""
    return app.test_client()


# ═══════════════════════════════════════════════════════════════════════════
# Shared helper functions (not fixtures)
# ═══════════════════════════════════════════════════════════════════════════

def register(
    client,
    email: str = "alice@test.com",
    password: str = "Password1",
    first_name: str = "Alice",
    last_name: str = "Smith",
    **extra,
) -> str:
    """Registers a new user and returns the access token."""
    resp = client.post(
        "/api/v1/auth/register",
        json={
            "email": email,
            "password": password,
            "first_name": first_name,
            "last_name": last_name,
            **extra,
        },
    )
    assert resp.status_code == 200, f"register failed: {resp.get_json()}"
    return resp.get_json()["accessToken"]


def login(client, email: str = "alice@test.com", password: str = "Password1") -> str:
    """Logs in a user and returns the access token."""
    resp = client.post(
        "/api/v1/auth/login",
        json={"email": email, "password": password},
    )
    assert resp.status_code == 200, f"login failed: {resp.get_json()}"
    return resp.get_json()["accessToken"]


def auth_headers(token: str) -> dict:
    """Returns the Authorization header dict for use in test requests."""
    return {"Authorization": f"Bearer {token}"}


def refresh_cookie(client) -> str | None:
    cookie = client.get_cookie(REFRESH_COOKIE)
    return cookie.value if cookie is not None else None


def load_user(app, email: str = "alice@test.com") -> User:
    """Fetches the user row for `email` in its own app context (detached on return)."""
    with app.app_context():
        user = _db.session.execute(
            _db.select(User).where(User.email_hash == sha256_hex(normalize_email(email)))
        ).scalar_one()
        _db.session.expunge(user)
        return user
