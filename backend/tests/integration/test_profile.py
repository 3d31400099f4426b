"""
tests/integration/test_profile.py — Integration tests for PUT/PATCH /auth/profile.

Covers:
  - Plain field updates (names, language, currency, membership)
  - Email change (renormalized, old email no longer logs in)
  - DUPLICATE_EMAIL on a change to another user's email (409)
  - Phone set and cleared
  - Password change: refresh tokens revoked, older access tokens rejected,
    new password logs in
  - Authentication required
"""

from __future__ import annotations

from datetime import timedelta

from backend.app.repositories import user_directory
from backend.app.services import token_service
from backend.app.utils.clock import utcnow

from .conftest import auth_headers, load_user, login, refresh_cookie, register


def _me(client, token: str) -> dict:
    resp = client.get("/api/v1/auth/me", headers=auth_headers(token))
    assert resp.status_code == 200, resp.get_json()
    return resp.get_json()["user"]


class TestProfileFields:

    def test_update_names(self, client):
        token = register(client)

        resp = client.put(
            "/api/v1/auth/profile",
            json={"first_name": "Alicia", "last_name": "Smythe"},
            headers=auth_headers(token),
        )
        assert resp.status_code == 200
        assert resp.get_json() == {"ok": True}

        user = _me(client, token)
        assert user["first_name"] == "Alicia"
        assert user["last_name"] == "Smythe"

    def test_patch_is_accepted_and_only_touches_sent_fields(self, client):
        token = register(client, phone="+15550100")

        resp = client.patch(
            "/api/v1/auth/profile",
            json={"language": "fr", "default_currency": "EUR", "is_member": True},
            headers=auth_headers(token),
        )
        assert resp.status_code == 200

        user = _me(client, token)
        assert user["language"] == "fr"
        assert user["default_currency"] == "EUR"
        assert user["is_member"] is True
        assert user["first_name"] == "Alice"
        assert user["phone"] == "+15550100"

    def test_empty_body_is_a_no_op(self, client):
        token = register(client)
        resp = client.put("/api/v1/auth/profile", json={}, headers=auth_headers(token))
        assert resp.status_code == 200
        assert _me(client, token)["first_name"] == "Alice"

    def test_invalid_status_returns_400(self, client):
        token = register(client)
        resp = client.put(
            "/api/v1/auth/profile",
            json={"status": "banned"},
            headers=auth_headers(token),
        )
        assert resp.status_code == 400
        assert resp.get_json()["field"] == "status"

    def test_requires_auth(self, client):
        resp = client.put("/api/v1/auth/profile", json={"first_name": "X"})
        assert resp.status_code == 401
        assert resp.get_json()["code"] == "TOKEN_MISSING"


class TestEmailChange:

    def test_email_change_is_normalized_and_used_for_login(self, client):
        token = register(client)

        resp = client.put(
            "/api/v1/auth/profile",
            json={"email": "  New.Alice@Test.com "},
            headers=auth_headers(token),
        )
        assert resp.status_code == 200
        assert _me(client, token)["email"] == "new.alice@test.com"

        assert login(client, email="new.alice@test.com")
        resp = client.post("/api/v1/auth/login", json={
            "email": "alice@test.com", "password": "Password1",
        })
        assert resp.status_code == 401
        assert resp.get_json()["code"] == "INVALID_CREDENTIALS"

    def test_email_change_to_taken_address_returns_409(self, client):
        register(client, email="bob@test.com", first_name="Bob")
        token = register(client, email="alice@test.com")

        resp = client.put(
            "/api/v1/auth/profile",
            json={"email": "BOB@test.com"},
            headers=auth_headers(token),
        )
        assert resp.status_code == 409
        assert resp.get_json()["code"] == "DUPLICATE_EMAIL"
        assert _me(client, token)["email"] == "alice@test.com"

    def test_email_race_lost_at_the_constraint_returns_409(self, client, monkeypatch):
        register(client, email="bob@test.com", first_name="Bob")
        token = register(client, email="alice@test.com")
        # Bob's address passes the existence check; the unique index still refuses it.
        monkeypatch.setattr(user_directory, "email_hash_taken", lambda *args, **kwargs: False)

        resp = client.put(
            "/api/v1/auth/profile",
            json={"email": "bob@test.com", "first_name": "Alicia"},
            headers=auth_headers(token),
        )
        assert resp.status_code == 409
        assert resp.get_json()["code"] == "DUPLICATE_EMAIL"
        assert resp.get_json()["field"] == "email"

        user = _me(client, token)
        assert user["email"] == "alice@test.com"
        assert user["first_name"] == "Alice"

    def test_email_change_to_own_address_is_allowed(self, client):
        token = register(client)
        resp = client.put(
            "/api/v1/auth/profile",
            json={"email": "ALICE@test.com"},
            headers=auth_headers(token),
        )
        assert resp.status_code == 200

    def test_invalid_email_returns_400(self, client):
        token = register(client)
        resp = client.put(
            "/api/v1/auth/profile",
            json={"email": "not-an-email"},
            headers=auth_headers(token),
        )
        assert resp.status_code == 400
        assert resp.get_json()["code"] == "INVALID_FIELD"


class TestPhone:

    def test_set_phone(self, client):
        token = register(client)
        client.put("/api/v1/auth/profile", json={"phone": "+441234"}, headers=auth_headers(token))
        assert _me(client, token)["phone"] == "+441234"

    def test_null_clears_phone(self, app, client):
        token = register(client, phone="+15550100")
        client.put("/api/v1/auth/profile", json={"phone": None}, headers=auth_headers(token))

        assert _me(client, token)["phone"] is None
        assert load_user(app).phone_cipher is None

    def test_empty_string_clears_phone(self, client):
        token = register(client, phone="+15550100")
        client.put("/api/v1/auth/profile", json={"phone": ""}, headers=auth_headers(token))
        assert _me(client, token)["phone"] is None


class TestPasswordChange:

    def test_password_change_revokes_refresh_tokens(self, client):
        token = register(client)
        raw = refresh_cookie(client)

        resp = client.put(
            "/api/v1/auth/profile",
            json={"password": "NewPassword2"},
            headers=auth_headers(token),
        )
        assert resp.status_code == 200

        client.set_cookie("refresh_token", raw)
        resp = client.post("/api/v1/auth/refresh")
        assert resp.status_code == 401
        assert resp.get_json()["code"] == "REFRESH_TOKEN_INVALID"

    def test_password_change_rejects_older_access_tokens(self, app, client):
        register(client)
        user = load_user(app)
        older = token_service.create_access_token(
            user,
            app.config["JWT_SECRET_KEY"],
            now=utcnow() - timedelta(minutes=2),
        )
        assert client.get("/api/v1/auth/me", headers=auth_headers(older)).status_code == 200

        client.put(
            "/api/v1/auth/profile",
            json={"password": "NewPassword2"},
            headers=auth_headers(older),
        )

        resp = client.get("/api/v1/auth/me", headers=auth_headers(older))
        assert resp.status_code == 401
        assert resp.get_json()["code"] == "TOKEN_INVALID"

    def test_token_minted_just_before_password_change_is_rejected(self, client):
        token = register(client)
        assert client.get("/api/v1/auth/me", headers=auth_headers(token)).status_code == 200

        resp = client.put(
            "/api/v1/auth/profile",
            json={"password": "NewPassword2"},
            headers=auth_headers(token),
        )
        assert resp.status_code == 200

        resp = client.get("/api/v1/auth/me", headers=auth_headers(token))
        assert resp.status_code == 401
        assert resp.get_json()["code"] == "TOKEN_INVALID"

    def test_new_password_logs_in_and_old_does_not(self, app, client):
        token = register(client)
        client.put(
            "/api/v1/auth/profile",
            json={"password": "NewPassword2"},
            headers=auth_headers(token),
        )

        fresh = login(client, password="NewPassword2")
        assert _me(client, fresh)["email"] == "alice@test.com"

        resp = client.post("/api/v1/auth/login", json={
            "email": "alice@test.com", "password": "Password1",
        })
        assert resp.status_code == 401
        assert load_user(app).password_changed_at is not None

    def test_weak_new_password_returns_400(self, client):
        token = register(client)
        resp = client.put(
            "/api/v1/auth/profile",
            json={"password": "short1"},
            headers=auth_headers(token),
        )
        assert resp.status_code == 400
        assert resp.get_json()["field"] == "password"
