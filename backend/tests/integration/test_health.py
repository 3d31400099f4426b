"""
tests/integration/test_health.py — Health probe, framework errors and CORS headers.
"""

from __future__ import annotations


class TestHealth:

    def test_health_reports_ok(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["status"] == "healthy"
        assert body["bindings"]["DB"]["status"] == "ok"
        assert body["secrets"] == {"JWT_SECRET_KEY": True, "AUTH_ENC_KEY": True}

    def test_root_banner(self, client):
        resp = client.get("/")
        assert resp.status_code == 200
        assert resp.get_data(as_text=True) == "Auth API running"


class TestFrameworkErrors:

    def test_unknown_route_returns_json_404(self, client):
        resp = client.get("/api/v1/auth/nope")
        assert resp.status_code == 404
        assert resp.get_json()["code"] == "NOT_FOUND"

    def test_wrong_method_returns_json_405(self, client):
        resp = client.get("/api/v1/auth/login")
        assert resp.status_code == 405
        assert resp.get_json()["code"] == "METHOD_NOT_ALLOWED"


class TestCors:

    def test_localhost_origin_is_reflected_with_credentials_in_debug(self, client):
        resp = client.get("/", headers={"Origin": "http://localhost:5173"})
        assert resp.headers["Access-Control-Allow-Origin"] == "http://localhost:5173"
        assert resp.headers["Access-Control-Allow-Credentials"] == "true"

    def test_unlisted_origin_gets_no_credentials_without_an_allow_list(self, app, client, monkeypatch):
        monkeypatch.setitem(app.config, "CORS_ALLOWED_ORIGINS", ())
        resp = client.get("/", headers={"Origin": "https://app.example.com"})
        assert resp.headers["Access-Control-Allow-Origin"] == "https://app.example.com"
        assert "Access-Control-Allow-Credentials" not in resp.headers

    def test_listed_origin_gets_credentials(self, app, client, monkeypatch):
        monkeypatch.setitem(app.config, "CORS_ALLOWED_ORIGINS", ("https://app.example.com",))
        resp = client.get("/", headers={"Origin": "https://app.example.com"})
        assert resp.headers["Access-Control-Allow-Credentials"] == "true"

        resp = client.get("/", headers={"Origin": "https://other.example.com"})
        assert "Access-Control-Allow-Origin" not in resp.headers

    def test_localhost_lookalike_is_not_trusted(self, app, client, monkeypatch):
        monkeypatch.setitem(app.config, "CORS_ALLOWED_ORIGINS", ())
        resp = client.get("/", headers={"Origin": "https://localhost.example.com"})
        assert "Access-Control-Allow-Credentials" not in resp.headers

    def test_no_origin_no_cors_headers(self, client):
        resp = client.get("/")
        assert "Access-Control-Allow-Origin" not in resp.headers
