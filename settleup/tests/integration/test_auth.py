"""
tests/integration/test_auth.py — Integration tests for authentication and user lookup.

Endpoints covered:
  POST /auth/register  → 201
  POST /auth/login     → 200
  GET  /auth/me        → 200
  GET  /users?email=   → 200

Error cases:
  DUPLICATE_EMAIL       409 — email already registered (any casing)
  INVALID_CREDENTIALS   401 — wrong password or unknown email
  TOKEN_MISSING         401 — no Authorization header
  TOKEN_EXPIRED         401 — exp in the past
  TOKEN_INVALID         401 — malformed token or header
  USER_NOT_FOUND        404 — lookup by unknown email
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import jwt

from .conftest import auth_headers, login, register


# ═══════════════════════════════════════════════════════════════════════════
# POST /auth/register
# ═══════════════════════════════════════════════════════════════════════════

class TestRegister:

    def test_register_success_returns_201_with_token(self, client):
        resp = client.post("/api/v1/auth/register", json={
            "name": "Alice",
            "email": "alice@test.com",
            "password": "Password1",
        })
        assert resp.status_code == 201
        body = resp.get_json()
        assert body["warnings"] == []
        assert body["data"]["access_token"]
        assert body["data"]["user"]["name"] == "Alice"
        assert "password" not in body["data"]["user"]
        assert "password_hash" not in body["data"]["user"]

    def test_email_is_stored_lower_case(self, client):
        data = register(client, "alice", email="Alice@Test.COM")
        assert data["user"]["email"] == "alice@test.com"

    def test_duplicate_email_any_casing_returns_409(self, client):
        register(client, "alice", email="alice@test.com")
        resp = client.post("/api/v1/auth/register", json={
            "name": "Other Alice",
            "email": "ALICE@test.com",
            "password": "Password1",
        })
        assert resp.status_code == 409
        assert resp.get_json()["error"]["code"] == "DUPLICATE_EMAIL"
        assert resp.get_json()["error"]["field"] == "email"

    def test_short_password_returns_400(self, client):
        resp = client.post("/api/v1/auth/register", json={
            "name": "Alice", "email": "alice@test.com", "password": "abc",
        })
        assert resp.status_code == 400
        assert resp.get_json()["error"]["code"] == "INVALID_FIELD"
        assert resp.get_json()["error"]["field"] == "password"

    def test_blank_name_returns_400(self, client):
        resp = client.post("/api/v1/auth/register", json={
            "name": "    ", "email": "alice@test.com", "password": "Password1",
        })
        assert resp.status_code == 400
        assert resp.get_json()["error"]["field"] == "name"

    def test_invalid_email_format_returns_400(self, client):
        resp = client.post("/api/v1/auth/register", json={
            "name": "Alice", "email": "not-an-email", "password": "Password1",
        })
        assert resp.status_code == 400
        assert resp.get_json()["error"]["field"] == "email"

    def test_missing_fields_return_400_missing_field(self, client):
        resp = client.post("/api/v1/auth/register", json={"name": "Alice"})
        assert resp.status_code == 400
        assert resp.get_json()["error"]["code"] == "MISSING_FIELD"


# ═══════════════════════════════════════════════════════════════════════════
# POST /auth/login
# ═══════════════════════════════════════════════════════════════════════════

class TestLogin:

    def test_login_success_returns_token(self, client):
        register(client, "alice")
        data = login(client, "alice@test.com")
        assert data["access_token"]
        assert data["user"]["email"] == "alice@test.com"

    def test_login_email_is_case_insensitive(self, client):
        register(client, "alice")
        data = login(client, "ALICE@test.com")
        assert data["user"]["name"] == "alice"

    def test_wrong_password_returns_401_invalid_credentials(self, client):
        register(client, "alice")
        resp = client.post("/api/v1/auth/login", json={
            "email": "alice@test.com", "password": "wrong-password",
        })
        assert resp.status_code == 401
        assert resp.get_json()["error"]["code"] == "INVALID_CREDENTIALS"

    def test_unknown_email_returns_same_error(self, client):
        resp = client.post("/api/v1/auth/login", json={
            "email": "nobody@test.com", "password": "Password1",
        })
        assert resp.status_code == 401
        assert resp.get_json()["error"]["code"] == "INVALID_CREDENTIALS"


# ═══════════════════════════════════════════════════════════════════════════
# GET /auth/me and token handling
# ═══════════════════════════════════════════════════════════════════════════

class TestMe:

    def test_me_returns_user_profile(self, client):
        alice = register(client, "alice")
        resp = client.get("/api/v1/auth/me", headers=auth_headers(alice["access_token"]))
        assert resp.status_code == 200
        assert resp.get_json()["data"]["id"] == alice["user"]["id"]

    def test_me_without_token_returns_401_token_missing(self, client):
        resp = client.get("/api/v1/auth/me")
        assert resp.status_code == 401
        assert resp.get_json()["error"]["code"] == "TOKEN_MISSING"

    def test_me_with_invalid_token_returns_401_token_invalid(self, client):
        resp = client.get("/api/v1/auth/me", headers=auth_headers("not.a.jwt"))
        assert resp.status_code == 401
        assert resp.get_json()["error"]["code"] == "TOKEN_INVALID"

    def test_me_with_malformed_bearer_header_returns_401(self, client):
        alice = register(client, "alice")
        resp = client.get(
            "/api/v1/auth/me",
            headers={"Authorization": f"Token {alice['access_token']}"},
        )
        assert resp.status_code == 401
        assert resp.get_json()["error"]["code"] == "TOKEN_INVALID"

    def test_expired_token_returns_401_token_expired(self, app, client):
        alice = register(client, "alice")
        past = datetime.now(timezone.utc) - timedelta(hours=1)
        token = jwt.encode(
            {"sub": str(alice["user"]["id"]), "iat": past, "exp": past + timedelta(minutes=1)},
            app.config["JWT_SECRET_KEY"],
            algorithm="HS256",
        )
        resp = client.get("/api/v1/auth/me", headers=auth_headers(token))
        assert resp.status_code == 401
        assert resp.get_json()["error"]["code"] == "TOKEN_EXPIRED"

    def test_token_signed_with_other_key_is_rejected(self, client):
        alice = register(client, "alice")
        token = jwt.encode(
            {
                "sub": str(alice["user"]["id"]),
                "exp": datetime.now(timezone.utc) + timedelta(minutes=5),
            },
            "some-other-secret",
            algorithm="HS256",
        )
        resp = client.get("/api/v1/auth/me", headers=auth_headers(token))
        assert resp.status_code == 401
        assert resp.get_json()["error"]["code"] == "TOKEN_INVALID"


# ═══════════════════════════════════════════════════════════════════════════
# GET /users?email=
# ═══════════════════════════════════════════════════════════════════════════

class TestUserLookup:

    def test_lookup_by_email_returns_user(self, client):
        alice = register(client, "alice")
        bob = register(client, "bob")
        resp = client.get(
            "/api/v1/users?email=BOB@test.com",
            headers=auth_headers(alice["access_token"]),
        )
        assert resp.status_code == 200
        assert resp.get_json()["data"]["id"] == bob["user"]["id"]

    def test_lookup_unknown_email_returns_404(self, client):
        alice = register(client, "alice")
        resp = client.get(
            "/api/v1/users?email=ghost@test.com",
            headers=auth_headers(alice["access_token"]),
        )
        assert resp.status_code == 404
        assert resp.get_json()["error"]["code"] == "USER_NOT_FOUND"

    def test_lookup_without_email_returns_400(self, client):
        alice = register(client, "alice")
        resp = client.get("/api/v1/users", headers=auth_headers(alice["access_token"]))
        assert resp.status_code == 400
        assert resp.get_json()["error"]["code"] == "MISSING_FIELD"


# ═══════════════════════════════════════════════════════════════════════════
# Envelope and framework errors
# ═══════════════════════════════════════════════════════════════════════════

class TestErrorEnvelope:

    def test_error_response_has_code_and_message(self, client):
        resp = client.get("/api/v1/auth/me")
        error = resp.get_json()["error"]
        assert set(error) >= {"code", "message"}

    def test_unknown_route_returns_json_404(self, client):
        resp = client.get("/api/v1/does-not-exist")
        assert resp.status_code == 404
        assert resp.get_json()["error"]["code"] == "NOT_FOUND"

    def test_wrong_method_returns_json_405(self, client):
        resp = client.put("/api/v1/auth/login", json={})
        assert resp.status_code == 405
        assert resp.get_json()["error"]["code"] == "METHOD_NOT_ALLOWED"
