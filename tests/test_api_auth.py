"""
tests/test_api_auth.py -- Integration tests for the token auth endpoints.

Covers:
  - POST /auth/register and /api/register: 201, duplicate 400, missing 400
  - POST /auth/login and /api/login: token in body and cookie, 400/404/401,
    passwords with surrounding spaces are kept exactly as registered
  - GET /auth/dashboard: 401 without token, 400 with a bad one, 200 with a good one
  - GET /auth/logout: clears the token cookie, 302 /login

The api_client fixture pre-registers alice@example.com / secret.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from auth.models import User


@pytest.fixture(autouse=True)
def _fresh_cookies(api_client):
    api_client[0].cookies.clear()


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("path", ["/auth/register", "/api/register"])
def test_register_creates_user(api_client, path):
    client, _, _ = api_client
    email = f"user{path.replace('/', '_')}@example.com"
    resp = client.post(path, json={"name": "New", "email": email, "password": "pw123"})
    assert resp.status_code == 201
    assert resp.json() == {"message": "User registered successfully!"}

    stored = client.app.state.user_store.get_by_email(email)
    assert stored is not None
    assert stored.password_hash != "pw123"


def test_register_duplicate_is_400(api_client, count_users):
    client, _, _ = api_client
    resp = client.post("/auth/register", json={"name": "Alice", "email": "alice@example.com", "password": "x"})
    assert resp.status_code == 400
    assert resp.json()["message"] == "User already exists."
    assert count_users(client.app.state.user_store, "alice@example.com") == 1


def test_register_missing_fields_is_400(api_client):
    client, _, _ = api_client
    resp = client.post("/auth/register", json={"email": "nobody@example.com"})
    assert resp.status_code == 400
    assert "message" in resp.json()
    assert client.app.state.user_store.get_by_email("nobody@example.com") is None


def test_register_malformed_body_is_400(api_client):
    client, _, _ = api_client
    resp = client.post("/auth/register", content=b"not json", headers={"Content-Type": "application/json"})
    assert resp.status_code == 400
    assert resp.json()["code"] == "validation_error"


# ---------------------------------------------------------------------------
# Login
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("path", ["/auth/login", "/api/login"])
def test_login_returns_token_and_cookie(api_client, path):
    client, _, user = api_client
    resp = client.post(path, json={"email": "alice@example.com", "password": "secret"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["message"] == "Logged in successfully!"
    assert body["token_type"] == "bearer"
    assert resp.headers["cache-control"] == "no-store"
    assert client.app.state.tokens.verify(body["token"]).subject == user.id
    assert resp.cookies.get("token") == body["token"]


@pytest.mark.parametrize(
    "payload,status,message",
    [
        ({"email": "", "password": "secret"}, 400, None),
        ({"email": "alice@example.com"}, 400, None),
        ({"email": "bob@example.com", "password": "secret"}, 404, "Email not found."),
        ({"email": "alice@example.com", "password": "wrong"}, 401, "Incorrect password."),
    ],
)
def test_login_failures(api_client, payload, status, message):
    client, _, _ = api_client
    resp = client.post("/auth/login", json=payload)
    assert resp.status_code == status
    assert "token" not in resp.json()
    if message:
        assert resp.json()["message"] == message


@pytest.mark.parametrize(
    "register_path,login_path,email,password",
    [
        ("/api/register", "/api/login", "horse@example.com", "correct horse "),
        ("/auth/register", "/auth/login", "pw@example.com", "pw "),
        ("/api/register", "/auth/login", "lead@example.com", " leading"),
    ],
)
def test_password_whitespace_is_kept(api_client, register_path, login_path, email, password):
    client, _, _ = api_client
    resp = client.post(register_path, json={"name": "Spacey", "email": email, "password": password})
    assert resp.status_code == 201, resp.text

    assert client.post(login_path, json={"email": email, "password": password}).status_code == 200
    resp = client.post(login_path, json={"email": email, "password": password.strip()})
    assert resp.status_code == 401
    assert resp.json()["message"] == "Incorrect password."


# ---------------------------------------------------------------------------
# Dashboard
# ---------------------------------------------------------------------------


def test_dashboard_without_token_is_401(api_client):
    client, _, _ = api_client
    resp = client.get("/auth/dashboard")
    assert resp.status_code == 401
    assert resp.json() == {"message": "Access denied. No token provided."}


def test_dashboard_with_bad_token_is_400(api_client):
    client, _, _ = api_client
    resp = client.get("/auth/dashboard", headers={"Authorization": "Bearer garbage"})
    assert resp.status_code == 400
    assert resp.json() == {"message": "Invalid token."}


def test_dashboard_with_other_auth_scheme_is_400(api_client):
    client, token, _ = api_client
    client.cookies.set("token", token)
    resp = client.get("/auth/dashboard", headers={"Authorization": "Token abc"})
    assert resp.status_code == 400
    assert resp.json() == {"message": "Invalid token."}


def test_dashboard_with_expired_token_is_400(api_client):
    client, _, user = api_client
    expired = client.app.state.tokens.issue(user, now=datetime.now(timezone.utc) - timedelta(hours=2))
    resp = client.get("/auth/dashboard", headers={"Authorization": f"Bearer {expired}"})
    assert resp.status_code == 400


def test_dashboard_with_token(api_client):
    client, token, user = api_client
    resp = client.get("/auth/dashboard", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["message"] == "Welcome to your dashboard!"
    assert body["user"]["email"] == user.email
    assert "password_hash" not in body["user"]


def test_dashboard_accepts_token_cookie(api_client):
    client, _, _ = api_client
    client.post("/auth/login", json={"email": "alice@example.com", "password": "secret"})
    resp = client.get("/auth/dashboard")
    assert resp.status_code == 200


def test_dashboard_for_unknown_user_is_404(api_client):
    client, _, _ = api_client
    ghost = client.app.state.tokens.issue(User(id=9999, name="Ghost", email="ghost@example.com", password_hash="h"))
    resp = client.get("/auth/dashboard", headers={"Authorization": f"Bearer {ghost}"})
    assert resp.status_code == 404
    assert resp.json() == {"message": "User not found!"}


# ---------------------------------------------------------------------------
# Logout
# ---------------------------------------------------------------------------


def test_token_logout_clears_cookie(api_client):
    client, _, _ = api_client
    client.post("/auth/login", json={"email": "alice@example.com", "password": "secret"})
    resp = client.get("/auth/logout", follow_redirects=False)
    assert resp.status_code == 302
    assert resp.headers["location"] == "/login"
    assert client.get("/auth/dashboard").status_code == 401
