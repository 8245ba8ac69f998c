"""
tests/conftest.py -- Shared test fixtures for Stockroom integration tests.

This module provides:
  - _db_url(): named shared-memory SQLite URL, unique per test module
  - _patch_lifespan(): wires isolated stores into app.state, bypassing real startup
  - api_client: TestClient plus a registered user and a valid token
  - web_client: TestClient with follow_redirects=False for page route tests
  - login_as: helper fixture driving the signup and login forms
  - count_users: row count for an email, read directly from the users table

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs route handlers in a thread pool. Plain :memory: DBs
are per-connection and would present a blank schema to each worker thread.
The named URI format (file:name?mode=memory&cache=shared&uri=true) shares
one in-memory instance across all connections in the same process.

Environment must be set before any app import: DEBUG lets get_settings()
generate secrets, BCRYPT_ROUNDS=4 keeps hashing fast, and a generous
LOGIN_RATE_LIMIT keeps the login limiter out of the way.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: Set before any auth/core import -- get_settings() is cached.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import text

from api.main import close_app_state, init_app_state
from asgi import app
from auth.models import User
from auth.service import register_user
from auth.session import MemorySessionBackend
from core.config import get_settings

ALICE = {"name": "Alice", "email": "alice@example.com", "password": "secret"}


def _db_url(suffix: str) -> str:
    return f"sqlite:///file:test_stockroom_{suffix}?mode=memory&cache=shared&uri=true"


def _patch_lifespan(db_url: str, upload_dir: str):
    """Return an async context manager that replaces the real lifespan.

    Builds the same app.state as production, pointed at an isolated database
    and upload directory with an in-memory session backend.

    The purge_task is a long-sleeping coroutine standing in for the hourly
    session purge (a real asyncio.Task is required for .cancel()).
    """

    @asynccontextmanager
    async def test_lifespan(app):
        init_app_state(
            app,
            get_settings(),
            database_url=db_url,
            upload_dir=upload_dir,
            session_backend=MemorySessionBackend(),
        )
        app.state.purge_task = asyncio.create_task(asyncio.sleep(99999))
        yield
        app.state.purge_task.cancel()
        close_app_state(app)

    return test_lifespan


def _module_suffix(request) -> str:
    return request.module.__name__.rsplit(".", 1)[-1]


# ---------------------------------------------------------------------------
# Module-scoped fixtures -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def api_client(request, tmp_path_factory) -> Generator[tuple[TestClient, str, User], None, None]:
    """Yield (client, token, user) for API integration tests.

    The user is registered through the real service once the lifespan has
    built app.state; the token is issued by the app's own TokenService.
    """
    upload_dir = tmp_path_factory.mktemp("uploads")
    app.router.lifespan_context = _patch_lifespan(_db_url(f"api_{_module_suffix(request)}"), str(upload_dir))

    with TestClient(app, raise_server_exceptions=True) as client:
        state = client.app.state
        user = register_user(state.user_store, state.hasher, ALICE["name"], ALICE["email"], ALICE["password"])
        token = state.tokens.issue(user)
        yield client, token, user


@pytest.fixture(scope="module")
def web_client(request, tmp_path_factory) -> Generator[TestClient, None, None]:
    """Yield a TestClient for page route tests.

    follow_redirects=False is essential for web route tests: we assert on
    redirect *locations* (e.g. 302 to /login), which are invisible once
    the client follows the redirect and returns the final 200 response.
    """
    upload_dir = tmp_path_factory.mktemp("uploads")
    app.router.lifespan_context = _patch_lifespan(_db_url(f"web_{_module_suffix(request)}"), str(upload_dir))

    with TestClient(app, follow_redirects=False, raise_server_exceptions=True) as client:
        yield client


@pytest.fixture
def login_as():
    """Return a helper that signs up (tolerating an existing account) and logs
    in through the page forms, leaving the session cookie on the client."""

    def _login(client: TestClient, name: str, email: str, password: str) -> None:
        client.post("/signup", data={"name": name, "email": email, "password": password})
        resp = client.post("/login", data={"email": email, "password": password})
        assert resp.status_code == 303, resp.text

    return _login


@pytest.fixture
def count_users():
    """Return a helper counting user rows for an email straight from the table."""

    def _count(store, email: str) -> int:
        with store.engine.connect() as conn:
            return conn.execute(text("SELECT COUNT(*) FROM users WHERE email = :email"), {"email": email}).scalar_one()

    return _count
