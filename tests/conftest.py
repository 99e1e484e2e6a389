"""
tests/conftest.py -- Shared test fixtures for ReelGuard integration tests.

This module provides:
  - _make_test_stores(): isolated in-memory DBs for users + movies
  - make_client(): a TestClient over create_app() with injected stores
  - api_client / web_client: module-scoped clients (web does not follow redirects)
  - login(): helper that logs a client in through the JSON API

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs route handlers in a thread pool. Plain :memory: DBs
are per-connection and would present a blank schema to each worker thread.
The named URI format (file:name?mode=memory&cache=shared&uri=true) shares
one in-memory instance across all connections in the same process.

The environment must be set before any project import: api.limiter reads
get_settings() at import time.
"""

from __future__ import annotations

import itertools
import os
from collections.abc import Generator
from dataclasses import dataclass

# CRITICAL: set before any core/auth/api import.
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("SESSION_SECRET", "test-session-secret-that-is-long-enough-0123")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("ALLOWED_HOSTS", '["*"]')

import pytest
from fastapi.testclient import TestClient

from api.main import create_app
from auth.models import Role, User
from auth.passwords import CredentialHasher
from auth.sessions import InMemorySessionStore
from auth.store import UserStore
from core.config import get_settings
from library.store import MovieStore
from web.routes import router as web_router

ADMIN_PASSWORD = "adminpass123"

_db_counter = itertools.count()


@dataclass
class Harness:
    client: TestClient
    user_store: UserStore
    movie_store: MovieStore
    session_store: InMemorySessionStore
    admin_id: int


# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def _make_test_stores(db_suffix: str) -> tuple[UserStore, MovieStore]:
    """Create isolated named shared-memory SQLite stores.

    A process-wide counter is appended so two harnesses built for the same
    suffix never share a database.
    """
    name = f"test_reelguard_{db_suffix}_{next(_db_counter)}"
    url = f"sqlite:///file:{name}?mode=memory&cache=shared&uri=true"
    return UserStore(db_url=url), MovieStore(db_url=url)


def _hasher() -> CredentialHasher:
    return CredentialHasher(bcrypt_rounds=get_settings().bcrypt_rounds)


def create_admin(user_store: UserStore, username: str = "admin", password: str = ADMIN_PASSWORD) -> int:
    """Provision an admin directly in the user store (there is no API for it)."""
    return user_store.create_user(User(username=username, hashed_password=_hasher().hash(password), role=Role.admin))


def login(client: TestClient, username: str, password: str) -> dict:
    """Log in through the JSON API; the client's cookie jar keeps the session."""
    resp = client.post("/api/v1/auth/login", json={"username": username, "password": password})
    assert resp.status_code == 200, resp.text
    return resp.json()


def register(client: TestClient, username: str, password: str = "secret1", email: str | None = None) -> dict:
    body = {"username": username, "password": password}
    if email is not None:
        body["email"] = email
    resp = client.post("/api/v1/auth/register", json=body)
    assert resp.status_code == 201, resp.text
    return resp.json()


def _build(db_suffix: str, follow_redirects: bool = True) -> Generator[Harness, None, None]:
    user_store, movie_store = _make_test_stores(db_suffix)
    session_store = InMemorySessionStore()
    admin_id = create_admin(user_store)

    app = create_app(session_store=session_store, user_store=user_store, movie_store=movie_store)
    app.include_router(web_router, tags=["Web UI"])

    with TestClient(app, follow_redirects=follow_redirects, raise_server_exceptions=True) as client:
        yield Harness(client, user_store, movie_store, session_store, admin_id)

    user_store.close()
    movie_store.close()


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def harness() -> Generator[Harness, None, None]:
    """Fresh app, fresh databases, fresh session store -- per test."""
    yield from _build("fn")


@pytest.fixture
def client(harness: Harness) -> TestClient:
    return harness.client


@pytest.fixture(scope="module")
def api_client() -> Generator[Harness, None, None]:
    """Module-scoped harness for read-mostly API tests."""
    yield from _build("api")


@pytest.fixture
def web_client() -> Generator[Harness, None, None]:
    """Harness whose client does NOT follow redirects.

    Web route tests assert on redirect *locations* (e.g. 302 to /login),
    which are invisible once the client follows the redirect.
    """
    yield from _build("web", follow_redirects=False)
