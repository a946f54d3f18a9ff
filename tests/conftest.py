"""
tests/conftest.py -- Shared test fixtures for Conduit.

This module provides:
  - token_service: a TokenService with a fixed test secret
  - user_store / article_store / favorites: isolated in-memory stores
  - api_client: TestClient over the real app with a patched lifespan
  - register(): helper that creates an account through the API

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
for api_client because TestClient runs sync route handlers in a thread pool.
Plain :memory: DBs are per-connection and would present a blank schema to
each worker thread. The named URI format
(file:name?mode=memory&cache=shared&uri=true) shares one in-memory instance
across all connections in the same process.

The DEBUG env var must be set before any api/ import so get_settings()
falls back to the development SECRET_KEY instead of raising ValueError.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: Set DEBUG before any api/core import so get_settings() does not
# refuse to start without SECRET_KEY.
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.store import UserStore
from auth.tokens import TokenService
from content.favorites import FavoritesEngine
from content.store import ArticleStore

TEST_SECRET = "test-secret-key-that-is-long-enough-for-hs256"


def _shared_memory_url(name: str) -> str:
    return f"sqlite:///file:{name}_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"


# ---------------------------------------------------------------------------
# Unit-level fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def token_service() -> TokenService:
    return TokenService(secret_key=TEST_SECRET)


@pytest.fixture
def user_store() -> Generator[UserStore, None, None]:
    store = UserStore(_shared_memory_url("users"))
    yield store
    store.close()


@pytest.fixture
def article_store() -> Generator[ArticleStore, None, None]:
    store = ArticleStore(_shared_memory_url("articles"))
    yield store
    store.close()


@pytest.fixture
def favorites(user_store: UserStore, article_store: ArticleStore) -> FavoritesEngine:
    return FavoritesEngine(user_store, article_store)


# ---------------------------------------------------------------------------
# API fixtures
# ---------------------------------------------------------------------------


def _patch_lifespan(user_store: UserStore, article_store: ArticleStore, tokens: TokenService):
    """Return an async context manager that replaces the real lifespan.

    Wires pre-created test stores into app.state so TestClient routes see
    isolated test DBs rather than the on-disk database.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        app.state.article_store = article_store
        app.state.favorites = FavoritesEngine(user_store, article_store)
        app.state.token_service = tokens
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_client() -> Generator[tuple[TestClient, TokenService], None, None]:
    """Yield (client, token_service) for API integration tests.

    One client per test module for speed; every module gets its own
    database, so usernames only need to be unique within a module.
    """
    db_url = _shared_memory_url("api")
    user_store = UserStore(db_url)
    article_store = ArticleStore(db_url)
    tokens = TokenService(secret_key=TEST_SECRET)

    app.router.lifespan_context = _patch_lifespan(user_store, article_store, tokens)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, tokens

    article_store.close()
    user_store.close()


def register(client: TestClient, username: str, password: str = "p@ss1234", email: str | None = None) -> dict:
    """Register through the API and return the "user" body (includes token)."""
    resp = client.post(
        "/api/users",
        json={"user": {"username": username, "email": email or f"{username}@example.com", "password": password}},
    )
    assert resp.status_code == 200, f"registration failed: {resp.status_code} {resp.text}"
    return resp.json()["user"]


def auth_header(token: str) -> dict[str, str]:
    return {"Authorization": f"Token {token}"}
