"""
tests/conftest.py -- Shared test fixtures for SessionGuard tests.

This module provides:
  - store / clock / tracker / authenticator: unit-level fixtures over an
    in-memory UserStore and a clock the test can move forward
  - make_user: fixture returning a helper that inserts an account
  - api_client: TestClient over the real FastAPI app with a patched lifespan

Design: the API fixture uses a named shared-memory SQLite URI (not plain
:memory:) because TestClient runs sync route handlers in a thread pool. Plain
:memory: DBs are per-connection and would present a blank schema to each
worker thread.

DEBUG, RATE_LIMIT_ENABLED and ALLOWED_HOSTS must be set before any core/auth/api
import: get_settings() is cached on first call and the app reads it at import.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

# CRITICAL: set before any core/auth/api import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("ALLOWED_HOSTS", '["testserver", "localhost"]')

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.authenticator import Authenticator
from auth.lockout import LockoutTracker
from auth.models import User
from auth.store import UserStore
from auth.tokens import hash_password

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class FakeClock:
    """Callable clock for LockoutTracker; advance() moves time forward."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def _insert_user(
    store: UserStore, email: str = "a@x.com", password: str | None = "correct-horse", **fields
) -> User:
    """Insert a user; password=None makes a federated-only account."""
    password_hash = hash_password(password) if password is not None else None
    return store.create(User(email=email, name=fields.pop("name", "Ann"), password_hash=password_hash, **fields))


# ---------------------------------------------------------------------------
# Unit fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def store() -> Generator[UserStore, None, None]:
    s = UserStore("sqlite:///:memory:")
    yield s
    s.close()


@pytest.fixture
def make_user(store: UserStore):
    """make_user(email="a@x.com", password="correct-horse", name="Ann", image=None) -> User"""

    def _make(email: str = "a@x.com", password: str | None = "correct-horse", **fields) -> User:
        return _insert_user(store, email, password, **fields)

    return _make


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def tracker(store: UserStore, clock: FakeClock) -> LockoutTracker:
    return LockoutTracker(store, clock=clock)


@pytest.fixture
def authenticator(store: UserStore, tracker: LockoutTracker) -> Authenticator:
    return Authenticator(store, tracker=tracker)


# ---------------------------------------------------------------------------
# API fixture -- one TestClient per test module
# ---------------------------------------------------------------------------


def _patch_lifespan(user_store: UserStore, oauth: MagicMock):
    """Return a lifespan that wires test stores into app.state.

    The OAuth registry is a MagicMock so no provider metadata is fetched.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        app.state.authenticator = Authenticator(user_store)
        app.state.oauth = oauth
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_client(request) -> Generator[tuple[TestClient, UserStore, MagicMock], None, None]:
    """Yield (client, store, oauth_mock) for API integration tests.

    follow_redirects=False so OAuth callback tests can assert on Location.
    """
    db_name = request.module.__name__.rsplit(".", 1)[-1]
    user_store = UserStore(f"sqlite:///file:{db_name}?mode=memory&cache=shared&uri=true")
    oauth = MagicMock()

    app.router.lifespan_context = _patch_lifespan(user_store, oauth)

    with TestClient(app, follow_redirects=False, raise_server_exceptions=True) as client:
        yield client, user_store, oauth

    user_store.close()
