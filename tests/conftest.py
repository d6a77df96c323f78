"""
tests/conftest.py -- Shared test fixtures for the grader test suite.

This module provides:
  - codec / sessions / user_store: isolated unit-test collaborators
  - _make_test_stores(): isolated shared-memory DBs + a fake Redis for API tests
  - _patch_lifespan(): wires test stores into app.state, bypassing real startup
  - api_client: TestClient plus an admin bearer token for integration tests

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
for the API fixture because TestClient runs sync route handlers in a thread
pool. Plain :memory: DBs are per-connection and would present a blank schema
to each worker thread.

fakeredis stands in for the Redis server: it speaks the same client API
(HGETALL/HSET/HDEL/HEXISTS) in-process, so SessionStore runs unmodified.

Environment must be set before any api/ or core/ import: DEBUG lets
get_settings() auto-generate SECRET_KEY, ALLOWED_HOSTS admits TestClient's
"testserver" host, and the relaxed login limit keeps the many signups in
this suite from tripping slowapi.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager

os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("ALLOWED_HOSTS", '["testserver"]')
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")

import fakeredis
import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.gate import AuthGate
from auth.models import User
from auth.service import open_session
from auth.sessions import SessionStore
from auth.store import UserStore
from auth.tokens import TokenCodec, hash_password
from catalog.store import TaskStore
from core.config import TokenConfig

TEST_SECRET = b"test-secret-key-that-is-long-enough-0123456789"


# ---------------------------------------------------------------------------
# Unit-test collaborators
# ---------------------------------------------------------------------------


@pytest.fixture
def token_config() -> TokenConfig:
    return TokenConfig(secret_key=TEST_SECRET, algorithm="HS256", ttl_seconds=1800)


@pytest.fixture
def codec(token_config: TokenConfig) -> TokenCodec:
    return TokenCodec(token_config)


@pytest.fixture
def redis_client() -> fakeredis.FakeRedis:
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture
def sessions(redis_client: fakeredis.FakeRedis) -> Generator[SessionStore, None, None]:
    store = SessionStore(redis_client)
    yield store
    store.close()


@pytest.fixture
def user_store() -> Generator[UserStore, None, None]:
    store = UserStore("sqlite:///:memory:")
    yield store
    store.close()


@pytest.fixture
def ann(user_store: UserStore) -> User:
    """A persisted, non-admin user with password 'pw'."""
    user = User(username="ann", hashed_password=hash_password("pw"))
    user.id = user_store.create_user(user)
    return user


# ---------------------------------------------------------------------------
# API integration helpers
# ---------------------------------------------------------------------------


def _make_test_stores(db_suffix: str) -> tuple[UserStore, TaskStore, SessionStore]:
    """Create isolated named shared-memory SQLite stores and a fake Redis.

    Args:
        db_suffix: Unique string appended to the DB name so test modules
                   don't share state (e.g. 'api', 'health').
    """
    auth_url = f"sqlite:///file:test_auth_{db_suffix}?mode=memory&cache=shared&uri=true"
    catalog_url = f"sqlite:///file:test_catalog_{db_suffix}?mode=memory&cache=shared&uri=true"
    user_store = UserStore(db_url=auth_url)
    tasks = TaskStore(db_url=catalog_url)
    sessions = SessionStore(fakeredis.FakeRedis(decode_responses=True))
    return user_store, tasks, sessions


def _patch_lifespan(user_store: UserStore, tasks: TaskStore, sessions: SessionStore, codec: TokenCodec):
    """Return an async context manager that replaces the real lifespan.

    Wires pre-created test stores into app.state so TestClient routes see
    isolated test stores rather than the configured database and Redis.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        app.state.tasks = tasks
        app.state.sessions = sessions
        app.state.codec = codec
        app.state.auth_gate = AuthGate(codec, sessions, user_store)
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_client(request: pytest.FixtureRequest) -> Generator[tuple[TestClient, str, int], None, None]:
    """Yield (client, admin_token, admin_id) for API integration tests.

    The admin user is created and a live session registered before the
    client starts. Stores are reachable through client.app.state. Each test
    module gets its own databases, named after the module.
    """
    user_store, tasks, sessions = _make_test_stores(request.module.__name__.rsplit(".", 1)[-1])
    codec = TokenCodec(TokenConfig(secret_key=TEST_SECRET))

    admin = User(username="testadmin", hashed_password=hash_password("testpass123"), is_admin=True)
    admin.id = user_store.create_user(admin)
    issued = open_session(codec, sessions, admin)

    app.router.lifespan_context = _patch_lifespan(user_store, tasks, sessions, codec)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, issued.token, admin.id

    sessions.close()
    tasks.close()
    user_store.close()
