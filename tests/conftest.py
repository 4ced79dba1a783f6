"""
tests/conftest.py -- Shared test fixtures for Gatekeeper.

This module provides:
  - make_store(): isolated in-memory UserStore on a named shared-memory URI
  - FakeStore: dict-backed implementation of the three storage ports
  - RecordingObserver: AuthObserver that keeps every event for assertions
  - service / fake_store / observer: AuthService wired to the fakes
  - api_client: TestClient over the real FastAPI app with a patched lifespan

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because the store's async methods run queries in worker threads. Plain
':memory:' DBs are per-connection and would present a blank schema to each
thread. The named URI format shares one in-memory instance across all
connections in the same process.

BCRYPT_ROUNDS must be set before any auth/core import so get_settings()
picks up the cheap cost factor; otherwise every hash in the suite costs
rounds=12.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Any

# CRITICAL: set before any auth/core import (get_settings() is cached).
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.errors import AuthError, already_exists, not_found
from auth.models import App, User, UserInfo
from auth.service import AuthService
from auth.store import UserStore

TEST_ROUNDS = 4

# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def make_store() -> UserStore:
    """Create an isolated named shared-memory SQLite store.

    A random name per call keeps tests from seeing each other's rows.
    """
    return UserStore(db_url=f"sqlite:///file:test_auth_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true")


class FakeStore:
    """In-memory stand-in for UserStore that satisfies all three ports.

    fail_with: when set, every port call raises it (simulates a dead backend).
    calls:     names of the port methods called, in order.
    """

    def __init__(self) -> None:
        self.users: dict[int, User] = {}
        self.apps: dict[int, App] = {}
        self.calls: list[str] = []
        self.fail_with: BaseException | None = None

    def _record(self, name: str) -> None:
        self.calls.append(name)
        if self.fail_with is not None:
            raise self.fail_with

    def add_app(self, app_id: int, name: str, secret: str) -> App:
        self.apps[app_id] = App(id=app_id, name=name, secret=secret)
        return self.apps[app_id]

    async def save_user(self, name: str, email: str, pass_hash: bytes, role: str, is_admin: bool) -> int:
        self._record("save_user")
        if any(u.email == email for u in self.users.values()):
            raise already_exists("user")
        user_id = len(self.users) + 1
        self.users[user_id] = User(
            id=user_id,
            name=name,
            email=email,
            pass_hash=pass_hash,
            role=role,
            is_admin=is_admin,
        )
        return user_id

    async def get_user_by_email(self, email: str) -> User:
        self._record("get_user_by_email")
        for user in self.users.values():
            if user.email == email:
                return user
        raise not_found("user")

    async def get_user_by_id(self, user_id: int) -> UserInfo:
        self._record("get_user_by_id")
        if user_id not in self.users:
            raise not_found("user")
        return self.users[user_id].to_info()

    async def is_admin(self, user_id: int) -> bool:
        self._record("is_admin")
        if user_id not in self.users:
            raise not_found("user")
        return self.users[user_id].is_admin

    async def get_app(self, app_id: int) -> App:
        self._record("get_app")
        if app_id not in self.apps:
            raise not_found("app")
        return self.apps[app_id]


class RecordingObserver:
    def __init__(self) -> None:
        self.events: list[tuple[str, str, Any]] = []

    def started(self, op: str, fields: dict[str, Any]) -> None:
        self.events.append(("started", op, fields))

    def succeeded(self, op: str, fields: dict[str, Any]) -> None:
        self.events.append(("succeeded", op, fields))

    def failed(self, op: str, error: AuthError, cause: BaseException | None) -> None:
        self.events.append(("failed", op, (error, cause)))

    def failures(self) -> list[tuple[AuthError, BaseException | None]]:
        return [payload for kind, _op, payload in self.events if kind == "failed"]


# ---------------------------------------------------------------------------
# Service fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def fake_store() -> FakeStore:
    store = FakeStore()
    store.add_app(1, "app1", "s3cr3t")
    store.add_app(2, "app2", "an0ther-s3cr3t")
    return store


@pytest.fixture
def observer() -> RecordingObserver:
    return RecordingObserver()


@pytest.fixture
def service(fake_store: FakeStore, observer: RecordingObserver) -> AuthService:
    return AuthService(
        user_saver=fake_store,
        user_provider=fake_store,
        app_provider=fake_store,
        token_ttl=timedelta(hours=1),
        bcrypt_rounds=TEST_ROUNDS,
        observer=observer,
    )


# ---------------------------------------------------------------------------
# API fixtures
# ---------------------------------------------------------------------------


def _patch_lifespan(user_store: UserStore):
    """Return an async context manager that replaces the real lifespan.

    Wires a pre-created test store into app.state so TestClient routes see an
    isolated in-memory DB rather than the configured database file.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        app.state.auth_service = AuthService(
            user_saver=user_store,
            user_provider=user_store,
            app_provider=user_store,
            token_ttl=timedelta(hours=1),
            bcrypt_rounds=TEST_ROUNDS,
        )
        yield

    return test_lifespan


@pytest.fixture
def api_client() -> Generator[tuple[TestClient, UserStore], None, None]:
    """Yield (client, store) over a fresh store holding App{1, "app1", "s3cr3t"}.

    Function-scoped so user ids are deterministic: the first registration in
    every test gets id 1.
    """
    user_store = make_store()
    user_store.create_app("app1", "s3cr3t")
    user_store.create_app("app2", "an0ther-s3cr3t")

    app.router.lifespan_context = _patch_lifespan(user_store)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, user_store

    user_store.close()
