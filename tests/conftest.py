"""
tests/conftest.py -- Shared test fixtures for Wayfarer unit and integration tests.

This module provides:
  - store / signer / issuer / gate / service / recovery: the auth object
    graph over an isolated in-memory UserStore, one per test
  - mailer: RecordingMailer (tests/helpers.py), records instead of sending
  - make_user: factory for persisted accounts
  - api_client: TestClient with a patched lifespan and an admin JWT

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs route handlers in a thread pool. Plain :memory: DBs
are per-connection and would present a blank schema to each worker thread.
The named URI format (file:name?mode=memory&cache=shared&uri=true) shares
one in-memory instance across all connections in the same process.

DEBUG and BCRYPT_ROUNDS must be set before any auth/core import so
get_settings() auto-generates JWT_SECRET and hashing stays fast.
"""

from __future__ import annotations

import os
from collections.abc import Callable, Generator
from contextlib import asynccontextmanager

# CRITICAL: set before any auth/core import -- get_settings() is cached.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from api.main import app, wire_auth
from auth.gate import AuthGate
from auth.models import User
from auth.recovery import PasswordRecovery
from auth.service import AuthService
from auth.sessions import CookiePolicy, SessionIssuer
from auth.store import UserStore
from auth.tokens import TokenConfig, TokenSigner
from tests.helpers import DEFAULT_PASSWORD, TEST_SECRET, RecordingMailer, memory_db_url

# ---------------------------------------------------------------------------
# Unit-level fixtures -- fresh object graph per test
# ---------------------------------------------------------------------------


@pytest.fixture
def store() -> Generator[UserStore, None, None]:
    user_store = UserStore(db_url=memory_db_url("test_users"))
    yield user_store
    user_store.close()


@pytest.fixture
def signer() -> TokenSigner:
    return TokenSigner(TokenConfig(secret_key=TEST_SECRET, expire_seconds=3600))


@pytest.fixture
def issuer(signer: TokenSigner) -> SessionIssuer:
    return SessionIssuer(signer, CookiePolicy(max_age_days=90, secure=False))


@pytest.fixture
def mailer() -> RecordingMailer:
    return RecordingMailer()


@pytest.fixture
def gate(store: UserStore, signer: TokenSigner) -> AuthGate:
    return AuthGate(store, signer)


@pytest.fixture
def service(store: UserStore, issuer: SessionIssuer) -> AuthService:
    return AuthService(store, issuer)


@pytest.fixture
def recovery(store: UserStore, issuer: SessionIssuer, mailer: RecordingMailer) -> PasswordRecovery:
    return PasswordRecovery(store, issuer, mailer)


@pytest.fixture
def make_user(store: UserStore) -> Callable[..., User]:
    """Factory: make_user(email="a@example.com", role="guide") -> persisted User."""
    counter = iter(range(1, 10_000))

    def _make(email: str | None = None, password: str = DEFAULT_PASSWORD, **extra) -> User:
        fields = {
            "name": extra.pop("name", "Test User"),
            "email": email or f"user{next(counter)}@example.com",
            "password": password,
            "confirm_password": password,
        }
        fields.update(extra)
        return store.create(fields)

    return _make


# ---------------------------------------------------------------------------
# Integration fixtures
# ---------------------------------------------------------------------------


def _patch_lifespan(user_store: UserStore, mailer: RecordingMailer):
    """Return an async context manager that replaces the real lifespan.

    Wires the test store and the recording mailer through the same
    wire_auth() the real lifespan uses, so routes see the production object
    graph over an isolated database and never touch SMTP.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        wire_auth(app, user_store, mailer)
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_client() -> Generator[tuple[TestClient, str, int, RecordingMailer], None, None]:
    """Yield (client, admin_token, admin_id, mailer) for API integration tests.

    The TestClient uses the real FastAPI app with a patched lifespan so tests
    hit real route handlers and middleware but an isolated in-memory store.
    The admin account is created before the client starts; its token is
    signed with the same signer the app uses.
    """
    user_store = UserStore(db_url=memory_db_url("test_api"))
    mailer = RecordingMailer()
    admin = user_store.create(
        {
            "name": "Test Admin",
            "email": "admin@example.com",
            "password": "adminpass123",
            "confirm_password": "adminpass123",
            "role": "admin",
        }
    )

    app.router.lifespan_context = _patch_lifespan(user_store, mailer)
    limiter.reset()

    with TestClient(app, raise_server_exceptions=True) as client:
        token, _claims = app.state.auth_gate.signer.sign(admin.id)
        yield client, token, admin.id, mailer

    user_store.close()
