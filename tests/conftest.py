"""
tests/conftest.py -- Shared fixtures for the CRA Saint-Louis test suite.

This module provides:
  - settings:      debug Settings with a fixed secret and cheap bcrypt cost
  - store:         isolated in-memory UserStore (one per test)
  - issuer / recorder / service: the auth core wired over that store
  - admin:         an ADMINISTRATEUR already in the store, plus its Principal
  - api_client:    TestClient over create_app() with an admin bearer token

Design: the HTTP fixture uses a named shared-memory SQLite URI (not plain
:memory:) because TestClient runs sync route handlers in a thread pool. Plain
:memory: DBs are per-connection and would present a blank schema to each
worker thread. The named URI format (file:name?mode=memory&cache=shared&uri=true)
shares one in-memory instance across all connections in the same process.

bcrypt runs at cost 4 here (the library minimum) to keep the suite fast; the
production default of 12 is asserted separately in test_config.py.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from dataclasses import dataclass

# Settings() also reads the environment; DEBUG keeps an unset SECRET_KEY from
# aborting any code path that builds default settings.
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient

from api.main import create_app
from auth.audit import AuditRecorder
from auth.models import Principal, User
from auth.service import AuthService
from auth.store import UserStore
from auth.tokens import TokenIssuer, hash_password
from core.config import Settings

TEST_SECRET = "test-secret-key-that-is-long-enough-for-hs256-0123456789"
TEST_ROUNDS = 4

ADMIN_EMAIL = "admin@cra.org"
ADMIN_PASSWORD = "AdminPass123!"


def make_settings(**overrides) -> Settings:
    values = {
        "debug": True,
        "secret_key": TEST_SECRET,
        "bcrypt_rounds": TEST_ROUNDS,
        "database_url": "sqlite:///:memory:",
        "log_dir": "",
    }
    values.update(overrides)
    return Settings(**values)


@dataclass
class AdminAccount:
    id: int
    principal: Principal


# ---------------------------------------------------------------------------
# Unit-level fixtures (function scope -- every test gets a blank database)
# ---------------------------------------------------------------------------


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def store() -> Generator[UserStore, None, None]:
    s = UserStore("sqlite:///:memory:")
    yield s
    s.close()


@pytest.fixture
def issuer(settings: Settings) -> TokenIssuer:
    return TokenIssuer.from_settings(settings)


@pytest.fixture
def recorder(store: UserStore) -> AuditRecorder:
    return AuditRecorder(store)


@pytest.fixture
def service(store: UserStore, issuer: TokenIssuer, recorder: AuditRecorder) -> AuthService:
    return AuthService(store, issuer, recorder, bcrypt_rounds=TEST_ROUNDS)


@pytest.fixture
def admin(store: UserStore) -> AdminAccount:
    """An active administrator inserted straight into the store (no audit row)."""
    uid = store.create_user(
        User(
            email=ADMIN_EMAIL,
            role="ADMINISTRATEUR",
            first_name="Awa",
            last_name="Diop",
            hashed_password=hash_password(ADMIN_PASSWORD, TEST_ROUNDS),
        )
    )
    return AdminAccount(id=uid, principal=Principal(user_id=uid, email=ADMIN_EMAIL, role="ADMINISTRATEUR"))


# ---------------------------------------------------------------------------
# HTTP fixture (module scope -- one TestClient per test module for speed)
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def api_client(request) -> Generator[tuple[TestClient, str, int], None, None]:
    """Yield (client, admin_token, admin_id) for API integration tests.

    The TestClient runs the real app (real lifespan, real routes) against an
    isolated shared-memory database named after the test module. The admin
    is created once the lifespan has built the store.
    """
    db_name = request.module.__name__.rsplit(".", 1)[-1]
    app = create_app(
        make_settings(database_url=f"sqlite:///file:{db_name}?mode=memory&cache=shared&uri=true"),
    )

    with TestClient(app, raise_server_exceptions=True) as client:
        store: UserStore = app.state.user_store
        uid = store.create_user(
            User(
                email=ADMIN_EMAIL,
                role="ADMINISTRATEUR",
                first_name="Awa",
                last_name="Diop",
                hashed_password=hash_password(ADMIN_PASSWORD, TEST_ROUNDS),
            )
        )
        token = app.state.auth_service.issuer.issue({"userId": uid, "email": ADMIN_EMAIL, "role": "ADMINISTRATEUR"})
        yield client, token, uid
