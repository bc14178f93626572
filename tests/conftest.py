"""
tests/conftest.py -- Shared test fixtures for Shopfront.

This module provides:
  - RecordingMailer: a MailSender stand-in that keeps every message in memory
  - user_store / item_store: fresh in-memory stores per test (unit tests)
  - issuer: a SessionTokenIssuer with a fixed test secret
  - api: one TestClient per test module with a patched lifespan
  - client: the module's TestClient with its cookie jar emptied per test

Design: Named shared-memory SQLite URIs back the API fixture, one pair per
test module. TestClient runs sync route handlers in a thread pool, so
make_engine() gives in-memory URLs a StaticPool and every worker thread sees
the same connection and schema.

DEBUG must be set before any api/ import so get_settings() auto-generates
APP_SECRET in dev mode rather than raising ValueError.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field

# CRITICAL: Set DEBUG before any api/ or core/ import.
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from api.main import app
from auth.models import Permission, User
from auth.reset import ResetTokenManager
from auth.service import AuthService
from auth.store import UserStore
from auth.tokens import SessionTokenIssuer, hash_password
from core.config import get_settings
from items.service import ItemService
from items.store import ItemStore

TEST_SECRET = "test-secret-" + "x" * 32
FRONTEND_URL = "http://shop.test"

ADMIN_EMAIL = "admin@shop.test"
ADMIN_PASSWORD = "adminpass123"
SHOPPER_EMAIL = "shopper@shop.test"
SHOPPER_PASSWORD = "shopperpass123"

# Counters are shared process-wide; individual tests would trip the signin
# limit long before the suite finishes.
limiter.enabled = False


@dataclass
class RecordingMailer:
    """Collects sent messages instead of delivering them. Set fail=True to raise."""

    sent: list[dict] = field(default_factory=list)
    fail: bool = False
    mode: str = "test"

    def send(self, to: str, subject: str, html_body: str) -> None:
        if self.fail:
            raise ConnectionRefusedError("mail relay unreachable")
        self.sent.append({"to": to, "subject": subject, "html": html_body})


# ---------------------------------------------------------------------------
# Unit-test fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def user_store() -> Generator[UserStore, None, None]:
    s = UserStore("sqlite:///:memory:")
    yield s
    s.close()


@pytest.fixture
def item_store() -> Generator[ItemStore, None, None]:
    s = ItemStore("sqlite:///:memory:")
    yield s
    s.close()


@pytest.fixture
def issuer() -> SessionTokenIssuer:
    return SessionTokenIssuer(TEST_SECRET)


@pytest.fixture
def mailer() -> RecordingMailer:
    return RecordingMailer()


# ---------------------------------------------------------------------------
# API fixtures
# ---------------------------------------------------------------------------


@dataclass
class ApiHarness:
    client: TestClient
    user_store: UserStore
    item_store: ItemStore
    issuer: SessionTokenIssuer
    mailer: RecordingMailer
    admin: User
    shopper: User
    admin_password: str = ADMIN_PASSWORD
    shopper_password: str = SHOPPER_PASSWORD

    def token_for(self, user: User) -> str:
        return self.issuer.issue(user.id)


def _patch_lifespan(
    user_store: UserStore,
    item_store: ItemStore,
    issuer: SessionTokenIssuer,
    mailer: RecordingMailer,
):
    """Return an async context manager that replaces the real lifespan.

    Wires the test stores, issuer and recording mailer into app.state so
    routes run against isolated databases and never touch the network.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.settings = get_settings()
        app.state.session_issuer = issuer
        app.state.user_store = user_store
        app.state.item_store = item_store
        resets = ResetTokenManager(store=user_store, issuer=issuer, mailer=mailer, frontend_url=FRONTEND_URL)
        app.state.auth_service = AuthService(store=user_store, issuer=issuer, resets=resets)
        app.state.item_service = ItemService(item_store)
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api() -> Generator[ApiHarness, None, None]:
    """Yield an ApiHarness for integration tests.

    Two accounts exist before the client starts: an ADMIN and a plain USER.
    """
    suffix = uuid.uuid4().hex
    user_store = UserStore(f"sqlite:///file:test_users_{suffix}?mode=memory&cache=shared&uri=true")
    item_store = ItemStore(f"sqlite:///file:test_items_{suffix}?mode=memory&cache=shared&uri=true")
    issuer = SessionTokenIssuer(TEST_SECRET)
    mailer = RecordingMailer()

    admin = user_store.create_user(
        User(
            email=ADMIN_EMAIL,
            name="Admin",
            password_hash=hash_password(ADMIN_PASSWORD),
            permissions=[Permission.USER.value, Permission.ADMIN.value],
        )
    )
    shopper = user_store.create_user(
        User(
            email=SHOPPER_EMAIL,
            name="Shopper",
            password_hash=hash_password(SHOPPER_PASSWORD),
            permissions=[Permission.USER.value],
        )
    )

    app.router.lifespan_context = _patch_lifespan(user_store, item_store, issuer, mailer)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield ApiHarness(
            client=client,
            user_store=user_store,
            item_store=item_store,
            issuer=issuer,
            mailer=mailer,
            admin=admin,
            shopper=shopper,
        )

    user_store.close()
    item_store.close()


@pytest.fixture
def client(api: ApiHarness) -> TestClient:
    """The module's TestClient with no cookies carried over from earlier tests."""
    api.client.cookies.clear()
    return api.client
