"""
tests/conftest.py -- Shared test fixtures for the identity service.

This module provides:
  - make_services(): builds an isolated AuthServices over a fresh in-memory DB
  - services / scan_services: handler-level fixtures (index and scan reset lookup)
  - client: TestClient over the real FastAPI app with a patched lifespan

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs handlers in a thread pool. Plain :memory: DBs are
per-connection and would present a blank schema to each worker thread. The
named URI format (file:name?mode=memory&cache=shared&uri=true) shares one
in-memory instance across all connections in the same process. Every call
uses a fresh uuid in the name, so tests never see each other's users.

bcrypt_rounds=4 (the library minimum) keeps hashing fast in tests.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager

# Set DEBUG before any core/auth import so nothing refuses to start for want
# of a production signing secret.
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.services import AuthServices, build_services
from core.config import Settings
from core.secret_store import InMemorySecretStore

SECRET = "test-signing-secret-0123456789abcdef"
PASSWORD = "Passw0rd"


def make_services(reset_lookup: str = "index", **overrides) -> AuthServices:
    """Build an AuthServices container over an isolated shared-memory SQLite DB."""
    db_url = f"sqlite:///file:test_users_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"
    settings = Settings(
        debug=True,
        database_url=db_url,
        bcrypt_rounds=4,
        reset_token_lookup=reset_lookup,
        user_scan_page_size=2,
        **overrides,
    )
    return build_services(settings, secret_store=InMemorySecretStore({settings.jwt_secret_name: SECRET}))


def _patch_lifespan(services: AuthServices):
    """Return a lifespan that installs pre-built test services on app.state."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.services = services
        yield

    return test_lifespan


@pytest.fixture
def services() -> Generator[AuthServices, None, None]:
    svc = make_services()
    yield svc
    svc.close()


@pytest.fixture
def scan_services() -> Generator[AuthServices, None, None]:
    svc = make_services(reset_lookup="scan")
    yield svc
    svc.close()


@pytest.fixture
def client(services: AuthServices) -> Generator[TestClient, None, None]:
    """TestClient over the real app, wired to the isolated `services` fixture."""
    original = app.router.lifespan_context
    app.router.lifespan_context = _patch_lifespan(services)
    with TestClient(app) as test_client:
        yield test_client
    app.router.lifespan_context = original


@pytest.fixture
def registered(services: AuthServices) -> dict:
    """Register a@b.com / Passw0rd through the handler and return the 200 body."""
    from auth import handlers

    result = handlers.register({"email": "a@b.com", "password": PASSWORD}, services)
    assert result.status_code == 200
    return result.body
