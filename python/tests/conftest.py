"""Pytest configuration and fixtures for vid0 tests.

Test isolation strategy:
- Each test gets its own in-memory SQLite database built from the ORM
  metadata, so committed data never leaks between tests
- Route tests run the real app with MockJwtVerifier in the auth middleware
  and the DB dependencies pointed at the test engine
- LLM providers are never called; tests mock HTTP with respx
"""

import base64
import os
import sys
from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any
from uuid import UUID

# Settings are read from the environment; tests never need real services
os.environ.setdefault("VID0_ENV", "test")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("CLERK_JWKS_URL", "https://clerk.test/.well-known/jwks.json")
os.environ.setdefault("CLERK_ISSUER", "test-issuer")
os.environ.setdefault(
    "VID0_KEY_ENCRYPTION_KEY",
    base64.b64encode(b"test_master_key_for_encryption!!").decode("ascii"),
)

# Add repo root to sys.path for importing top-level packages (e.g., apps)
_repo_root = Path(__file__).parent.parent.parent
if str(_repo_root) not in sys.path:
    sys.path.insert(0, str(_repo_root))

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from vid0.app import create_app
from vid0.auth.middleware import AuthMiddleware
from vid0.config import clear_settings_cache
from vid0.db.engine import create_db_engine
from vid0.db.models import Base
from vid0.db.session import create_session_factory, get_db, get_session_factory
from vid0.services.bootstrap import ensure_user
from vid0.services.crypto import clear_master_key_cache
from tests.helpers import auth_headers, create_test_subject
from tests.support.test_verifier import MockJwtVerifier


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    """A fresh in-memory database with the full schema."""
    engine = create_db_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return create_session_factory(engine)


@pytest.fixture
def db_session(session_factory: sessionmaker[Session]) -> Generator[Session, None, None]:
    """Session on the test database; services commit for real."""
    session = session_factory()
    yield session
    session.close()


def build_test_app(session_factory: sessionmaker[Session], with_auth: bool = True) -> FastAPI:
    """The real app wired to the test database and MockJwtVerifier."""
    app = create_app(skip_auth_middleware=True)

    def override_get_db() -> Generator[Session, None, None]:
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory

    if with_auth:

        def bootstrap_callback(subject: str, claims: dict[str, Any]) -> UUID:
            db = session_factory()
            try:
                return ensure_user(db, subject, claims)
            finally:
                db.close()

        app.add_middleware(
            AuthMiddleware,
            verifier=MockJwtVerifier(),
            requires_internal_header=False,
            internal_secret=None,
            bootstrap_callback=bootstrap_callback,
        )

    return app


@pytest.fixture
def client(session_factory) -> Generator[TestClient, None, None]:
    """A FastAPI test client without authentication middleware."""
    app = build_test_app(session_factory, with_auth=False)
    with TestClient(app) as client:
        yield client


@pytest.fixture
def authenticated_app(session_factory) -> FastAPI:
    return build_test_app(session_factory)


@pytest.fixture
def authenticated_client(authenticated_app) -> Generator[TestClient, None, None]:
    """A FastAPI test client with auth middleware.

    Use auth_headers(subject) to authenticate requests.
    """
    with TestClient(authenticated_app) as client:
        yield client


@pytest.fixture
def make_user(session_factory) -> Callable[..., tuple[UUID, dict[str, str]]]:
    """Create a user; returns (user_id, auth headers)."""

    def _make_user(subject: str | None = None, **claims) -> tuple[UUID, dict[str, str]]:
        subject = subject or create_test_subject()
        db = session_factory()
        try:
            user_id = ensure_user(db, subject, claims)
        finally:
            db.close()
        return user_id, auth_headers(subject)

    return _make_user


@pytest.fixture(autouse=True)
def reset_settings_cache():
    """Reset cached settings and master key around each test."""
    clear_settings_cache()
    clear_master_key_cache()
    yield
    clear_settings_cache()
    clear_master_key_cache()
