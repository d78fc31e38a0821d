"""Integration tests for authentication middleware and bootstrap.

Tests the full auth flow including:
- Bearer token validation
- Optional-auth paths served to anonymous callers
- Internal header enforcement
- User bootstrap on first request
- GET /api/me
"""

from typing import Any
from uuid import UUID

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import func, select

from tests.helpers import (
    auth_headers,
    create_test_subject,
    mint_expired_token,
    mint_token_with_bad_signature,
)
from tests.support.test_verifier import MockJwtVerifier
from vid0.app import create_app
from vid0.auth.middleware import AuthMiddleware, get_anonymous_id, is_optional_auth_path
from vid0.db.models import User
from vid0.db.session import get_db
from vid0.services.bootstrap import ensure_user


class TestAuthBoundary:
    """Unauthenticated requests are rejected with E_UNAUTHENTICATED."""

    def test_no_authorization_header(self, authenticated_client):
        response = authenticated_client.get("/api/me")

        assert response.status_code == 401
        data = response.json()
        assert data["error"]["code"] == "E_UNAUTHENTICATED"
        assert "authentication" in data["error"]["message"].lower()

    def test_wrong_authorization_format(self, authenticated_client):
        response = authenticated_client.get("/api/me", headers={"Authorization": "Basic abc123"})
        assert response.status_code == 401

    def test_empty_bearer_token(self, authenticated_client):
        response = authenticated_client.get("/api/me", headers={"Authorization": "Bearer "})
        assert response.status_code == 401
        assert response.json()["error"]["message"] == "Invalid authorization header format"

    def test_bad_signature(self, authenticated_client):
        token = mint_token_with_bad_signature(create_test_subject())
        response = authenticated_client.get(
            "/api/me", headers={"Authorization": f"Bearer {token}"}
        )
        assert response.status_code == 401

    def test_expired_token(self, authenticated_client):
        token = mint_expired_token(create_test_subject())
        response = authenticated_client.get(
            "/api/me", headers={"Authorization": f"Bearer {token}"}
        )
        assert response.status_code == 401
        assert response.json()["error"]["message"] == "Token expired"

    def test_health_is_public(self, authenticated_client):
        response = authenticated_client.get("/health")
        assert response.status_code == 200


class TestOptionalAuthPaths:
    def test_models_served_anonymously(self, authenticated_client):
        response = authenticated_client.get("/api/models")
        assert response.status_code == 200

    def test_rate_limits_served_anonymously(self, authenticated_client):
        response = authenticated_client.get(
            "/api/rate-limits", headers={"X-Anonymous-Id": "anon-123"}
        )
        assert response.status_code == 200

    def test_bad_token_on_optional_path_is_rejected(self, authenticated_client):
        token = mint_expired_token(create_test_subject())
        response = authenticated_client.get(
            "/api/models", headers={"Authorization": f"Bearer {token}"}
        )
        assert response.status_code == 401

    @pytest.mark.parametrize(
        "path,expected",
        [
            ("/api/chat", True),
            ("/api/public/chats/123", True),
            ("/api/create-guest", True),
            ("/api/chats", False),
            ("/api/me", False),
        ],
    )
    def test_is_optional_auth_path(self, path, expected):
        assert is_optional_auth_path(path) is expected

    def test_anonymous_id_header_is_trimmed(self):
        class FakeRequest:
            headers = {"x-anonymous-id": "  anon-1  "}

        assert get_anonymous_id(FakeRequest()) == "anon-1"
        FakeRequest.headers = {"x-anonymous-id": "   "}
        assert get_anonymous_id(FakeRequest()) is None


class TestInternalHeaderEnforcement:
    """Staging/prod require the internal header on every non-public request."""

    @pytest.fixture
    def staging_client(self, session_factory):
        def bootstrap_callback(subject: str, claims: dict[str, Any]) -> UUID:
            db = session_factory()
            try:
                return ensure_user(db, subject, claims)
            finally:
                db.close()

        def override_get_db():
            db = session_factory()
            try:
                yield db
            finally:
                db.close()

        app = create_app(skip_auth_middleware=True)
        app.dependency_overrides[get_db] = override_get_db
        app.add_middleware(
            AuthMiddleware,
            verifier=MockJwtVerifier(),
            requires_internal_header=True,
            internal_secret="test-internal-secret",
            bootstrap_callback=bootstrap_callback,
        )
        with TestClient(app) as client:
            yield client

    def test_missing_internal_header(self, staging_client):
        response = staging_client.get("/api/me", headers=auth_headers(create_test_subject()))
        assert response.status_code == 403
        assert response.json()["error"]["code"] == "E_INTERNAL_ONLY"

    def test_wrong_internal_header(self, staging_client):
        headers = {**auth_headers(create_test_subject()), "X-Vid0-Internal": "wrong"}
        response = staging_client.get("/api/me", headers=headers)
        assert response.status_code == 403

    def test_correct_internal_header(self, staging_client):
        headers = {**auth_headers(create_test_subject()), "X-Vid0-Internal": "test-internal-secret"}
        response = staging_client.get("/api/me", headers=headers)
        assert response.status_code == 200

    def test_health_skips_internal_header(self, staging_client):
        assert staging_client.get("/health").status_code == 200


class TestBootstrap:
    def test_first_request_creates_user(self, authenticated_client, db_session):
        subject = create_test_subject()
        response = authenticated_client.get(
            "/api/me", headers=auth_headers(subject, email="creator@vid0.test", name="Creator")
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["email"] == "creator@vid0.test"
        assert data["display_name"] == "Creator"
        assert db_session.scalar(select(User.id).where(User.subject == subject)) is not None

    def test_repeated_requests_reuse_user(self, authenticated_client, db_session):
        subject = create_test_subject()
        first = authenticated_client.get("/api/me", headers=auth_headers(subject))
        second = authenticated_client.get("/api/me", headers=auth_headers(subject))

        assert first.json()["data"]["id"] == second.json()["data"]["id"]
        count = db_session.scalar(
            select(func.count()).select_from(User).where(User.subject == subject)
        )
        assert count == 1

    def test_ensure_user_is_idempotent(self, db_session):
        first = ensure_user(db_session, "user_same", {"email": "a@b.test"})
        second = ensure_user(db_session, "user_same", {"email": "changed@b.test"})
        assert first == second
        assert db_session.get(User, first).email == "a@b.test"
