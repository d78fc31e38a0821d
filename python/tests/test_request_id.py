"""Tests for X-Request-ID middleware.

Tests cover:
- Request ID generation when missing
- Request ID preservation when valid
- Request ID normalization (UUID lowercase)
- Request ID replacement when invalid
- Request ID presence on auth failures
- Request ID in error response body
"""

from uuid import UUID

import pytest
from fastapi.testclient import TestClient

from tests.conftest import build_test_app
from tests.helpers import auth_headers, create_test_subject
from vid0.app import add_request_id_middleware
from vid0.middleware.request_id import resolve_request_id


@pytest.fixture
def auth_client(session_factory):
    """Client with auth + request-id middleware."""
    app = build_test_app(session_factory)

    # Added LAST so it runs FIRST (outermost)
    add_request_id_middleware(app, log_requests=False)

    with TestClient(app) as client:
        yield client


class TestRequestIdMiddleware:
    def test_generated_when_missing(self, auth_client):
        response = auth_client.get("/api/me", headers=auth_headers(create_test_subject()))

        assert response.status_code == 200
        UUID(response.headers["X-Request-ID"])

    def test_preserved_when_valid(self, auth_client):
        response = auth_client.get(
            "/api/me",
            headers={**auth_headers(create_test_subject()), "X-Request-ID": "abc_def-1.2"},
        )
        assert response.headers["X-Request-ID"] == "abc_def-1.2"

    def test_uuid_normalized_to_lowercase(self, auth_client):
        response = auth_client.get(
            "/api/me",
            headers={
                **auth_headers(create_test_subject()),
                "X-Request-ID": "550E8400-E29B-41D4-A716-446655440000",
            },
        )
        assert response.headers["X-Request-ID"] == "550e8400-e29b-41d4-a716-446655440000"

    def test_replaced_when_invalid(self, auth_client):
        response = auth_client.get("/health", headers={"X-Request-ID": "has spaces!"})
        request_id = response.headers["X-Request-ID"]
        assert request_id != "has spaces!"
        UUID(request_id)

    def test_present_on_auth_failure(self, auth_client):
        response = auth_client.get("/api/me")
        assert response.status_code == 401
        assert "X-Request-ID" in response.headers

    def test_error_body_includes_request_id(self, auth_client):
        response = auth_client.get("/api/me", headers={"X-Request-ID": "trace-42"})
        data = response.json()
        assert data["error"]["request_id"] == "trace-42"
        assert data["error"]["request_id"] == response.headers["X-Request-ID"]

    def test_route_error_includes_request_id(self, auth_client):
        response = auth_client.get(
            "/api/chats/00000000-0000-0000-0000-000000000000",
            headers={**auth_headers(create_test_subject()), "X-Request-ID": "trace-43"},
        )
        assert response.status_code == 404
        assert response.json()["error"]["request_id"] == "trace-43"


class TestResolveRequestId:
    @pytest.mark.parametrize("value", ["a.b.c", "a_b", "a-b", "x" * 128])
    def test_valid_ids_kept(self, value):
        assert resolve_request_id(value) == value

    @pytest.mark.parametrize("value", [None, "", "x" * 129, "bad/slash", "émoji"])
    def test_invalid_ids_replaced(self, value):
        UUID(resolve_request_id(value))
