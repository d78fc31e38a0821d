"""Tests for the health endpoint.

The health endpoint is a liveness check that:
- Does not require authentication, even behind the auth middleware
- Does not touch the database
- Always returns 200 if the process is running
"""

from fastapi.testclient import TestClient


class TestHealthEndpoint:
    """Tests for GET /health"""

    def test_health_returns_ok_envelope(self, client: TestClient):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/json"
        assert response.json() == {"data": {"status": "ok"}}

    def test_health_needs_no_token(self, authenticated_client: TestClient):
        response = authenticated_client.get("/health")
        assert response.status_code == 200
