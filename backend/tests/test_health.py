"""Tests for the health check endpoint."""

import pytest


@pytest.mark.unit
class TestHealth:
    """Health endpoint tests."""

    async def test_health_root(self, client):
        """GET /api/health returns 200 with the database check."""
        resp = await client.get("/api/health")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "healthy"
        assert data["database"] == "ok"
        assert data["execution_backend"] == "inprocess"
        assert "version" in data

    async def test_response_has_request_id(self, client):
        """Every response should have X-Request-ID and X-Process-Time headers."""
        resp = await client.get("/api/health")
        assert "x-request-id" in resp.headers
        assert resp.headers["x-process-time"].endswith("ms")

    async def test_custom_request_id_propagated(self, client):
        """If client sends X-Request-ID, it should be echoed back."""
        custom_id = "test-request-12345"
        resp = await client.get("/api/health", headers={"X-Request-ID": custom_id})
        assert resp.headers.get("x-request-id") == custom_id

    async def test_error_body_carries_request_id(self, client):
        resp = await client.get("/api/v1/executions/missing", headers={"X-Request-ID": "abc"})
        assert resp.status_code == 404
        assert resp.json() == {"detail": "Execution not found: missing", "request_id": "abc"}
