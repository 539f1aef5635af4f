"""Tests for health check routes."""

from unittest.mock import MagicMock, patch

import pytest
from fastapi import HTTPException

from routes.health_routes import SERVICE_NAME, health, ready


@pytest.mark.unit
class TestHealthEndpoint:
    async def test_health_returns_healthy(self):
        result = await health()
        assert result.status == "healthy"
        assert result.service == "swapi-api"

    async def test_health_over_http(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "service": SERVICE_NAME}
        assert response.headers["x-content-type-options"] == "nosniff"


class TestDetailedHealth:
    async def test_reports_database_up(self, client):
        response = await client.get("/health/detailed")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["database"] is True
        # StaticPool exposes no pool metrics
        assert body["pool"] is None


@pytest.mark.unit
class TestReadyEndpoint:
    async def test_ready_when_initialized(self):
        request = MagicMock()
        request.app.state.init_error = None
        request.app.state.init_done = True

        with patch(
            "routes.health_routes.check_db_connection", autospec=True
        ) as mock_check:
            result = await ready(request)

        assert result.status == "ready"
        mock_check.assert_awaited_once_with(request.app.state.engine, timeout=5)

    async def test_503_when_init_failed(self):
        request = MagicMock()
        request.app.state.init_error = "migrations failed"
        request.app.state.init_done = False

        with pytest.raises(HTTPException) as exc_info:
            await ready(request)

        assert exc_info.value.status_code == 503
        assert "Initialization failed" in exc_info.value.detail

    async def test_503_while_starting(self, client, app):
        app.state.init_done = False

        response = await client.get("/ready")

        assert response.status_code == 503
        assert response.json()["message"] == "Starting"
        assert response.json()["error"] == "ServiceUnavailable"

    async def test_503_when_database_unreachable(self):
        request = MagicMock()
        request.app.state.init_error = None
        request.app.state.init_done = True

        with patch(
            "routes.health_routes.check_db_connection",
            autospec=True,
            side_effect=ConnectionError("connection refused"),
        ):
            with pytest.raises(HTTPException) as exc_info:
                await ready(request)

        assert exc_info.value.detail == "Database unavailable"

    async def test_ready_over_http(self, client):
        response = await client.get("/ready")
        assert response.status_code == 200
