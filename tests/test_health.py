"""Tests for the health check and metrics endpoints."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from tests.mocks.gateway_mocks import make_admin, make_user


@pytest.fixture
def app(hub):
    """
    Create a minimal FastAPI app with the health and metrics endpoints.

    Returns:
        FastAPI: FastAPI application instance.
    """
    from support_relay.api.http.health import router as health_router
    from support_relay.api.http.metrics import router as metrics_router

    test_app = FastAPI()
    test_app.include_router(health_router)
    test_app.include_router(metrics_router)
    test_app.state.relay = hub
    return test_app


@pytest.fixture
def client(app):
    return TestClient(app)


def healthy_engine():
    mock_engine = MagicMock()
    mock_engine.connect.return_value.__aenter__.return_value = AsyncMock()
    return mock_engine


def test_health_reports_presence(client, hub):
    """Health shows the admin flag and the number of online users."""
    hub.registry.register("c1", make_user("u1"))
    hub.registry.register("c2", make_user("u2"))
    hub.registry.register("a1", make_admin())
    hub.registry.set_admin("a1")

    with patch("support_relay.api.http.health.engine", healthy_engine()):
        response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {
        "status": "healthy",
        "admin": True,
        "users": 2,
        "database": "healthy",
    }


def test_health_database_unhealthy(client):
    mock_engine = MagicMock()
    mock_engine.connect.return_value.__aenter__.side_effect = OperationalError(
        "SELECT 1", {}, Exception("connection refused")
    )

    with patch("support_relay.api.http.health.engine", mock_engine):
        response = client.get("/health")

    assert response.status_code == 503
    data = response.json()
    assert data["status"] == "unhealthy"
    assert data["database"] == "unhealthy"
    assert data["admin"] is False
    assert data["users"] == 0


def test_metrics_endpoint(client):
    response = client.get("/metrics")

    assert response.status_code == 200
    assert "relay_connections_active" in response.text
