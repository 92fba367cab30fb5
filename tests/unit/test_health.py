"""
Tests for health check endpoints.
"""

from unittest.mock import AsyncMock, patch

from fastapi.testclient import TestClient

from app.main import app

client = TestClient(app)

HEALTHY_DB = {
    "healthy": True,
    "connection_time_ms": 1.2,
    "pool_stats": {"pool_size": 3, "pool_available": 2},
}


def test_healthz_endpoint():
    """Test the basic health check endpoint."""
    response = client.get("/healthz")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["service"] == "collab-contracts"


def test_readyz_endpoint_all_services_healthy():
    """Test readiness endpoint when all services are healthy."""
    with (
        patch("app.routes.health.fast_redis.ping", new=AsyncMock(return_value=True)),
        patch("app.routes.health.db_health_check", new=AsyncMock(return_value=HEALTHY_DB)),
    ):
        response = client.get("/readyz")

    assert response.status_code == 200
    data = response.json()
    assert data["overall_ok"] is True

    checks = data["checks"]
    assert checks["redis"]["ok"] is True
    assert checks["database"]["ok"] is True
    assert checks["database"]["pool_size"] == 3
    assert checks["configuration"]["ok"] is True


def test_readyz_endpoint_redis_unhealthy():
    """Override cache down still answers 200 but is not ready."""
    with (
        patch("app.routes.health.fast_redis.ping", new=AsyncMock(return_value=False)),
        patch("app.routes.health.db_health_check", new=AsyncMock(return_value=HEALTHY_DB)),
    ):
        response = client.get("/readyz")

    assert response.status_code == 200
    data = response.json()
    assert data["overall_ok"] is False
    assert data["checks"]["redis"]["ok"] is False


def test_readyz_endpoint_database_unhealthy():
    """Test readiness endpoint when the database pool is down."""
    unhealthy = {"healthy": False, "error": "Connection failed", "error_type": "OperationalError"}
    with (
        patch("app.routes.health.fast_redis.ping", new=AsyncMock(return_value=True)),
        patch("app.routes.health.db_health_check", new=AsyncMock(return_value=unhealthy)),
    ):
        response = client.get("/readyz")

    data = response.json()
    assert data["overall_ok"] is False
    assert data["checks"]["database"]["error"] == "Connection failed"
    assert data["checks"]["database"]["error_type"] == "OperationalError"


def test_readyz_endpoint_database_check_raises():
    with (
        patch("app.routes.health.fast_redis.ping", new=AsyncMock(return_value=True)),
        patch(
            "app.routes.health.db_health_check",
            new=AsyncMock(side_effect=RuntimeError("pool not initialized")),
        ),
    ):
        response = client.get("/readyz")

    data = response.json()
    assert data["overall_ok"] is False
    assert data["checks"]["database"]["error"] == "RuntimeError: pool not initialized"


def test_readyz_reports_missing_public_origin():
    with (
        patch("app.routes.health.fast_redis.ping", new=AsyncMock(return_value=True)),
        patch("app.routes.health.db_health_check", new=AsyncMock(return_value=HEALTHY_DB)),
        patch("app.routes.health.settings.PUBLIC_APP_ORIGIN", ""),
    ):
        response = client.get("/readyz")

    data = response.json()
    assert data["overall_ok"] is False
    assert "PUBLIC_APP_ORIGIN not set" in data["checks"]["configuration"]["issues"]
