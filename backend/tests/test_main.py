"""
Test suite for the FastAPI application module.

Tests cover health and readiness endpoints, request ID middleware and the
structured error bodies produced by the exception handlers.
"""

import json
import uuid
from contextlib import contextmanager
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi import status
from httpx import AsyncClient
from redis.exceptions import ConnectionError as RedisConnectionError

from freightdesk.core.config import get_settings
from freightdesk.core.errors import OrderNotFoundError
from freightdesk.main import (
    _connect_cache,
    app,
    dispatch_exception_handler,
    global_exception_handler,
)
from freightdesk.services.maps.client import MapsClient
from freightdesk.services.orders.vocabulary import DEFAULT_VOCABULARY


@pytest.fixture
def app_state(maps_client: MapsClient):
    """Publish lifespan resources on app.state, removing them afterwards."""
    app.state.maps_client = maps_client
    app.state.redis = None
    app.state.vocabulary = DEFAULT_VOCABULARY
    app.state.unknown_status_labels = []
    yield app.state
    for name in ("maps_client", "redis", "vocabulary", "unknown_status_labels"):
        if hasattr(app.state, name):
            delattr(app.state, name)


@pytest.fixture
def db_healthy():
    with patch("freightdesk.main.check_database_health", new=AsyncMock(return_value=True)) as m:
        yield m


# ============================================================================
# Health Endpoints
# ============================================================================


class TestHealthEndpoints:
    """Test suite for health check and readiness endpoints."""

    async def test_health_check(self, async_client: AsyncClient):
        """Test health endpoint returns 200 with service metadata."""
        response = await async_client.get("/health")

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["status"] == "healthy"
        assert data["environment"] == "test"
        assert set(data) == {"status", "service", "version", "environment"}

    async def test_readiness_when_ready(
        self, async_client: AsyncClient, app_state, db_healthy
    ):
        """Test readiness reports dependencies and the vocabulary version."""
        response = await async_client.get("/ready")

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["status"] == "ready"
        assert data["dependencies_ready"] is True
        assert data["database"] == "healthy"
        assert data["maps"] == "healthy"
        assert data["cache"] == "disabled"
        assert data["vocabulary_version"] == 3
        assert data["unknown_status_labels"] == []

    async def test_readiness_without_maps_client(
        self, async_client: AsyncClient, app_state, db_healthy
    ):
        """Test readiness fails when the maps client never started."""
        del app.state.maps_client

        response = await async_client.get("/ready")

        assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
        data = response.json()
        assert data["status"] == "not_ready"
        assert data["maps"] == "unavailable"

    async def test_readiness_database_down(self, async_client: AsyncClient, app_state):
        """Test readiness fails when the database is unreachable."""
        with patch(
            "freightdesk.main.check_database_health", new=AsyncMock(return_value=False)
        ):
            response = await async_client.get("/ready")

        assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
        assert response.json()["database"] == "unhealthy"

    async def test_readiness_reports_cache_health(
        self, async_client: AsyncClient, app_state, db_healthy
    ):
        """Test an unhealthy cache is reported without failing readiness."""
        cache = MagicMock()
        cache.health_check = AsyncMock(return_value=False)
        cache.get_cache_stats = MagicMock(return_value={"cache_hits": 4, "cache_misses": 1})
        app.state.redis = cache

        response = await async_client.get("/ready")

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["cache"] == "unhealthy"
        assert data["cache_stats"]["cache_hits"] == 4


# ============================================================================
# Middleware
# ============================================================================


class TestRequestIdMiddleware:
    """Test suite for correlation ID handling."""

    async def test_generates_request_id(self, async_client: AsyncClient):
        response = await async_client.get("/health")

        assert response.headers["X-Request-ID"]

    async def test_preserves_request_id(self, async_client: AsyncClient):
        response = await async_client.get("/health", headers={"X-Request-ID": "trace-42"})

        assert response.headers["X-Request-ID"] == "trace-42"


# ============================================================================
# Exception Handlers
# ============================================================================


class TestExceptionHandlers:
    """Test suite for structured error responses."""

    async def test_domain_error_body(self, async_client: AsyncClient, auth_headers: dict):
        """Test a domain error carries family, code, context and request ID."""
        order_id = str(uuid.uuid4())

        response = await async_client.get(
            f"/api/v1/orders/{order_id}",
            headers={**auth_headers, "X-Request-ID": "trace-404"},
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND
        body = response.json()
        assert body["error"] == "NotFoundError"
        assert body["code"] == "OrderNotFoundError"
        assert body["details"]["order_id"] == order_id
        assert body["request_id"] == "trace-404"

    async def test_request_validation_body(self, async_client: AsyncClient, auth_headers: dict):
        response = await async_client.get("/api/v1/orders/not-a-uuid", headers=auth_headers)

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
        body = response.json()
        assert body["error"] == "ValidationError"
        assert body["code"] == "RequestValidationError"
        assert body["details"][0]["loc"] == ["path", "order_id"]
        assert "request_id" in body

    async def test_dispatch_handler_uses_family_status(self):
        request = MagicMock()
        request.method = "GET"
        request.url.path = "/api/v1/orders/x"

        response = await dispatch_exception_handler(
            request, OrderNotFoundError("Order not found", order_id="x")
        )

        assert response.status_code == 404
        assert json.loads(response.body)["details"] == {"order_id": "x"}

    async def test_unhandled_exception_hides_details(self):
        """Test unexpected errors return a generic 500 body."""
        request = MagicMock()
        request.method = "POST"
        request.url.path = "/api/v1/orders"

        response = await global_exception_handler(request, RuntimeError("secret detail"))

        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        body = json.loads(response.body)
        assert body["error"] == "InternalError"
        assert "secret detail" not in body["message"]


# ============================================================================
# Geocode Cache Startup
# ============================================================================


@contextmanager
def cache_enabled(**overrides):
    """Switch the geocode cache on for main and the Redis client."""
    settings = get_settings().model_copy(
        update={"geocode_cache_enabled": True, **overrides}
    )
    with patch("freightdesk.main.get_settings", return_value=settings), patch(
        "freightdesk.cache.redis_client.get_settings", return_value=settings
    ):
        yield settings


class TestConnectCache:
    """Test suite for connecting the optional geocode cache at startup."""

    async def test_disabled_cache(self):
        settings = get_settings().model_copy(update={"geocode_cache_enabled": False})

        with patch("freightdesk.main.get_settings", return_value=settings):
            assert await _connect_cache() is None

    async def test_unreachable_redis_runs_uncached(self):
        """Test a refused connection leaves the service running without a cache."""
        with cache_enabled(redis_url="redis://127.0.0.1:1/0"):
            assert await _connect_cache() is None

    async def test_redis_error_runs_uncached(self):
        with cache_enabled(), patch(
            "freightdesk.main.RedisClient.connect",
            new=AsyncMock(side_effect=RedisConnectionError("Connection refused")),
        ):
            assert await _connect_cache() is None

    async def test_malformed_url_runs_uncached(self):
        with cache_enabled(), patch(
            "freightdesk.main.RedisClient.connect",
            new=AsyncMock(side_effect=ValueError("Redis URL must specify a scheme")),
        ):
            assert await _connect_cache() is None

    async def test_connected_cache_is_returned(self):
        with cache_enabled(), patch("freightdesk.main.RedisClient.connect", new=AsyncMock()):
            client = await _connect_cache()

        assert client is not None
