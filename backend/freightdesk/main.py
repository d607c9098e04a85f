"""
FastAPI application entry point with health endpoints and service routing.

This module provides the main FastAPI application instance with CORS configuration,
health check endpoints, domain and global exception handling, and the v1 routers.
Process-wide resources (maps client, Redis cache, status vocabulary) are created
in the lifespan and published on ``app.state``.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from freightdesk.api.v1 import (
    dispatch_router,
    distance_router,
    orders_router,
    vocabulary_router,
)
from freightdesk.cache.redis_client import RedisClient
from freightdesk.core.config import get_settings
from freightdesk.core.errors import DispatchError
from freightdesk.core.logging import (
    clear_context,
    configure_logging,
    get_logger,
    get_request_id,
    log_performance,
    set_request_id,
)
from freightdesk.core.rate_limit import limiter
from freightdesk.database.connection import (
    check_database_health,
    close_database_connections,
    get_session,
)
from freightdesk.services.maps.client import MapsClient
from freightdesk.services.orders.service import check_status_compatibility
from freightdesk.services.orders.vocabulary import load_vocabulary

# Configure logging before application initialization
configure_logging()
logger = get_logger(__name__)


async def _connect_cache() -> RedisClient | None:
    """Connect the geocode cache; the service runs uncached when Redis is down."""
    settings = get_settings()
    if not settings.geocode_cache_enabled:
        return None

    client = RedisClient()
    try:
        await client.connect()
    except (RedisError, ValueError) as e:
        logger.warning("Geocode cache unavailable, continuing without it", error=str(e))
        return None
    return client


async def _check_vocabulary(app: FastAPI) -> None:
    """Record stored status labels the loaded vocabulary cannot parse."""
    try:
        async with get_session() as session:
            app.state.unknown_status_labels = await check_status_compatibility(
                session, app.state.vocabulary
            )
    except Exception as e:
        app.state.unknown_status_labels = None
        logger.error(
            "Status compatibility check failed",
            error=str(e),
            error_type=type(e).__name__,
        )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Application lifespan context manager for startup and shutdown events.

    Loads the status vocabulary, starts the maps client, connects the
    geocode cache and checks stored statuses against the vocabulary.

    Args:
        app: FastAPI application instance

    Yields:
        None during application runtime
    """
    settings = get_settings()

    # Startup
    logger.info(
        "Application starting",
        environment=settings.environment,
        debug=settings.debug,
        version=settings.app_version,
    )

    with log_performance(logger, "application_startup"):
        app.state.vocabulary = load_vocabulary(settings.status_vocabulary_path)

        maps_client = MapsClient()
        await maps_client.startup()
        app.state.maps_client = maps_client

        app.state.redis = await _connect_cache()

        await _check_vocabulary(app)
        logger.info(
            "Resources initialized successfully",
            vocabulary_version=app.state.vocabulary.version,
            cache_enabled=app.state.redis is not None,
        )

    yield

    # Shutdown
    logger.info("Application shutting down")
    with log_performance(logger, "application_shutdown"):
        await maps_client.shutdown()
        if app.state.redis is not None:
            await app.state.redis.disconnect()
        await close_database_connections()
        logger.info("Resources cleaned up successfully")


# Initialize FastAPI application
settings = get_settings()
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Freight dispatch order lifecycle and distance API",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
    debug=settings.debug,
)

# Configure rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID"],
)


@app.middleware("http")
async def request_logging_middleware(request: Request, call_next):
    """
    Middleware for request logging and correlation ID management.

    Sets request ID for correlation, logs request details, and measures
    response time. Clears context after request processing.
    """
    request_id = request.headers.get("X-Request-ID")
    request_id = set_request_id(request_id)

    logger.info(
        "Request received",
        method=request.method,
        path=request.url.path,
        client_host=request.client.host if request.client else None,
    )

    try:
        with log_performance(
            logger,
            "request_processing",
            method=request.method,
            path=request.url.path,
        ):
            response = await call_next(request)

        response.headers["X-Request-ID"] = request_id

        logger.info(
            "Request completed",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
        )

        return response
    except Exception as e:
        logger.error(
            "Request failed",
            method=request.method,
            path=request.url.path,
            error=str(e),
            error_type=type(e).__name__,
        )
        raise
    finally:
        clear_context()


@app.exception_handler(DispatchError)
async def dispatch_exception_handler(request: Request, exc: DispatchError) -> JSONResponse:
    """
    Map a domain error to its family's HTTP status.

    The body carries the family, the specific code, the message and the
    structured context the error was raised with.
    """
    log = logger.error if exc.status_code >= 500 else logger.info
    log(
        "Request rejected",
        method=request.method,
        path=request.url.path,
        error_code=exc.code,
        status_code=exc.status_code,
    )

    content = exc.to_dict()
    content["request_id"] = get_request_id()
    return JSONResponse(status_code=exc.status_code, content=content)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """
    Handle request validation errors with structured error response.

    Args:
        request: HTTP request that caused validation error
        exc: Validation exception with error details

    Returns:
        JSON response with validation error details
    """
    errors = exc.errors()
    logger.warning(
        "Request validation failed",
        method=request.method,
        path=request.url.path,
        errors=errors,
    )

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": "ValidationError",
            "code": "RequestValidationError",
            "message": "Request validation failed",
            "details": [
                {"loc": list(e.get("loc", ())), "msg": e.get("msg"), "type": e.get("type")}
                for e in errors
            ],
            "request_id": get_request_id(),
        },
    )


@app.exception_handler(Exception)
async def global_exception_handler(
    request: Request, exc: Exception
) -> JSONResponse:
    """
    Handle unexpected exceptions with structured error response.

    Logs error with full context and returns generic error message
    to avoid exposing internal details.
    """
    logger.error(
        "Unhandled exception",
        method=request.method,
        path=request.url.path,
        error=str(exc),
        error_type=type(exc).__name__,
        exc_info=True,
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "InternalError",
            "code": "InternalServerError",
            "message": "An unexpected error occurred",
            "request_id": get_request_id(),
        },
    )


@app.get(
    "/health",
    status_code=status.HTTP_200_OK,
    tags=["Health"],
    summary="Health check endpoint",
    response_description="Application health status",
)
async def health_check() -> dict[str, str]:
    """
    Basic health check endpoint.

    Always returns 200 OK if application is running.
    """
    return {
        "status": "healthy",
        "service": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
    }


@app.get(
    "/ready",
    status_code=status.HTTP_200_OK,
    tags=["Health"],
    summary="Readiness check endpoint",
    response_description="Application readiness status",
)
async def readiness_check(request: Request):
    """
    Readiness check endpoint for orchestration.

    The database and the maps client are required; the geocode cache is
    reported but optional. Returns 503 when a required dependency is down.
    """
    state = request.app.state

    db_ready = await check_database_health(max_retries=1)
    maps_client = getattr(state, "maps_client", None)
    maps_ready = maps_client is not None and maps_client.is_ready

    cache = getattr(state, "redis", None)
    cache_stats = None
    if cache is None:
        cache_status = "disabled"
    else:
        cache_status = "healthy" if await cache.health_check() else "unhealthy"
        cache_stats = cache.get_cache_stats()

    vocabulary = getattr(state, "vocabulary", None)
    dependencies_ready = db_ready and maps_ready

    content = {
        "status": "ready" if dependencies_ready else "not_ready",
        "service": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
        "dependencies_ready": dependencies_ready,
        "database": "healthy" if db_ready else "unhealthy",
        "maps": "healthy" if maps_ready else "unavailable",
        "cache": cache_status,
        "cache_stats": cache_stats,
        "vocabulary_version": vocabulary.version if vocabulary else None,
        "unknown_status_labels": getattr(state, "unknown_status_labels", None),
    }

    if not dependencies_ready:
        logger.warning("Readiness check failed", database=db_ready, maps=maps_ready)
        return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content=content)

    return content


app.include_router(orders_router, prefix=settings.api_v1_prefix)
app.include_router(dispatch_router, prefix=settings.api_v1_prefix)
app.include_router(distance_router, prefix=settings.api_v1_prefix)
app.include_router(vocabulary_router, prefix=settings.api_v1_prefix)
