"""
Pytest configuration and shared test fixtures.

This module provides pytest configuration, fixtures, and test utilities for
the FreightDesk backend. The database is an in-memory SQLite schema created
per test, and the mapping provider is replaced by an ``httpx.MockTransport``
that answers from a small table of known postal codes.
"""

import os

# Settings are read once at import time; configure the test environment first.
os.environ.setdefault("APP_ENVIRONMENT", "test")
os.environ.setdefault("APP_DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("APP_SECRET_KEY", "test-secret-key-for-freightdesk-suite-0123456789")
os.environ.setdefault("APP_GOOGLE_MAPS_API_KEY", "test-maps-key")
os.environ.setdefault("APP_GEOCODE_CACHE_ENABLED", "true")

from datetime import datetime, timezone  # noqa: E402
from typing import AsyncGenerator, Callable  # noqa: E402

import httpx  # noqa: E402
import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession  # noqa: E402

from freightdesk.api.deps import (  # noqa: E402
    get_cache,
    get_maps_client,
    get_status_vocabulary,
)
from freightdesk.core.security import create_access_token  # noqa: E402
from freightdesk.database.connection import (  # noqa: E402
    create_engine,
    create_session_factory,
    get_db,
)
from freightdesk.database.models import (  # noqa: E402
    Base,
    Customer,
    Employee,
    EmployeeStatus,
    Order,
    Vehicle,
    VehicleStatus,
)
from freightdesk.main import app  # noqa: E402
from freightdesk.services.maps.client import MapsClient  # noqa: E402
from freightdesk.services.maps.distance import DistanceEstimator  # noqa: E402
from freightdesk.services.maps.geocoder import Geocoder  # noqa: E402
from freightdesk.services.orders.service import OrderService  # noqa: E402
from freightdesk.services.orders.vocabulary import (  # noqa: E402
    DEFAULT_VOCABULARY,
    StatusVocabulary,
)

MAPS_BASE_URL = "https://maps.test/api"

# Bearer token subjects; seeded records belong to ACCOUNT unless stated
ACCOUNT = "dispatcher-1"
OTHER_ACCOUNT = "dispatcher-2"

NEW_YORK = (40.7128, -74.0060)
LOS_ANGELES = (34.0522, -118.2437)
CHICAGO = (41.8781, -87.6298)

# Postal code -> list of (lat, lng) results returned by the fake provider
GEOCODE_RESULTS: dict[str, list[tuple[float, float]]] = {
    "10001": [NEW_YORK],
    "90001": [LOS_ANGELES],
    "60601": [CHICAGO],
    "11111": [NEW_YORK, CHICAGO],
}

# (origin, destination) -> (meters, seconds)
ROUTES: dict[tuple[str, str], tuple[int, int]] = {
    ("10001", "90001"): (4_500_000, 147_600),
    ("10001", "60601"): (1_270_000, 45_030),
}


# ============================================================================
# Fake mapping provider
# ============================================================================


def _geocode_response(request: httpx.Request) -> httpx.Response:
    address = request.url.params.get("address", "")

    if address == "99999":
        return httpx.Response(
            200,
            json={
                "status": "OVER_QUERY_LIMIT",
                "error_message": "You have exceeded your daily request quota",
                "results": [],
            },
        )
    if address == "55555":
        return httpx.Response(503, text="Service Unavailable")

    matches = GEOCODE_RESULTS.get(address)
    if not matches:
        return httpx.Response(200, json={"status": "ZERO_RESULTS", "results": []})

    return httpx.Response(
        200,
        json={
            "status": "OK",
            "results": [
                {
                    "formatted_address": f"{address}, USA",
                    "geometry": {"location": {"lat": lat, "lng": lng}},
                }
                for lat, lng in matches
            ],
        },
    )


def _directions_response(request: httpx.Request) -> httpx.Response:
    key = (request.url.params.get("origin"), request.url.params.get("destination"))
    route = ROUTES.get(key)
    if route is None:
        return httpx.Response(200, json={"status": "NOT_FOUND", "routes": []})

    meters, seconds = route
    return httpx.Response(
        200,
        json={
            "status": "OK",
            "routes": [
                {
                    "legs": [
                        {
                            "distance": {"value": meters, "text": f"{round(meters / 1609.34):,} mi"},
                            "duration": {"value": seconds, "text": f"{seconds // 3600} hours"},
                        }
                    ]
                }
            ],
        },
    )


@pytest.fixture
def maps_requests() -> list[httpx.Request]:
    """Requests received by the fake mapping provider, in order."""
    return []


@pytest.fixture
def maps_handler(maps_requests: list[httpx.Request]) -> Callable[[httpx.Request], httpx.Response]:
    """Request handler emulating the Geocoding and Directions APIs."""

    def handler(request: httpx.Request) -> httpx.Response:
        maps_requests.append(request)
        if request.url.path.endswith("/geocode/json"):
            return _geocode_response(request)
        if request.url.path.endswith("/directions/json"):
            return _directions_response(request)
        return httpx.Response(404, json={"status": "NOT_FOUND"})

    return handler


@pytest.fixture
async def maps_client(maps_handler) -> AsyncGenerator[MapsClient, None]:
    """Started maps client talking to the fake provider."""
    client = MapsClient(
        api_key="test-maps-key",
        base_url=MAPS_BASE_URL,
        timeout=5.0,
        transport=httpx.MockTransport(maps_handler),
    )
    await client.startup()
    yield client
    await client.shutdown()


@pytest.fixture
def geocoder(maps_client: MapsClient) -> Geocoder:
    return Geocoder(maps_client, cache=None, region="US")


@pytest.fixture
def distance_estimator(maps_client: MapsClient, geocoder: Geocoder) -> DistanceEstimator:
    return DistanceEstimator(maps_client, geocoder)


# ============================================================================
# Database
# ============================================================================


@pytest.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """Fresh in-memory schema per test."""
    engine = create_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def db_session(engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    session = create_session_factory(engine)()
    try:
        yield session
    finally:
        await session.close()


@pytest.fixture
def vocabulary() -> StatusVocabulary:
    return DEFAULT_VOCABULARY


@pytest.fixture
async def customer(db_session: AsyncSession) -> Customer:
    customer = Customer(
        name="Acme Logistics", email="dispatch@acme.example", account_id=ACCOUNT
    )
    db_session.add(customer)
    await db_session.commit()
    return customer


async def _add_vehicle(session: AsyncSession, unit_number: str, **fields) -> Vehicle:
    fields.setdefault("account_id", ACCOUNT)
    vehicle = Vehicle(unit_number=unit_number, make="Freightliner", model="Cascadia", **fields)
    session.add(vehicle)
    await session.commit()
    return vehicle


async def _add_employee(
    session: AsyncSession, first_name: str, last_name: str, position: str = "Driver", **fields
) -> Employee:
    fields.setdefault("account_id", ACCOUNT)
    employee = Employee(first_name=first_name, last_name=last_name, position=position, **fields)
    session.add(employee)
    await session.commit()
    return employee


@pytest.fixture
async def vehicle(db_session: AsyncSession) -> Vehicle:
    return await _add_vehicle(db_session, "101", license_plate="TX-4521")


@pytest.fixture
async def second_vehicle(db_session: AsyncSession) -> Vehicle:
    return await _add_vehicle(db_session, "102", license_plate="TX-8830")


@pytest.fixture
async def grounded_vehicle(db_session: AsyncSession) -> Vehicle:
    return await _add_vehicle(db_session, "103", status=VehicleStatus.MAINTENANCE.value)


@pytest.fixture
async def driver(db_session: AsyncSession) -> Employee:
    return await _add_employee(db_session, "Dana", "Reyes")


@pytest.fixture
async def second_driver(db_session: AsyncSession) -> Employee:
    return await _add_employee(db_session, "Sam", "Okafor")


@pytest.fixture
async def inactive_driver(db_session: AsyncSession) -> Employee:
    return await _add_employee(
        db_session, "Lee", "Park", status=EmployeeStatus.ON_LEAVE.value
    )


@pytest.fixture
async def handler(db_session: AsyncSession) -> Employee:
    return await _add_employee(db_session, "Morgan", "Hale", position="Dispatcher")


@pytest.fixture
async def foreign_customer(db_session: AsyncSession) -> Customer:
    customer = Customer(name="Borealis Freight", account_id=OTHER_ACCOUNT)
    db_session.add(customer)
    await db_session.commit()
    return customer


@pytest.fixture
async def foreign_vehicle(db_session: AsyncSession) -> Vehicle:
    return await _add_vehicle(db_session, "901", account_id=OTHER_ACCOUNT)


@pytest.fixture
async def foreign_driver(db_session: AsyncSession) -> Employee:
    return await _add_employee(db_session, "Ines", "Varga", account_id=OTHER_ACCOUNT)


# ============================================================================
# Services
# ============================================================================


@pytest.fixture
def order_service(
    db_session: AsyncSession,
    vocabulary: StatusVocabulary,
    geocoder: Geocoder,
    distance_estimator: DistanceEstimator,
) -> OrderService:
    return OrderService(
        db_session,
        vocabulary,
        geocoder=geocoder,
        distance_estimator=distance_estimator,
        account_id=ACCOUNT,
    )


@pytest.fixture
def make_order(order_service: OrderService, customer: Customer):
    """Factory creating NY -> LA orders for the seeded customer."""

    async def factory(**overrides) -> Order:
        fields = {
            "customer_id": customer.id,
            "pickup_address": "350 5th Ave, New York, NY",
            "pickup_postal_code": "10001",
            "delivery_address": "1 World Way, Los Angeles, CA",
            "delivery_postal_code": "90001",
            "pickup_date": datetime(2026, 3, 2, 8, 0, tzinfo=timezone.utc),
        }
        fields.update(overrides)
        return await order_service.create_order(**fields)

    return factory


@pytest.fixture
async def pending_order(make_order) -> Order:
    return await make_order()


@pytest.fixture
async def foreign_order(
    db_session: AsyncSession, vocabulary: StatusVocabulary, foreign_customer: Customer
) -> Order:
    """Pending order owned by another account."""
    service = OrderService(db_session, vocabulary, account_id=OTHER_ACCOUNT)
    return await service.create_order(
        customer_id=foreign_customer.id,
        pickup_address="1 Harbor Rd, Seattle, WA",
        pickup_postal_code="10001",
        delivery_address="9 Lake St, Chicago, IL",
        delivery_postal_code="60601",
        pickup_date=datetime(2026, 3, 4, 8, 0, tzinfo=timezone.utc),
    )


# ============================================================================
# HTTP
# ============================================================================


@pytest.fixture
def auth_headers() -> dict[str, str]:
    token = create_access_token(ACCOUNT, role="dispatcher")
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def other_auth_headers() -> dict[str, str]:
    token = create_access_token(OTHER_ACCOUNT, role="dispatcher")
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def async_client(
    db_session: AsyncSession,
    maps_client: MapsClient,
    vocabulary: StatusVocabulary,
) -> AsyncGenerator[AsyncClient, None]:
    """
    Create an asynchronous test client for the FastAPI application.

    Dependencies resolve to the per-test database session, the fake maps
    client and no cache.
    """

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_maps_client] = lambda: maps_client
    app.dependency_overrides[get_cache] = lambda: None
    app.dependency_overrides[get_status_vocabulary] = lambda: vocabulary

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
