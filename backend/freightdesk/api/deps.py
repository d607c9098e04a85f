"""
FastAPI dependencies for identity, database sessions and services.

Process-wide resources (maps client, Redis cache, status vocabulary) are
created in the application lifespan and read from ``app.state`` here, so
tests can replace any of them through ``app.dependency_overrides``.
"""

from dataclasses import dataclass
from typing import Annotated, Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from freightdesk.cache.redis_client import RedisClient
from freightdesk.core.errors import ProviderError
from freightdesk.core.logging import get_logger, set_user_id
from freightdesk.core.security import TokenError, decode_token
from freightdesk.database.connection import get_db
from freightdesk.services.maps.client import MapsClient
from freightdesk.services.maps.distance import DistanceEstimator
from freightdesk.services.maps.geocoder import Geocoder
from freightdesk.services.orders.service import OrderService
from freightdesk.services.orders.vocabulary import StatusVocabulary, get_vocabulary

logger = get_logger(__name__)

security = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Identity:
    """Authenticated caller as asserted by the bearer token."""

    subject: str
    role: Optional[str] = None


async def get_current_identity(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
) -> Identity:
    """
    Validate the bearer JWT and return the caller identity.

    Raises:
        HTTPException: 401 if the token is missing, invalid or expired
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if credentials is None:
        logger.warning("Authentication failed: No credentials provided")
        raise credentials_exception

    try:
        payload = decode_token(credentials.credentials)
    except TokenError as e:
        logger.warning("Authentication failed", code=e.code)
        raise credentials_exception from e

    subject = payload.get("sub")
    if not subject:
        logger.warning("Authentication failed: Token missing 'sub' claim")
        raise credentials_exception

    set_user_id(str(subject))
    return Identity(subject=str(subject), role=payload.get("role"))


def get_status_vocabulary(request: Request) -> StatusVocabulary:
    """Vocabulary loaded at startup, or the configured one if the app has none."""
    vocabulary = getattr(request.app.state, "vocabulary", None)
    return vocabulary or get_vocabulary()


def get_maps_client(request: Request) -> MapsClient:
    client = getattr(request.app.state, "maps_client", None)
    if client is None:
        raise ProviderError("Maps client is not available")
    return client


def get_cache(request: Request) -> Optional[RedisClient]:
    return getattr(request.app.state, "redis", None)


def get_geocoder(
    client: Annotated[MapsClient, Depends(get_maps_client)],
    cache: Annotated[Optional[RedisClient], Depends(get_cache)],
) -> Geocoder:
    return Geocoder(client, cache=cache)


def get_distance_estimator(
    client: Annotated[MapsClient, Depends(get_maps_client)],
    geocoder: Annotated[Geocoder, Depends(get_geocoder)],
) -> DistanceEstimator:
    return DistanceEstimator(client, geocoder)


def get_order_service(
    identity: Annotated[Identity, Depends(get_current_identity)],
    db: Annotated[AsyncSession, Depends(get_db)],
    vocabulary: Annotated[StatusVocabulary, Depends(get_status_vocabulary)],
    geocoder: Annotated[Geocoder, Depends(get_geocoder)],
    estimator: Annotated[DistanceEstimator, Depends(get_distance_estimator)],
) -> OrderService:
    """Order service scoped to the caller's account."""
    return OrderService(
        db,
        vocabulary,
        geocoder=geocoder,
        distance_estimator=estimator,
        account_id=identity.subject,
    )


CurrentIdentity = Annotated[Identity, Depends(get_current_identity)]
Vocabulary = Annotated[StatusVocabulary, Depends(get_status_vocabulary)]
OrderServiceDep = Annotated[OrderService, Depends(get_order_service)]
DistanceEstimatorDep = Annotated[DistanceEstimator, Depends(get_distance_estimator)]
