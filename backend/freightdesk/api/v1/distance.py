"""
Distance API endpoint.

``mode=estimate`` geocodes both postal codes and returns the great-circle
distance; ``mode=driving`` asks the directions provider for the road
distance and duration.
"""

from typing import Annotated

from fastapi import APIRouter, Query, Request

from freightdesk.api.deps import CurrentIdentity, DistanceEstimatorDep
from freightdesk.core.config import get_settings
from freightdesk.core.rate_limit import limiter
from freightdesk.schemas.distance import DistanceMode, DistanceResponse
from freightdesk.schemas.tracking import CoordinateSchema
from freightdesk.services.maps.geocoder import POSTAL_CODE_PATTERN

router = APIRouter(prefix="/distance", tags=["distance"])


@router.get(
    "",
    response_model=DistanceResponse,
    summary="Distance between two postal codes",
)
@limiter.limit(get_settings().distance_rate_limit)
async def get_distance(
    request: Request,
    identity: CurrentIdentity,
    estimator: DistanceEstimatorDep,
    origin: Annotated[str, Query(alias="from", pattern=POSTAL_CODE_PATTERN.pattern)],
    destination: Annotated[str, Query(alias="to", pattern=POSTAL_CODE_PATTERN.pattern)],
    mode: DistanceMode = DistanceMode.ESTIMATE,
) -> DistanceResponse:
    """
    Errors:
        404 postal code does not geocode,
        502 provider failure or no driving route
    """
    if mode is DistanceMode.DRIVING:
        route = await estimator.driving_distance(origin, destination)
        return DistanceResponse(
            origin=origin,
            destination=destination,
            mode=mode,
            miles=route.miles,
            duration_minutes=route.duration_minutes,
        )

    estimate = await estimator.estimate(origin, destination)
    return DistanceResponse(
        origin=origin,
        destination=destination,
        mode=mode,
        miles=estimate.miles,
        origin_coordinate=CoordinateSchema(**estimate.origin.as_dict()),
        destination_coordinate=CoordinateSchema(**estimate.destination.as_dict()),
    )
