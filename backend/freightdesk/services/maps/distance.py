"""
Distance estimation between pickup and delivery locations.

Two estimates are available:

- ``great_circle_distance``: haversine distance on a sphere of radius
  3959 miles, rounded to one decimal. ``DistanceEstimator.estimate`` applies
  it to two geocoded postal codes.
- ``DistanceEstimator.driving_distance``: road distance and duration from the
  Google Maps Directions API, converted to miles (one decimal) and whole
  minutes.
"""

import asyncio
import math
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional

from freightdesk.core.errors import ProviderError, RouteError
from freightdesk.core.logging import get_logger
from freightdesk.services.maps.client import MapsClient
from freightdesk.services.maps.geocoder import Coordinate, Geocoder

logger = get_logger(__name__)

DIRECTIONS_PATH = "/directions/json"

EARTH_RADIUS_MILES = 3959
METERS_TO_MILES = 0.000621371


def _round_half_up(value: float, places: int = 0) -> Decimal:
    exponent = Decimal(1).scaleb(-places)
    return Decimal(repr(value)).quantize(exponent, rounding=ROUND_HALF_UP)


def great_circle_distance(a: Coordinate, b: Coordinate) -> float:
    """
    Haversine distance between two coordinates in miles, one decimal.

    Symmetric, and zero for identical points.
    """
    lat1 = math.radians(a.latitude)
    lat2 = math.radians(b.latitude)
    d_lat = math.radians(b.latitude - a.latitude)
    d_lon = math.radians(b.longitude - a.longitude)

    h = (
        math.sin(d_lat / 2) ** 2
        + math.cos(lat1) * math.cos(lat2) * math.sin(d_lon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))
    return float(_round_half_up(EARTH_RADIUS_MILES * c, 1))


@dataclass(frozen=True)
class Estimate:
    """Great-circle miles together with the coordinates they were computed from."""

    origin: Coordinate
    destination: Coordinate
    miles: float


@dataclass(frozen=True)
class DrivingDistance:
    miles: float
    duration_minutes: int
    distance_text: Optional[str] = None
    duration_text: Optional[str] = None


class DistanceEstimator:
    """Great-circle and road-network distance between locations."""

    def __init__(self, client: MapsClient, geocoder: Geocoder):
        self.client = client
        self.geocoder = geocoder

    async def estimate(self, origin_postal: str, destination_postal: str) -> Estimate:
        """
        Great-circle miles between two postal codes.

        Both codes are geocoded concurrently; if either lookup fails the other
        is cancelled and the first failure is raised as is.

        Raises:
            GeocodeNotFoundError: If either postal code does not resolve
            ProviderError: If the geocoding provider fails
        """
        try:
            async with asyncio.TaskGroup() as tg:
                start = tg.create_task(self.geocoder.resolve(origin_postal))
                end = tg.create_task(self.geocoder.resolve(destination_postal))
        except ExceptionGroup as group:
            raise group.exceptions[0]

        origin, destination = start.result(), end.result()
        miles = great_circle_distance(origin, destination)
        logger.info(
            "Distance estimated",
            origin=origin_postal,
            destination=destination_postal,
            miles=miles,
        )
        return Estimate(origin, destination, miles)

    async def driving_distance(self, origin: str, destination: str) -> DrivingDistance:
        """
        Road distance and duration for a single driving route.

        Args:
            origin: Postal code or address of the start
            destination: Postal code or address of the end

        Raises:
            RouteError: Provider answered with a non-OK status
            ProviderError: Transport failure or malformed response
        """
        payload = await self.client.get_json(
            DIRECTIONS_PATH,
            {
                "origin": origin,
                "destination": destination,
                "mode": "driving",
                "units": "imperial",
            },
        )

        status = payload.get("status")
        if status != "OK":
            raise RouteError(
                "Directions request was not successful",
                provider_status=str(status),
                origin=origin,
                destination=destination,
                provider_message=payload.get("error_message"),
            )

        result = self._parse_leg(payload, origin, destination)
        logger.info(
            "Driving distance calculated",
            origin=origin,
            destination=destination,
            miles=result.miles,
            duration_minutes=result.duration_minutes,
        )
        return result

    @staticmethod
    def _parse_leg(payload: dict[str, Any], origin: str, destination: str) -> DrivingDistance:
        routes = payload.get("routes") or []
        if not routes or not routes[0].get("legs"):
            raise RouteError(
                "Directions response contains no route",
                provider_status="NO_ROUTE",
                origin=origin,
                destination=destination,
            )

        leg = routes[0]["legs"][0]
        try:
            meters = float(leg["distance"]["value"])
            seconds = float(leg["duration"]["value"])
        except (KeyError, TypeError, ValueError) as e:
            raise ProviderError(
                "Directions response is malformed",
                origin=origin,
                destination=destination,
                error=str(e),
            ) from e

        return DrivingDistance(
            miles=float(_round_half_up(meters * METERS_TO_MILES, 1)),
            duration_minutes=int(_round_half_up(seconds / 60)),
            distance_text=leg["distance"].get("text"),
            duration_text=leg["duration"].get("text"),
        )
