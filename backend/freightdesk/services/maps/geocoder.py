"""
Postal code geocoding through the Google Maps Geocoding API.

Results are restricted to the configured region (US by default) and must be
unique: a postal code that matches nothing, or matches more than one place,
is reported as not found. Resolved coordinates are cached in Redis when a
cache client is available; cache failures never fail a lookup.
"""

import re
from dataclasses import asdict, dataclass
from typing import Any, Optional

from redis.exceptions import RedisError

from freightdesk.cache.redis_client import CacheKeyManager, RedisClient
from freightdesk.core.config import get_settings
from freightdesk.core.errors import GeocodeNotFoundError, ProviderError
from freightdesk.core.logging import get_logger
from freightdesk.services.maps.client import MapsClient

logger = get_logger(__name__)

GEOCODE_PATH = "/geocode/json"

# US ZIP or ZIP+4
POSTAL_CODE_PATTERN = re.compile(r"^\d{5}(-\d{4})?$")


def is_valid_postal_code(value: Optional[str]) -> bool:
    """Check a US postal code (``12345`` or ``12345-6789``)."""
    if not value:
        return False
    return bool(POSTAL_CODE_PATTERN.match(value.strip()))


@dataclass(frozen=True)
class Coordinate:
    latitude: float
    longitude: float

    def __post_init__(self) -> None:
        if not -90.0 <= self.latitude <= 90.0:
            raise ValueError(f"Latitude out of range: {self.latitude}")
        if not -180.0 <= self.longitude <= 180.0:
            raise ValueError(f"Longitude out of range: {self.longitude}")

    def as_dict(self) -> dict[str, float]:
        return asdict(self)


class Geocoder:
    """Resolves postal codes to coordinates."""

    def __init__(
        self,
        client: MapsClient,
        cache: Optional[RedisClient] = None,
        region: Optional[str] = None,
        cache_ttl_seconds: Optional[int] = None,
    ):
        settings = get_settings()
        self.client = client
        self.cache = cache if settings.geocode_cache_enabled else None
        self.region = (region or settings.maps_region).upper()
        self.cache_ttl_seconds = cache_ttl_seconds or settings.geocode_cache_ttl_seconds
        self.keys = CacheKeyManager()

    async def resolve(self, postal_code: str) -> Coordinate:
        """
        Resolve a postal code to a single coordinate.

        Raises:
            GeocodeNotFoundError: No result, or more than one result
            ProviderError: Provider failure or unexpected response
        """
        code = (postal_code or "").strip()
        if not code:
            raise GeocodeNotFoundError("Postal code is empty", postal_code=postal_code)

        cached = await self._cache_get(code)
        if cached is not None:
            return cached

        payload = await self.client.get_json(
            GEOCODE_PATH,
            {"address": code, "components": f"country:{self.region}"},
        )
        coordinate = self._parse(code, payload)

        logger.info(
            "Postal code geocoded",
            postal_code=code,
            latitude=coordinate.latitude,
            longitude=coordinate.longitude,
        )

        await self._cache_set(code, coordinate)
        return coordinate

    def _parse(self, code: str, payload: dict[str, Any]) -> Coordinate:
        status = payload.get("status")

        if status == "ZERO_RESULTS":
            raise GeocodeNotFoundError(
                "No location found for postal code",
                postal_code=code,
                region=self.region,
            )
        if status != "OK":
            raise ProviderError(
                "Geocoding request was not successful",
                postal_code=code,
                provider_status=status,
                provider_message=payload.get("error_message"),
            )

        results = payload.get("results") or []
        if not results:
            raise GeocodeNotFoundError(
                "No location found for postal code",
                postal_code=code,
                region=self.region,
            )
        if len(results) > 1:
            raise GeocodeNotFoundError(
                "Postal code matches more than one location",
                postal_code=code,
                region=self.region,
                matches=len(results),
            )

        try:
            location = results[0]["geometry"]["location"]
            return Coordinate(float(location["lat"]), float(location["lng"]))
        except (KeyError, TypeError, ValueError) as e:
            raise ProviderError(
                "Geocoding response is malformed",
                postal_code=code,
                error=str(e),
            ) from e

    async def _cache_get(self, code: str) -> Optional[Coordinate]:
        if self.cache is None or not self.cache.is_connected:
            return None
        try:
            data = await self.cache.get_json(self.keys.geocode_key(code))
        except (RedisError, ValueError) as e:
            logger.warning("Geocode cache read failed", postal_code=code, error=str(e))
            return None
        if data is None:
            return None
        try:
            return Coordinate(float(data["latitude"]), float(data["longitude"]))
        except (KeyError, TypeError, ValueError):
            logger.warning("Ignoring malformed geocode cache entry", postal_code=code)
            return None

    async def _cache_set(self, code: str, coordinate: Coordinate) -> None:
        if self.cache is None or not self.cache.is_connected:
            return
        try:
            await self.cache.set_json(
                self.keys.geocode_key(code),
                coordinate.as_dict(),
                ex=self.cache_ttl_seconds,
            )
        except RedisError as e:
            logger.warning("Geocode cache write failed", postal_code=code, error=str(e))
