"""
Redis-backed geocode cache.

The dispatch core uses Redis for one thing: remembering postal code to
coordinate lookups so repeated distance requests do not hit the geocoding
provider. The client is optional; when Redis is not configured or not
reachable the geocoder simply goes to the provider.
"""

import json
from typing import Any, Optional, Union

from redis.asyncio import ConnectionPool, Redis
from redis.asyncio.retry import Retry
from redis.backoff import ExponentialBackoff
from redis.exceptions import ConnectionError, RedisError, TimeoutError

from freightdesk.core.config import get_settings
from freightdesk.core.logging import get_logger

logger = get_logger(__name__)


class RedisClient:
    """
    Pooled async Redis connection storing JSON documents.

    Counts hits and misses of ``get_json`` for the readiness report.
    """

    def __init__(self, url: Optional[str] = None, socket_timeout: float = 2.0):
        settings = get_settings()
        self._url = url or settings.redis_url
        self._max_connections = settings.redis_max_connections
        self._socket_timeout = socket_timeout

        self._pool: Optional[ConnectionPool] = None
        self._client: Optional[Redis] = None
        self._hits = 0
        self._misses = 0

    @staticmethod
    def _sanitize_url(url: str) -> str:
        """Strip credentials from a Redis URL for logging."""
        protocol, sep, rest = url.partition("://")
        if sep and "@" in rest:
            return f"{protocol}://***@{rest.split('@', 1)[1]}"
        return url

    @property
    def is_connected(self) -> bool:
        return self._client is not None

    async def connect(self) -> None:
        """
        Open the pool and ping the server.

        Raises:
            ConnectionError: If the server cannot be reached
            ValueError: If the URL cannot be parsed
        """
        if self.is_connected:
            return

        self._pool = ConnectionPool.from_url(
            self._url,
            max_connections=self._max_connections,
            socket_timeout=self._socket_timeout,
            socket_connect_timeout=self._socket_timeout,
            retry=Retry(ExponentialBackoff(base=0.1, cap=1.0), retries=2),
            decode_responses=True,
        )
        client = Redis(connection_pool=self._pool)
        try:
            await client.ping()
        except (ConnectionError, TimeoutError) as e:
            logger.error(
                "Failed to connect to Redis",
                url=self._sanitize_url(self._url),
                error=str(e),
            )
            await client.aclose()
            await self._pool.aclose()
            self._pool = None
            raise ConnectionError(f"Redis connection failed: {e}") from e

        self._client = client
        logger.info(
            "Redis connection established",
            url=self._sanitize_url(self._url),
            pool_size=self._max_connections,
        )

    async def disconnect(self) -> None:
        if self._client is None:
            return
        await self._client.aclose()
        await self._pool.aclose()
        self._client = None
        self._pool = None
        logger.info("Redis connection closed")

    async def health_check(self) -> bool:
        if self._client is None:
            return False
        try:
            await self._client.ping()
            return True
        except RedisError as e:
            logger.warning("Redis health check failed", error=str(e))
            return False

    def _connected_client(self) -> Redis:
        if self._client is None:
            raise ConnectionError("Redis client is not connected")
        return self._client

    async def get_json(self, key: str) -> Optional[dict[str, Any]]:
        """
        Read and decode the JSON document stored under ``key``.

        Raises:
            ConnectionError: If the client is not connected
            RedisError: If the command fails
            ValueError: If the stored value is not valid JSON
        """
        value = await self._connected_client().get(key)
        if value is None:
            self._misses += 1
            return None
        self._hits += 1
        return json.loads(value)

    async def set_json(
        self, key: str, value: dict[str, Any], ex: Optional[int] = None
    ) -> bool:
        """Store ``value`` as JSON, expiring after ``ex`` seconds when given."""
        return bool(await self._connected_client().set(key, json.dumps(value), ex=ex))

    def get_cache_stats(self) -> dict[str, Any]:
        lookups = self._hits + self._misses
        return {
            "cache_hits": self._hits,
            "cache_misses": self._misses,
            "hit_rate_percent": round(self._hits / lookups * 100, 2) if lookups else 0.0,
        }


class CacheKeyManager:
    """Builds ``:``-joined cache keys, optionally under a namespace."""

    def __init__(self, namespace: Optional[str] = None):
        self.namespace = namespace

    def make_key(self, *parts: Union[str, int]) -> str:
        key_parts = [str(part) for part in parts if part != ""]
        if self.namespace:
            key_parts.insert(0, self.namespace)
        return ":".join(key_parts)

    def geocode_key(self, postal_code: str) -> str:
        """Cache key for a geocoded postal code, e.g. ``geocode:10001``."""
        return self.make_key("geocode", postal_code.strip())
