"""
Process-wide HTTP client for the mapping provider.

One ``MapsClient`` is created at application startup and shared by the
geocoder and the distance estimator. It owns an ``httpx.AsyncClient`` with
connection pooling and translates transport-level failures into
``ProviderError`` so callers only see the dispatch error taxonomy.
"""

from typing import Any, Optional

import httpx

from freightdesk.core.config import get_settings
from freightdesk.core.errors import ProviderError
from freightdesk.core.logging import get_logger, log_performance

logger = get_logger(__name__)


class MapsClient:
    """
    Async client for the Google Maps web service APIs.

    Lifecycle is explicit: ``startup()`` before the first request,
    ``shutdown()`` when the application stops. A client that was never
    started refuses requests instead of opening connections lazily.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Configure the client; no connections are opened here.

        Args:
            api_key: Provider API key (defaults to settings)
            base_url: Provider base URL (defaults to settings)
            timeout: Per-request timeout in seconds (defaults to settings)
            transport: Optional httpx transport, used to stub the provider
        """
        settings = get_settings()
        self.api_key = api_key if api_key is not None else settings.google_maps_api_key
        self.base_url = (base_url or settings.maps_base_url).rstrip("/")
        self.timeout = timeout or settings.maps_timeout_seconds
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def is_ready(self) -> bool:
        return self._client is not None and bool(self.api_key)

    async def startup(self) -> None:
        """Open the underlying connection pool."""
        if self._client is not None:
            return

        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(self.timeout),
            transport=self._transport,
            headers={"Accept": "application/json"},
        )

        if not self.api_key:
            logger.warning("Maps client started without an API key")
        logger.info("Maps client started", base_url=self.base_url, timeout=self.timeout)

    async def shutdown(self) -> None:
        """Close the connection pool."""
        if self._client is None:
            return
        await self._client.aclose()
        self._client = None
        logger.info("Maps client closed")

    async def get_json(self, path: str, params: dict[str, Any]) -> dict[str, Any]:
        """
        GET a provider endpoint and decode its JSON body.

        Args:
            path: Endpoint path relative to the base URL, e.g. ``/geocode/json``
            params: Query parameters; the API key is added here

        Returns:
            Decoded JSON object

        Raises:
            ProviderError: If the client is not usable, the request fails or
                times out, or the body is not a JSON object
        """
        if self._client is None:
            raise ProviderError("Maps client is not started", endpoint=path)
        if not self.api_key:
            raise ProviderError("Maps API key is not configured", endpoint=path)

        query = {**params, "key": self.api_key}

        try:
            with log_performance(logger, "maps_request", endpoint=path):
                response = await self._client.get(path, params=query)
                response.raise_for_status()
                payload = response.json()
        except httpx.TimeoutException as e:
            raise ProviderError(
                "Mapping provider timed out",
                endpoint=path,
                timeout=self.timeout,
            ) from e
        except httpx.HTTPStatusError as e:
            raise ProviderError(
                "Mapping provider returned an HTTP error",
                endpoint=path,
                http_status=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            raise ProviderError(
                "Mapping provider request failed",
                endpoint=path,
                error=str(e),
                error_type=type(e).__name__,
            ) from e
        except ValueError as e:
            raise ProviderError(
                "Mapping provider returned invalid JSON",
                endpoint=path,
            ) from e

        if not isinstance(payload, dict):
            raise ProviderError(
                "Mapping provider returned an unexpected payload",
                endpoint=path,
            )
        return payload
