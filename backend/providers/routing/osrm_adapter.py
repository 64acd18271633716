import logging

import httpx

from core.errors import ProviderUnavailableError
from models.types import GeoPoint, RouteLeg

logger = logging.getLogger(__name__)


class OSRMRoutingAdapter:
    """Public OSRM demo server or a self-hosted instance. Free, no traffic model."""

    name = "osrm"
    metered = False

    def __init__(self, base_url: str, timeout: float = 15.0):
        self._base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(timeout=timeout)

    def is_configured(self) -> bool:
        return bool(self._base_url)

    async def route(self, origin: GeoPoint, destination: GeoPoint) -> RouteLeg:
        # OSRM takes lng,lat pairs
        coords = (
            f"{origin.longitude},{origin.latitude};"
            f"{destination.longitude},{destination.latitude}"
        )
        try:
            response = await self._client.get(
                f"{self._base_url}/route/v1/driving/{coords}",
                params={"overview": "false", "steps": "false"},
            )
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("OSRM route request failed: %s", e)
            raise ProviderUnavailableError(self.name, str(e) or type(e).__name__) from None

        routes = data.get("routes") or []
        if data.get("code", "Ok") != "Ok" or not routes:
            raise ProviderUnavailableError(self.name, f"No route found: {data.get('code')}")
        try:
            route = routes[0]
            return RouteLeg(
                distance_km=round(route["distance"] / 1000, 1),
                duration_seconds=route.get("duration"),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ProviderUnavailableError(self.name, f"malformed route response: {e!r}") from None

    async def close(self) -> None:
        await self._client.aclose()
