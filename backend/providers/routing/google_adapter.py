import logging
from typing import Any

import httpx

from core.errors import ProviderUnavailableError, redact
from models.types import GeoPoint, MatrixElement, RouteLeg
from providers.google_maps import GOOGLE_MAPS_BASE_URL, raise_for_google_status

logger = logging.getLogger(__name__)


class GoogleRoutingAdapter:
    """Google Distance Matrix: driving distance with traffic-aware duration."""

    name = "google"
    metered = True
    max_destinations_per_call = 25

    def __init__(
        self,
        api_key: str,
        region: str = "th",
        language: str = "th",
        timeout: float = 15.0,
    ):
        self._api_key = api_key
        self._region = region
        self._language = language
        self._client = httpx.AsyncClient(timeout=timeout)

    def is_configured(self) -> bool:
        return bool(self._api_key)

    async def route(self, origin: GeoPoint, destination: GeoPoint) -> RouteLeg:
        elements = await self.distance_matrix(origin, [destination])
        element = elements[0]
        if element.leg is None:
            raise ProviderUnavailableError(self.name, f"No route found: {element.status}")
        return element.leg

    async def distance_matrix(
        self, origin: GeoPoint, destinations: list[GeoPoint]
    ) -> list[MatrixElement]:
        if len(destinations) > self.max_destinations_per_call:
            raise ValueError(
                f"At most {self.max_destinations_per_call} destinations per call, got {len(destinations)}"
            )
        data = await self._get(
            {
                "origins": origin.as_latlng(),
                "destinations": "|".join(d.as_latlng() for d in destinations),
                "units": "metric",
                "mode": "driving",
                "departure_time": "now",
                "traffic_model": "best_guess",
                "region": self._region,
                "language": self._language,
            }
        )
        raise_for_google_status(self.name, data)
        try:
            raw_elements = data["rows"][0]["elements"]
            elements = [self._to_element(raw) for raw in raw_elements]
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise ProviderUnavailableError(self.name, f"malformed matrix response: {e!r}") from None
        if len(elements) != len(destinations):
            raise ProviderUnavailableError(
                self.name, f"expected {len(destinations)} elements, got {len(elements)}"
            )
        return elements

    async def close(self) -> None:
        await self._client.aclose()

    async def _get(self, params: dict[str, str]) -> dict[str, Any]:
        try:
            response = await self._client.get(
                f"{GOOGLE_MAPS_BASE_URL}/distancematrix/json",
                params={**params, "key": self._api_key},
            )
            response.raise_for_status()
            return response.json()
        except (httpx.HTTPError, ValueError) as e:
            message = redact(str(e) or type(e).__name__, self._api_key)
            logger.warning("Google distance matrix request failed: %s", message)
            raise ProviderUnavailableError(self.name, message) from None

    @staticmethod
    def _to_element(raw: dict[str, Any]) -> MatrixElement:
        status = raw.get("status", "UNKNOWN")
        if status != "OK":
            return MatrixElement(status=status)
        duration = raw.get("duration_in_traffic") or raw.get("duration") or {}
        return MatrixElement(
            status=status,
            leg=RouteLeg(
                distance_km=round(raw["distance"]["value"] / 1000, 1),
                duration_seconds=duration.get("value"),
            ),
        )
