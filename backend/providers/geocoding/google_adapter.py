import logging
from typing import Any

import httpx

from core.errors import ProviderUnavailableError, redact
from models.types import GeocodeCandidate, GeoPoint, ReverseGeocodeResult
from providers.google_maps import GOOGLE_MAPS_BASE_URL, google_components, raise_for_google_status

logger = logging.getLogger(__name__)

DEFAULT_CONFIDENCE = 0.9

LOCATION_TYPE_CONFIDENCE = {
    "ROOFTOP": 1.0,
    "RANGE_INTERPOLATED": 0.9,
    "GEOMETRIC_CENTER": 0.8,
    "APPROXIMATE": 0.7,
}


class GoogleGeocodingAdapter:
    name = "google"
    metered = True
    stop_on_first_hit = False

    def __init__(
        self,
        api_key: str,
        region: str = "th",
        language: str = "th",
        country_code: str = "TH",
        timeout: float = 10.0,
    ):
        self._api_key = api_key
        self._region = region
        self._language = language
        self._country_code = country_code
        self._client = httpx.AsyncClient(timeout=timeout)

    def is_configured(self) -> bool:
        return bool(self._api_key)

    async def geocode(self, query: str) -> list[GeocodeCandidate]:
        data = await self._get(
            {
                "address": query,
                "region": self._region,
                "language": self._language,
                "components": f"country:{self._country_code}",
            }
        )
        raise_for_google_status(self.name, data)
        try:
            return [self._to_candidate(result, query) for result in data.get("results", [])]
        except (KeyError, TypeError, ValueError) as e:
            raise ProviderUnavailableError(self.name, f"malformed geocode response: {e!r}") from None

    async def reverse_geocode(self, point: GeoPoint) -> ReverseGeocodeResult | None:
        data = await self._get({"latlng": point.as_latlng(), "language": self._language})
        raise_for_google_status(self.name, data)
        results = data.get("results", [])
        if not results:
            return None
        first = results[0]
        return ReverseGeocodeResult(
            point=point,
            formatted_address=first.get("formatted_address", ""),
            components=google_components(first),
            provider_name=self.name,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def _get(self, params: dict[str, str]) -> dict[str, Any]:
        try:
            response = await self._client.get(
                f"{GOOGLE_MAPS_BASE_URL}/geocode/json",
                params={**params, "key": self._api_key},
            )
            response.raise_for_status()
            return response.json()
        except (httpx.HTTPError, ValueError) as e:
            message = redact(str(e) or type(e).__name__, self._api_key)
            logger.warning("Google geocode request failed: %s", message)
            raise ProviderUnavailableError(self.name, message) from None

    def _to_candidate(self, result: dict[str, Any], query: str) -> GeocodeCandidate:
        location = result["geometry"]["location"]
        location_type = result["geometry"].get("location_type")
        return GeocodeCandidate(
            point=GeoPoint(latitude=location["lat"], longitude=location["lng"]),
            formatted_address=result.get("formatted_address", ""),
            confidence=LOCATION_TYPE_CONFIDENCE.get(location_type, DEFAULT_CONFIDENCE),
            source_query=query,
            provider_name=self.name,
            metered=self.metered,
        )
