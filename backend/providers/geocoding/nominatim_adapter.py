import asyncio
import logging
import time
from typing import Any

import httpx

from core.errors import ProviderUnavailableError
from models.types import GeocodeCandidate, GeoPoint, ReverseGeocodeResult

logger = logging.getLogger(__name__)

# Nominatim usage policy: at most one request per second. Not configurable.
MIN_REQUEST_INTERVAL = 1.0

BASELINE_CONFIDENCE = 0.5

_COMPONENT_FALLBACKS = {
    "country": ("country",),
    "province": ("state", "province"),
    "district": ("county", "district"),
    "subdistrict": ("suburb", "subdistrict"),
    "city": ("city", "town", "village"),
    "postcode": ("postcode",),
    "road": ("road",),
    "house_number": ("house_number",),
}


class NominatimGeocodingAdapter:
    name = "nominatim"
    metered = False
    stop_on_first_hit = True

    def __init__(
        self,
        base_url: str,
        user_agent: str,
        country_code: str = "TH",
        timeout: float = 10.0,
    ):
        self._base_url = base_url.rstrip("/")
        self._country_code = country_code.lower()
        self._client = httpx.AsyncClient(
            timeout=timeout,
            headers={"User-Agent": user_agent},
        )
        self._lock = asyncio.Lock()
        self._last_request_at: float | None = None

    def is_configured(self) -> bool:
        return True

    async def geocode(self, query: str) -> list[GeocodeCandidate]:
        data = await self._get(
            "/search",
            {
                "q": query,
                "format": "json",
                "limit": "10",
                "countrycodes": self._country_code,
                "accept-language": "th,en",
                "addressdetails": "1",
            },
        )
        if not isinstance(data, list):
            raise ProviderUnavailableError(self.name, "malformed search response")
        try:
            return [self._to_candidate(item, query) for item in data]
        except (KeyError, TypeError, ValueError) as e:
            raise ProviderUnavailableError(self.name, f"malformed search response: {e!r}") from None

    async def reverse_geocode(self, point: GeoPoint) -> ReverseGeocodeResult | None:
        data = await self._get(
            "/reverse",
            {
                "lat": str(point.latitude),
                "lon": str(point.longitude),
                "format": "json",
                "accept-language": "th,en",
                "addressdetails": "1",
            },
        )
        if not data or "error" in data:
            return None
        return ReverseGeocodeResult(
            point=point,
            formatted_address=data.get("display_name", ""),
            components=self._components(data.get("address") or {}),
            provider_name=self.name,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def _get(self, path: str, params: dict[str, str]) -> Any:
        async with self._lock:
            await self._throttle()
            try:
                response = await self._client.get(f"{self._base_url}{path}", params=params)
                response.raise_for_status()
                return response.json()
            except (httpx.HTTPError, ValueError) as e:
                logger.warning("Nominatim request failed: %s", e)
                raise ProviderUnavailableError(self.name, str(e) or type(e).__name__) from None
            finally:
                self._last_request_at = time.monotonic()

    async def _throttle(self) -> None:
        if self._last_request_at is None:
            return
        wait = MIN_REQUEST_INTERVAL - (time.monotonic() - self._last_request_at)
        if wait > 0:
            await asyncio.sleep(wait)

    def _to_candidate(self, item: dict[str, Any], query: str) -> GeocodeCandidate:
        importance = item.get("importance")
        confidence = BASELINE_CONFIDENCE if importance is None else min(max(float(importance), 0.0), 1.0)
        return GeocodeCandidate(
            point=GeoPoint(latitude=float(item["lat"]), longitude=float(item["lon"])),
            formatted_address=item.get("display_name", ""),
            confidence=confidence,
            source_query=query,
            provider_name=self.name,
            metered=self.metered,
        )

    @staticmethod
    def _components(address: dict[str, str]) -> dict[str, str]:
        components: dict[str, str] = {}
        for key, sources in _COMPONENT_FALLBACKS.items():
            for source in sources:
                if address.get(source):
                    components[key] = address[source]
                    break
        return components
