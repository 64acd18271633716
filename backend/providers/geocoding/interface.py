from typing import Protocol

from models.types import GeocodeCandidate, GeoPoint, ReverseGeocodeResult


class GeocodingProvider(Protocol):
    name: str
    metered: bool
    stop_on_first_hit: bool

    def is_configured(self) -> bool: ...

    async def geocode(self, query: str) -> list[GeocodeCandidate]: ...

    async def reverse_geocode(self, point: GeoPoint) -> ReverseGeocodeResult | None: ...

    async def close(self) -> None: ...
