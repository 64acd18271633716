"""Shared test data factories and fake providers. Realistic Thailand-based defaults, all overridable."""

import time

from core.errors import ProviderUnavailableError
from models.types import GeocodeCandidate, GeoPoint, MatrixElement, RouteLeg

DEPOT = GeoPoint(latitude=13.537051, longitude=100.2173051)
PATHUM_THANI = GeoPoint(latitude=14.0206, longitude=100.5256)


def make_candidate(**overrides: object) -> GeocodeCandidate:
    defaults = {
        "point": GeoPoint(latitude=14.02, longitude=100.53),
        "formatted_address": "27 หมู่ 4 ถนนพหลโยธิน ตำบลคลองหนึ่ง อำเภอคลองหลวง ปทุมธานี 12120 ประเทศไทย",
        "confidence": 0.9,
        "source_query": "27 Moo 4 Phahonyothin Road, Pathum Thani, Thailand",
        "provider_name": "google",
        "metered": True,
    }
    return GeocodeCandidate(**{**defaults, **overrides})


def make_customer_row(**overrides: object) -> dict:
    defaults = {
        "code": "CM-0042",
        "name": "บริษัท เค.เอส. เมทัล พริ้นติ้ง จำกัด",
        "latitude": 14.0206,
        "longitude": 100.5256,
        "mileage_km": None,
    }
    return {**defaults, **overrides}


def make_quota_row(**overrides: object) -> dict:
    defaults = {
        "period": "2026-10",
        "geocoding_count": 120,
        "distance_count": 80,
        "total_count": 200,
        "hard_limit": 9500,
        "warning_threshold": 9000,
        "is_exceeded": False,
        "last_reset_at": None,
    }
    return {**defaults, **overrides}


class FakeGeocoder:
    """Answers by call position: the n-th geocode() call returns ``responses[n]`` (empty when absent)."""

    def __init__(
        self,
        name: str = "google",
        metered: bool = True,
        responses: dict[int, list[GeocodeCandidate]] | None = None,
        stop_on_first_hit: bool = False,
        configured: bool = True,
        error: Exception | None = None,
    ):
        self.name = name
        self.metered = metered
        self.stop_on_first_hit = stop_on_first_hit
        self._responses = responses or {}
        self._configured = configured
        self._error = error
        self.calls: list[str] = []
        self.reverse_calls: list[GeoPoint] = []
        self.closed = False

    def is_configured(self) -> bool:
        return self._configured

    async def geocode(self, query: str) -> list[GeocodeCandidate]:
        index = len(self.calls)
        self.calls.append(query)
        if self._error is not None:
            raise self._error
        return [c.model_copy(update={"provider_name": self.name, "metered": self.metered})
                for c in self._responses.get(index, [])]

    async def reverse_geocode(self, point: GeoPoint):
        self.reverse_calls.append(point)
        if self._error is not None:
            raise self._error
        return None

    async def close(self) -> None:
        self.closed = True


class FakeRouter:
    def __init__(
        self,
        name: str = "osrm",
        metered: bool = False,
        leg: RouteLeg | None = None,
        error: Exception | None = None,
        configured: bool = True,
    ):
        self.name = name
        self.metered = metered
        self._leg = leg or RouteLeg(distance_km=62.37, duration_seconds=3900)
        self._error = error
        self._configured = configured
        self.calls: list[tuple[GeoPoint, GeoPoint]] = []
        self.closed = False

    def is_configured(self) -> bool:
        return self._configured

    async def route(self, origin: GeoPoint, destination: GeoPoint) -> RouteLeg:
        self.calls.append((origin, destination))
        if self._error is not None:
            raise self._error
        return self._leg

    async def close(self) -> None:
        self.closed = True


class FakeMatrixRouter(FakeRouter):
    """Matrix-capable router that records each call's size and start time."""

    def __init__(
        self,
        name: str = "google",
        metered: bool = True,
        max_destinations_per_call: int = 25,
        failing_calls: dict[int, Exception] | None = None,
        **kwargs,
    ):
        super().__init__(name=name, metered=metered, **kwargs)
        self.max_destinations_per_call = max_destinations_per_call
        self._failing_calls = failing_calls or {}
        self.matrix_calls: list[list[GeoPoint]] = []
        self.matrix_call_times: list[float] = []

    async def distance_matrix(
        self, origin: GeoPoint, destinations: list[GeoPoint]
    ) -> list[MatrixElement]:
        index = len(self.matrix_calls)
        self.matrix_calls.append(list(destinations))
        self.matrix_call_times.append(time.monotonic())
        if index in self._failing_calls:
            raise self._failing_calls[index]
        return [
            MatrixElement(
                status="OK",
                leg=RouteLeg(distance_km=10.0 + i, duration_seconds=600 + 60 * i),
            )
            for i in range(len(destinations))
        ]


def unavailable(provider: str, message: str = "connection refused") -> ProviderUnavailableError:
    return ProviderUnavailableError(provider, message)
