from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from core.errors import ProviderUnavailableError, QuotaExceededError
from models.types import GeoPoint
from providers.routing.google_adapter import GoogleRoutingAdapter
from providers.routing.haversine_adapter import HaversineRoutingAdapter, haversine_km
from providers.routing.interface import MatrixRoutingProvider
from providers.routing.osrm_adapter import OSRMRoutingAdapter
from tests.factories import DEPOT, PATHUM_THANI


def _response(payload) -> MagicMock:
    mock_response = MagicMock(spec=httpx.Response)
    mock_response.status_code = 200
    mock_response.json.return_value = payload
    mock_response.raise_for_status = MagicMock()
    return mock_response


def _matrix(*elements) -> dict:
    return {"status": "OK", "rows": [{"elements": list(elements)}]}


OK_ELEMENT = {
    "status": "OK",
    "distance": {"value": 62374, "text": "62.4 km"},
    "duration": {"value": 3900, "text": "1 hour 5 mins"},
    "duration_in_traffic": {"value": 4620, "text": "1 hour 17 mins"},
}


class TestGoogleRouting:
    @pytest.fixture
    def adapter(self):
        adapter = GoogleRoutingAdapter(api_key="AIza-test-key")
        adapter._client = AsyncMock(spec=httpx.AsyncClient)
        return adapter

    async def test_route_uses_traffic_duration_and_rounds(self, adapter):
        adapter._client.get = AsyncMock(return_value=_response(_matrix(OK_ELEMENT)))

        leg = await adapter.route(DEPOT, PATHUM_THANI)

        assert leg.distance_km == 62.4
        assert leg.duration_seconds == 4620
        params = adapter._client.get.call_args.kwargs["params"]
        assert params["origins"] == "13.537051,100.2173051"
        assert params["destinations"] == "14.0206,100.5256"
        assert params["departure_time"] == "now"

    async def test_matrix_joins_destinations_and_keeps_order(self, adapter):
        second = {**OK_ELEMENT, "distance": {"value": 1049}, "duration": {"value": 240}}
        second.pop("duration_in_traffic")
        adapter._client.get = AsyncMock(
            return_value=_response(_matrix(OK_ELEMENT, second, {"status": "ZERO_RESULTS"}))
        )
        destinations = [PATHUM_THANI, GeoPoint(latitude=13.54, longitude=100.22), GeoPoint(latitude=0, longitude=0)]

        elements = await adapter.distance_matrix(DEPOT, destinations)

        assert [e.status for e in elements] == ["OK", "OK", "ZERO_RESULTS"]
        assert elements[1].leg.distance_km == 1.0
        assert elements[1].leg.duration_seconds == 240
        assert elements[2].leg is None
        assert adapter._client.get.call_args.kwargs["params"]["destinations"].count("|") == 2

    async def test_route_without_path_raises(self, adapter):
        adapter._client.get = AsyncMock(return_value=_response(_matrix({"status": "ZERO_RESULTS"})))

        with pytest.raises(ProviderUnavailableError, match="ZERO_RESULTS"):
            await adapter.route(DEPOT, PATHUM_THANI)

    async def test_rejects_more_than_cap(self, adapter):
        with pytest.raises(ValueError, match="At most 25"):
            await adapter.distance_matrix(DEPOT, [PATHUM_THANI] * 26)
        adapter._client.get.assert_not_called()

    async def test_element_count_mismatch_raises(self, adapter):
        adapter._client.get = AsyncMock(return_value=_response(_matrix(OK_ELEMENT)))

        with pytest.raises(ProviderUnavailableError, match="expected 2 elements"):
            await adapter.distance_matrix(DEPOT, [PATHUM_THANI, PATHUM_THANI])

    async def test_over_daily_limit_raises_quota_exceeded(self, adapter):
        adapter._client.get = AsyncMock(return_value=_response({"status": "OVER_DAILY_LIMIT", "rows": []}))

        with pytest.raises(QuotaExceededError):
            await adapter.route(DEPOT, PATHUM_THANI)

    async def test_timeout_raises_redacted_provider_unavailable(self, adapter):
        adapter._client.get = AsyncMock(side_effect=httpx.ReadTimeout("timed out key=AIza-test-key"))

        with pytest.raises(ProviderUnavailableError) as exc_info:
            await adapter.route(DEPOT, PATHUM_THANI)
        assert "AIza-test-key" not in exc_info.value.message

    def test_is_a_matrix_provider(self, adapter):
        assert isinstance(adapter, MatrixRoutingProvider)


class TestOSRMRouting:
    @pytest.fixture
    def adapter(self):
        adapter = OSRMRoutingAdapter(base_url="https://router.project-osrm.org/")
        adapter._client = AsyncMock(spec=httpx.AsyncClient)
        return adapter

    async def test_route_uses_lng_lat_order_and_rounds(self, adapter):
        adapter._client.get = AsyncMock(
            return_value=_response({"code": "Ok", "routes": [{"distance": 58961.7, "duration": 3512.4}]})
        )

        leg = await adapter.route(DEPOT, PATHUM_THANI)

        assert leg.distance_km == 59.0
        assert leg.duration_seconds == pytest.approx(3512.4)
        url = adapter._client.get.call_args.args[0]
        assert url == (
            "https://router.project-osrm.org/route/v1/driving/100.2173051,13.537051;100.5256,14.0206"
        )

    async def test_no_route_raises(self, adapter):
        adapter._client.get = AsyncMock(return_value=_response({"code": "NoRoute", "routes": []}))

        with pytest.raises(ProviderUnavailableError, match="NoRoute"):
            await adapter.route(DEPOT, PATHUM_THANI)

    async def test_connect_error_raises(self, adapter):
        adapter._client.get = AsyncMock(side_effect=httpx.ConnectError("DNS failure"))

        with pytest.raises(ProviderUnavailableError):
            await adapter.route(DEPOT, PATHUM_THANI)

    def test_is_not_a_matrix_provider(self, adapter):
        assert not isinstance(adapter, MatrixRoutingProvider)


class TestHaversine:
    @pytest.mark.parametrize(
        ("a", "b"),
        [
            (DEPOT, PATHUM_THANI),
            (GeoPoint(latitude=-33.86, longitude=151.21), GeoPoint(latitude=51.51, longitude=-0.13)),
            (GeoPoint(latitude=89.9, longitude=179.9), GeoPoint(latitude=-89.9, longitude=-179.9)),
            (GeoPoint(latitude=0.0, longitude=0.0), GeoPoint(latitude=0.0, longitude=180.0)),
        ],
    )
    def test_symmetric(self, a, b):
        assert haversine_km(a, b) == pytest.approx(haversine_km(b, a))

    def test_same_point_is_zero(self):
        assert haversine_km(PATHUM_THANI, PATHUM_THANI) == 0.0

    def test_known_distance(self):
        # Quarter of a great circle on a 6371 km sphere
        d = haversine_km(GeoPoint(latitude=0.0, longitude=0.0), GeoPoint(latitude=0.0, longitude=90.0))
        assert d == pytest.approx(10007.5, abs=0.1)

    async def test_adapter_returns_leg_without_duration(self):
        leg = await HaversineRoutingAdapter().route(DEPOT, PATHUM_THANI)
        assert leg.distance_km == pytest.approx(haversine_km(DEPOT, PATHUM_THANI))
        assert leg.duration_seconds is None
