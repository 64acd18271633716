from collections.abc import Sequence

import structlog

from core.config import settings
from core.errors import InvalidInputError, QuotaExceededError, UnresolvableError
from models.types import (
    DistanceResult,
    GeocodeResult,
    GeoPoint,
    MatrixElement,
    QuotaOperation,
    QuotaStatus,
    ReverseGeocodeResult,
)
from providers.geocoding.interface import GeocodingProvider
from providers.routing.interface import MatrixRoutingProvider, RoutingProvider
from services.fallback import Provider, call_with_timeout, run_fallback
from services.query_strategy import build_queries, classify_match_level
from services.quota_ledger import QuotaLedger
from services.ranking import CountryProfile, GeocodeRanker
from workers.quota_recorder import QuotaRecorder

logger = structlog.get_logger()


def round_km(distance_km: float) -> float:
    return round(distance_km, 1)


def default_country_profile() -> CountryProfile:
    return CountryProfile(
        names=(settings.country_name, settings.country_name_local),
        min_lat=settings.country_min_lat,
        max_lat=settings.country_max_lat,
        min_lng=settings.country_min_lng,
        max_lng=settings.country_max_lng,
    )


class LocationResolver:
    """Resolves addresses to coordinates and coordinate pairs to road distances.

    Providers are walked in policy order. A metered provider is skipped when
    it has no credential or the monthly limit is reached. The ledger is read
    before every metered call, plus any usage the recorder has not yet applied,
    so a manual reset applies immediately and a long walk stops at the limit.
    """

    def __init__(
        self,
        geocoders: Sequence[GeocodingProvider],
        routers: Sequence[RoutingProvider],
        ledger: QuotaLedger,
        recorder: QuotaRecorder,
        country: CountryProfile | None = None,
        country_name: str | None = None,
        geocoding_timeout: float | None = None,
        routing_timeout: float | None = None,
        matrix_timeout: float | None = None,
        distance_ceiling_km: float | None = None,
        distance_floor_km: float | None = None,
    ):
        self._geocoders = list(geocoders)
        self._routers = list(routers)
        self._ledger = ledger
        self._recorder = recorder
        self._country = country or default_country_profile()
        self._country_name = country_name or settings.country_name
        self._geocoding_timeout = geocoding_timeout or settings.geocoding_timeout
        self._routing_timeout = routing_timeout or settings.routing_timeout
        self._matrix_timeout = matrix_timeout or settings.matrix_timeout
        self._ceiling_km = distance_ceiling_km or settings.distance_ceiling_km
        self._floor_km = distance_floor_km if distance_floor_km is not None else settings.distance_floor_km

    # --- geocoding ---

    async def geocode(self, address: str, entity_name: str | None = None) -> GeocodeResult | None:
        queries = build_queries(address, entity_name, country=self._country_name)
        ranker = GeocodeRanker(self._country)

        async def attempt(provider: GeocodingProvider) -> bool | None:
            before = ranker.candidate_count
            await self._walk_queries(provider, queries, ranker, address, entity_name)
            return True if ranker.candidate_count > before else None

        outcome = await run_fallback(
            self._geocoders,
            attempt,
            skip_reason=self._skip_reason,
            on_quota_exceeded=self._on_quota_exceeded,
        )

        best = ranker.best()
        if best is None:
            logger.info("Address not found", address=address, queries=len(queries))
            return None

        score, candidate = best
        logger.info(
            "Address geocoded",
            provider=candidate.provider_name,
            query_index=candidate.query_index,
            match_level=candidate.match_level,
            score=round(score, 1),
        )
        return GeocodeResult(
            point=candidate.point,
            formatted_address=candidate.formatted_address,
            confidence=candidate.confidence,
            match_level=candidate.match_level,
            provider_name=candidate.provider_name,
            source_query=candidate.source_query,
            score=score,
            attempts=outcome.attempts,
        )

    async def _walk_queries(
        self,
        provider: GeocodingProvider,
        queries: list[str],
        ranker: GeocodeRanker,
        address: str,
        entity_name: str | None,
    ) -> None:
        for index, query in enumerate(queries):
            if provider.metered and index > 0 and await self._quota_exceeded():
                logger.info("Monthly quota reached mid-walk", provider=provider.name, query_index=index)
                return
            found = await call_with_timeout(
                provider.name, provider.geocode(query), self._geocoding_timeout
            )
            if provider.metered:
                self._recorder.record(QuotaOperation.GEOCODING)

            level = classify_match_level(query, address, entity_name)
            ranker.add(
                [
                    c.model_copy(update={"query_index": index, "match_level": level, "source_query": query})
                    for c in found
                ]
            )
            if ranker.is_conclusive():
                logger.debug("Early exit on conclusive match", provider=provider.name, query_index=index)
                return
            if found and provider.stop_on_first_hit:
                return

    async def reverse_geocode(self, point: GeoPoint) -> ReverseGeocodeResult | None:
        async def attempt(provider: GeocodingProvider) -> ReverseGeocodeResult | None:
            result = await call_with_timeout(
                provider.name, provider.reverse_geocode(point), self._geocoding_timeout
            )
            if provider.metered:
                self._recorder.record(QuotaOperation.GEOCODING)
            return result

        outcome = await run_fallback(
            self._geocoders,
            attempt,
            skip_reason=self._skip_reason,
            on_quota_exceeded=self._on_quota_exceeded,
        )
        return outcome.value

    # --- distance ---

    async def distance(self, origin: GeoPoint, destination: GeoPoint) -> DistanceResult:
        async def attempt(provider: RoutingProvider):
            leg = await call_with_timeout(
                provider.name, provider.route(origin, destination), self._routing_timeout
            )
            if provider.metered:
                self._recorder.record(QuotaOperation.DISTANCE)
            return leg

        outcome = await run_fallback(
            self._routers,
            attempt,
            skip_reason=self._skip_reason,
            on_quota_exceeded=self._on_quota_exceeded,
        )
        if outcome.value is None or outcome.provider is None:
            raise UnresolvableError("No routing provider could resolve the distance")

        distance_km = round_km(outcome.value.distance_km)
        return DistanceResult(
            distance_km=distance_km,
            duration_seconds=outcome.value.duration_seconds,
            provider_name=outcome.provider.name,
            warning=self.sanity_warning(distance_km),
            attempts=outcome.attempts,
        )

    def sanity_warning(self, distance_km: float) -> str | None:
        if distance_km > self._ceiling_km:
            logger.warning("Suspicious distance", distance_km=distance_km, ceiling_km=self._ceiling_km)
            return f"Distance {distance_km} km exceeds {self._ceiling_km:g} km; check the coordinates"
        if distance_km < self._floor_km:
            logger.warning("Suspicious distance", distance_km=distance_km, floor_km=self._floor_km)
            return f"Distance {distance_km} km is below {self._floor_km:g} km; origin and destination may be the same place"
        return None

    async def is_usable(self, provider: Provider) -> bool:
        return await self._skip_reason(provider) is None

    async def matrix_provider(self) -> MatrixRoutingProvider | None:
        """First usable routing provider that answers many destinations per call."""
        for provider in self._routers:
            if isinstance(provider, MatrixRoutingProvider) and await self.is_usable(provider):
                return provider
        return None

    async def distance_matrix(
        self,
        provider: MatrixRoutingProvider,
        origin: GeoPoint,
        destinations: list[GeoPoint],
    ) -> list[MatrixElement]:
        try:
            elements = await call_with_timeout(
                provider.name,
                provider.distance_matrix(origin, destinations),
                self._matrix_timeout,
            )
        except QuotaExceededError:
            self._on_quota_exceeded(provider)
            raise
        if provider.metered:
            self._recorder.record(QuotaOperation.DISTANCE, len(destinations))
        return elements

    # --- quota ---

    async def quota_status(self) -> QuotaStatus:
        return QuotaStatus.from_period(await self._ledger.get_current_period())

    def quota_increment(self, operation: QuotaOperation, count: int = 1) -> None:
        if count < 1:
            raise InvalidInputError(f"Quota increment must be positive, got {count}")
        self._recorder.record(operation, count)

    async def _skip_reason(self, provider: Provider) -> str | None:
        if not provider.is_configured():
            return "not configured"
        if provider.metered and await self._quota_exceeded():
            return "monthly quota exceeded"
        return None

    async def _quota_exceeded(self) -> bool:
        # Usage still queued in the recorder counts against the limit.
        if self._recorder.exceeded_pending:
            return True
        try:
            period = await self._ledger.get_current_period()
        except Exception as e:
            logger.warning("Quota ledger unavailable, assuming quota remains", error=str(e))
            return False
        return period.is_exceeded or period.total_count + self._recorder.unapplied_count >= period.hard_limit

    def _on_quota_exceeded(self, provider: Provider) -> None:
        if provider.metered:
            self._recorder.record_exceeded()

    async def aclose(self) -> None:
        for provider in [*self._geocoders, *self._routers]:
            await provider.close()
