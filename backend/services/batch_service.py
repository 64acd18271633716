import asyncio
from collections.abc import Awaitable, Callable
from typing import NamedTuple

import structlog

from core.config import settings
from core.errors import LocationError, ProviderUnavailableError, QuotaExceededError
from models.types import (
    BatchDistanceItem,
    BatchDistanceItemResult,
    BatchDistanceReport,
    BatchGeocodeItem,
    BatchGeocodeItemResult,
    BatchGeocodeReport,
    BatchItemStatus,
    BatchSummary,
    GeoPoint,
)
from providers.routing.interface import MatrixRoutingProvider
from services.location_service import LocationResolver, round_km

logger = structlog.get_logger()

Sleep = Callable[[float], Awaitable[None]]


class _PendingLeg(NamedTuple):
    position: int
    item_id: str
    destination: GeoPoint


def depot_point() -> GeoPoint:
    return GeoPoint(latitude=settings.depot_latitude, longitude=settings.depot_longitude)


class BatchService:
    """Bulk geocoding and distance resolution.

    Calls are issued one after another with a fixed delay between them. The
    delay is a cooperative sleep: concurrent batch jobs are not coordinated.
    """

    def __init__(
        self,
        resolver: LocationResolver,
        delay_seconds: float | None = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self._resolver = resolver
        self._delay = settings.batch_delay_seconds if delay_seconds is None else delay_seconds
        self._sleep = sleep

    async def batch_geocode(self, items: list[BatchGeocodeItem]) -> BatchGeocodeReport:
        results: list[BatchGeocodeItemResult] = []
        issued = 0

        for item in items:
            if not item.address or not item.address.strip():
                results.append(
                    BatchGeocodeItemResult(
                        code=item.code, status=BatchItemStatus.NO_COORDINATES, error="No address"
                    )
                )
                continue

            if issued:
                await self._sleep(self._delay)
            issued += 1

            try:
                found = await self._resolver.geocode(item.address, item.entity_name)
            except LocationError as e:
                logger.warning("Batch geocode item failed", code=item.code, error=str(e))
                results.append(
                    BatchGeocodeItemResult(code=item.code, status=BatchItemStatus.FAILED, error=str(e))
                )
                continue

            if found is None:
                results.append(BatchGeocodeItemResult(code=item.code, status=BatchItemStatus.NOT_FOUND))
            else:
                results.append(
                    BatchGeocodeItemResult(code=item.code, status=BatchItemStatus.SUCCESS, result=found)
                )

        summary = BatchSummary.tally([r.status for r in results])
        logger.info("Batch geocode complete", **summary.model_dump())
        return BatchGeocodeReport(summary=summary, results=results)

    async def batch_distance(
        self,
        items: list[BatchDistanceItem],
        origin: GeoPoint | None = None,
    ) -> BatchDistanceReport:
        """Resolve each item's distance from ``origin``.

        Results are positional: item ids are echoed back but need not be unique.
        """
        origin = origin or depot_point()
        results: list[BatchDistanceItemResult | None] = [None] * len(items)
        pending: list[_PendingLeg] = []

        for position, item in enumerate(items):
            if item.destination is None:
                results[position] = BatchDistanceItemResult(
                    id=item.id, status=BatchItemStatus.NO_COORDINATES, error="No coordinates"
                )
            else:
                pending.append(_PendingLeg(position, item.id, item.destination))

        calls = 0
        provider = await self._resolver.matrix_provider() if pending else None
        if provider is not None:
            pending, calls = await self._run_matrix(provider, origin, pending, results)

        for leg in pending:
            if calls:
                await self._sleep(self._delay)
            calls += 1
            results[leg.position] = await self._single_distance(origin, leg.item_id, leg.destination)

        resolved = [r for r in results if r is not None]
        summary = BatchSummary.tally([r.status for r in resolved])
        logger.info("Batch distance complete", provider_calls=calls, **summary.model_dump())
        return BatchDistanceReport(summary=summary, results=resolved)

    async def _run_matrix(
        self,
        provider: MatrixRoutingProvider,
        origin: GeoPoint,
        legs: list[_PendingLeg],
        results: list[BatchDistanceItemResult | None],
    ) -> tuple[list[_PendingLeg], int]:
        """Resolve legs in provider-sized chunks. Returns the legs left unresolved and the call count."""
        size = provider.max_destinations_per_call
        chunks = [legs[i : i + size] for i in range(0, len(legs), size)]
        calls = 0

        for index, chunk in enumerate(chunks):
            remaining = [leg for rest in chunks[index:] for leg in rest]
            if calls:
                if not await self._resolver.is_usable(provider):
                    logger.warning(
                        "Matrix provider no longer usable, resolving remaining items one by one",
                        provider=provider.name,
                        remaining=len(remaining),
                    )
                    return remaining, calls
                await self._sleep(self._delay)
            calls += 1
            try:
                elements = await self._resolver.distance_matrix(
                    provider, origin, [leg.destination for leg in chunk]
                )
            except QuotaExceededError as e:
                logger.warning("Matrix quota exceeded, resolving remaining items one by one", error=e.message)
                return remaining, calls
            except ProviderUnavailableError as e:
                logger.warning("Matrix chunk failed", provider=e.provider, size=len(chunk), error=e.message)
                for leg in chunk:
                    results[leg.position] = BatchDistanceItemResult(
                        id=leg.item_id,
                        status=BatchItemStatus.FAILED,
                        provider_name=provider.name,
                        error=str(e),
                    )
                continue

            for leg, element in zip(chunk, elements, strict=True):
                if element.leg is None:
                    results[leg.position] = BatchDistanceItemResult(
                        id=leg.item_id,
                        status=BatchItemStatus.NOT_FOUND,
                        provider_name=provider.name,
                        error=f"Provider returned {element.status}",
                    )
                    continue
                distance_km = round_km(element.leg.distance_km)
                results[leg.position] = BatchDistanceItemResult(
                    id=leg.item_id,
                    status=BatchItemStatus.SUCCESS,
                    distance_km=distance_km,
                    duration_seconds=element.leg.duration_seconds,
                    provider_name=provider.name,
                    warning=self._resolver.sanity_warning(distance_km),
                )

        return [], calls

    async def _single_distance(
        self, origin: GeoPoint, item_id: str, destination: GeoPoint
    ) -> BatchDistanceItemResult:
        try:
            result = await self._resolver.distance(origin, destination)
        except LocationError as e:
            return BatchDistanceItemResult(id=item_id, status=BatchItemStatus.FAILED, error=str(e))
        return BatchDistanceItemResult(
            id=item_id,
            status=BatchItemStatus.SUCCESS,
            distance_km=result.distance_km,
            duration_seconds=result.duration_seconds,
            provider_name=result.provider_name,
            warning=result.warning,
        )
