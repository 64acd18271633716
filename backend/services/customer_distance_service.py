from typing import Any, cast

import structlog
from supabase import Client

from models.types import (
    BatchDistanceItem,
    BatchItemStatus,
    BatchSummary,
    CustomerMileageReport,
    CustomerMileageResult,
    GeoPoint,
)
from services.batch_service import BatchService

logger = structlog.get_logger()


def _coordinates(row: dict[str, Any]) -> GeoPoint | None:
    lat, lng = row.get("latitude"), row.get("longitude")
    if lat is None or lng is None:
        return None
    try:
        return GeoPoint(latitude=float(lat), longitude=float(lng))
    except ValueError:
        return None


class CustomerDistanceService:
    """Refreshes the depot-to-customer mileage stored on `customers` rows."""

    def __init__(self, db: Client, batch: BatchService):
        self._db = db
        self._batch = batch

    async def refresh_mileage(
        self, codes: list[str], origin: GeoPoint | None = None
    ) -> CustomerMileageReport:
        codes = list(dict.fromkeys(codes))
        response = (
            self._db.table("customers")
            .select("code, name, latitude, longitude, mileage_km")
            .in_("code", codes)
            .execute()
        )
        rows = {row["code"]: row for row in cast("list[dict[str, Any]]", response.data)}

        items = [
            BatchDistanceItem(id=code, destination=_coordinates(rows[code]))
            for code in codes
            if code in rows
        ]
        report = await self._batch.batch_distance(items, origin=origin)
        computed = {r.id: r for r in report.results}

        results: list[CustomerMileageResult] = []
        for code in codes:
            row = rows.get(code)
            if row is None:
                results.append(
                    CustomerMileageResult(
                        code=code, status=BatchItemStatus.NOT_FOUND, error="Customer not found"
                    )
                )
                continue

            item = computed[code]
            previous = row.get("mileage_km")
            results.append(
                CustomerMileageResult(
                    code=code,
                    name=row.get("name"),
                    status=item.status,
                    distance_km=item.distance_km,
                    previous_distance_km=float(previous) if previous is not None else None,
                    duration_minutes=(
                        round(item.duration_seconds / 60) if item.duration_seconds is not None else None
                    ),
                    provider_name=item.provider_name,
                    warning=item.warning,
                    error=item.error,
                )
            )

        for result in results:
            if result.status == BatchItemStatus.SUCCESS:
                self._db.table("customers").update({"mileage_km": result.distance_km}).eq(
                    "code", result.code
                ).execute()

        summary = BatchSummary.tally([r.status for r in results])
        logger.info("Customer mileage refreshed", **summary.model_dump())
        return CustomerMileageReport(summary=summary, results=results)
