from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from api.deps import get_batch_service, get_current_user, get_customer_distance_service
from models.types import BatchDistanceItem, BatchGeocodeItem, GeoPoint
from services.batch_service import BatchService
from services.customer_distance_service import CustomerDistanceService

router = APIRouter(prefix="/batch", tags=["batch"])


class BatchGeocodeRequest(BaseModel):
    items: list[BatchGeocodeItem] = Field(min_length=1)


class BatchDistanceRequest(BaseModel):
    items: list[BatchDistanceItem] = Field(min_length=1)
    origin: GeoPoint | None = None


class CustomerDistanceRequest(BaseModel):
    customer_codes: list[str] = Field(min_length=1)


@router.post("/geocode")
async def batch_geocode(
    body: BatchGeocodeRequest,
    user: dict[str, Any] = Depends(get_current_user),  # noqa: B008
    service: BatchService = Depends(get_batch_service),  # noqa: B008
) -> dict[str, Any]:
    report = await service.batch_geocode(body.items)
    return report.model_dump(mode="json")


@router.post("/distance")
async def batch_distance(
    body: BatchDistanceRequest,
    user: dict[str, Any] = Depends(get_current_user),  # noqa: B008
    service: BatchService = Depends(get_batch_service),  # noqa: B008
) -> dict[str, Any]:
    """Distances from one origin (the depot by default) to many destinations."""
    report = await service.batch_distance(body.items, origin=body.origin)
    return report.model_dump(mode="json")


@router.post("/customers/distance")
async def refresh_customer_distances(
    body: CustomerDistanceRequest,
    user: dict[str, Any] = Depends(get_current_user),  # noqa: B008
    service: CustomerDistanceService = Depends(get_customer_distance_service),  # noqa: B008
) -> dict[str, Any]:
    """Recompute depot-to-customer mileage and store it on each customer."""
    report = await service.refresh_mileage(body.customer_codes)
    return report.model_dump(mode="json")
