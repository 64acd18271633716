from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from api.deps import get_current_user, get_resolver
from models.types import GeoPoint
from services.location_service import LocationResolver

router = APIRouter(prefix="/distance", tags=["distance"])


class DistanceRequest(BaseModel):
    origin: GeoPoint
    destination: GeoPoint


@router.post("")
async def distance(
    body: DistanceRequest,
    user: dict[str, Any] = Depends(get_current_user),  # noqa: B008
    resolver: LocationResolver = Depends(get_resolver),  # noqa: B008
) -> dict[str, Any]:
    """Road distance between two points. Falls back to great-circle distance; never 404s."""
    result = await resolver.distance(body.origin, body.destination)
    return result.model_dump(mode="json")


@router.get("")
async def distance_query(
    origin_lat: float = Query(ge=-90.0, le=90.0),
    origin_lng: float = Query(ge=-180.0, le=180.0),
    destination_lat: float = Query(ge=-90.0, le=90.0),
    destination_lng: float = Query(ge=-180.0, le=180.0),
    user: dict[str, Any] = Depends(get_current_user),  # noqa: B008
    resolver: LocationResolver = Depends(get_resolver),  # noqa: B008
) -> dict[str, Any]:
    result = await resolver.distance(
        GeoPoint(latitude=origin_lat, longitude=origin_lng),
        GeoPoint(latitude=destination_lat, longitude=destination_lng),
    )
    return result.model_dump(mode="json")
