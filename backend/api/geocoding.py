from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from api.deps import get_current_user, get_resolver
from models.types import GeoPoint
from services.location_service import LocationResolver

router = APIRouter(prefix="/geocoding", tags=["geocoding"])


class GeocodeRequest(BaseModel):
    address: str = Field(min_length=1)
    entity_name: str | None = None


@router.post("")
async def geocode(
    body: GeocodeRequest,
    user: dict[str, Any] = Depends(get_current_user),  # noqa: B008
    resolver: LocationResolver = Depends(get_resolver),  # noqa: B008
) -> dict[str, Any]:
    """Resolve a postal address (optionally with a company name) to coordinates."""
    result = await resolver.geocode(body.address, body.entity_name)
    if result is None:
        raise HTTPException(status_code=404, detail="Address not found")
    return result.model_dump(mode="json")


@router.get("/reverse")
async def reverse_geocode(
    lat: float = Query(ge=-90.0, le=90.0),
    lng: float = Query(ge=-180.0, le=180.0),
    user: dict[str, Any] = Depends(get_current_user),  # noqa: B008
    resolver: LocationResolver = Depends(get_resolver),  # noqa: B008
) -> dict[str, Any]:
    result = await resolver.reverse_geocode(GeoPoint(latitude=lat, longitude=lng))
    if result is None:
        raise HTTPException(status_code=404, detail="No address found for these coordinates")
    return result.model_dump(mode="json")
