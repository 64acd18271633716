import math

from models.types import GeoPoint, RouteLeg

EARTH_RADIUS_KM = 6371.0


def haversine_km(origin: GeoPoint, destination: GeoPoint) -> float:
    """Great-circle distance in km on a sphere of mean Earth radius."""
    lat1, lat2 = math.radians(origin.latitude), math.radians(destination.latitude)
    dlat = lat2 - lat1
    dlng = math.radians(destination.longitude - origin.longitude)
    a = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlng / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(min(1.0, math.sqrt(a)))


class HaversineRoutingAdapter:
    """Offline straight-line fallback. Never fails, reports no duration."""

    name = "haversine"
    metered = False

    def is_configured(self) -> bool:
        return True

    async def route(self, origin: GeoPoint, destination: GeoPoint) -> RouteLeg:
        return RouteLeg(distance_km=haversine_km(origin, destination))

    async def close(self) -> None:
        return None
