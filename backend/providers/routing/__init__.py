from core.config import settings
from providers.routing.interface import RoutingProvider


def get_routing_provider(name: str) -> RoutingProvider:
    match name:
        case "google":
            from providers.routing.google_adapter import GoogleRoutingAdapter

            return GoogleRoutingAdapter(
                api_key=settings.google_maps_api_key,
                region=settings.region,
                language=settings.language,
                timeout=settings.matrix_timeout,
            )
        case "osrm":
            from providers.routing.osrm_adapter import OSRMRoutingAdapter

            return OSRMRoutingAdapter(
                base_url=settings.osrm_base_url,
                timeout=settings.routing_timeout,
            )
        case "haversine":
            from providers.routing.haversine_adapter import HaversineRoutingAdapter

            return HaversineRoutingAdapter()
        case _:
            raise ValueError(f"Unknown routing provider: {name}")


def get_routing_providers() -> list[RoutingProvider]:
    """Adapters in policy order."""
    return [get_routing_provider(name) for name in settings.routing_providers]
