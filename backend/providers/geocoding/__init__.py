from core.config import settings
from providers.geocoding.interface import GeocodingProvider


def get_geocoding_provider(name: str) -> GeocodingProvider:
    match name:
        case "google":
            from providers.geocoding.google_adapter import GoogleGeocodingAdapter

            return GoogleGeocodingAdapter(
                api_key=settings.google_maps_api_key,
                region=settings.region,
                language=settings.language,
                country_code=settings.country_code,
                timeout=settings.geocoding_timeout,
            )
        case "nominatim":
            from providers.geocoding.nominatim_adapter import NominatimGeocodingAdapter

            return NominatimGeocodingAdapter(
                base_url=settings.nominatim_base_url,
                user_agent=settings.nominatim_user_agent,
                country_code=settings.country_code,
                timeout=settings.geocoding_timeout,
            )
        case _:
            raise ValueError(f"Unknown geocoding provider: {name}")


def get_geocoding_providers() -> list[GeocodingProvider]:
    """Adapters in policy order."""
    return [get_geocoding_provider(name) for name in settings.geocoding_providers]
