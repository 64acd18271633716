from typing import Any

from core.errors import ProviderUnavailableError, QuotaExceededError

GOOGLE_MAPS_BASE_URL = "https://maps.googleapis.com/maps/api"

QUOTA_STATUSES = {"OVER_QUERY_LIMIT", "OVER_DAILY_LIMIT"}

# address_components type -> our component key
_COMPONENT_KEYS = {
    "country": "country",
    "administrative_area_level_1": "province",
    "administrative_area_level_2": "district",
    "sublocality_level_1": "subdistrict",
    "locality": "city",
    "postal_code": "postcode",
    "route": "road",
    "street_number": "house_number",
}


def raise_for_google_status(provider: str, data: dict[str, Any]) -> None:
    """Raise the matching error for a non-OK top-level status. ZERO_RESULTS is not an error."""
    status = data.get("status")
    if status in ("OK", "ZERO_RESULTS"):
        return
    if status in QUOTA_STATUSES:
        raise QuotaExceededError(provider, f"Google quota exceeded ({status})")
    detail = data.get("error_message") or "no error message"
    raise ProviderUnavailableError(provider, f"Google status {status}: {detail}")


def google_components(result: dict[str, Any]) -> dict[str, str]:
    components: dict[str, str] = {}
    for comp in result.get("address_components", []):
        for comp_type in comp.get("types", []):
            key = _COMPONENT_KEYS.get(comp_type)
            if key and key not in components:
                components[key] = comp.get("long_name", "")
    return components
