from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Supabase
    supabase_url: str = "http://127.0.0.1:54321"
    supabase_anon_key: str = ""
    supabase_service_role_key: str = ""

    # Provider policy (tried in order)
    geocoding_providers: list[str] = ["google", "nominatim"]
    routing_providers: list[str] = ["google", "osrm", "haversine"]

    # Google Maps (metered)
    google_maps_api_key: str = ""

    # Nominatim / OSRM (free)
    nominatim_base_url: str = "https://nominatim.openstreetmap.org"
    nominatim_user_agent: str = "HaulDesk-Logistics/1.0 (ops@hauldesk.co.th)"
    osrm_base_url: str = "https://router.project-osrm.org"

    # Geographic biasing
    country_code: str = "TH"
    country_name: str = "Thailand"
    country_name_local: str = "ประเทศไทย"
    region: str = "th"
    language: str = "th"
    country_min_lat: float = 5.0
    country_max_lat: float = 21.0
    country_min_lng: float = 97.0
    country_max_lng: float = 106.0

    # Timeouts (seconds)
    geocoding_timeout: float = 10.0
    routing_timeout: float = 15.0
    matrix_timeout: float = 20.0

    # Quota
    quota_ledger_backend: str = "supabase"
    quota_hard_limit: int = 9500
    quota_warning_threshold: int = 9000
    quota_timezone: str = "Asia/Bangkok"

    # Distance sanity bounds (km)
    distance_ceiling_km: float = 500.0
    distance_floor_km: float = 0.1

    # Batch
    batch_delay_seconds: float = 0.2

    # Depot: origin for customer mileage
    depot_latitude: float = 13.537051
    depot_longitude: float = 100.2173051

    # Sentry
    sentry_dsn: str = ""

    # App
    environment: str = "development"
    log_level: str = "INFO"
    admin_user_ids: list[str] = []

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
