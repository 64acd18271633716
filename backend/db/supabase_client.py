from functools import lru_cache

from supabase import Client, create_client

from core.config import settings


@lru_cache(maxsize=1)
def get_auth_client() -> Client:
    """Anon-key client used only to validate caller JWTs via ``auth.get_user``."""
    return create_client(settings.supabase_url, settings.supabase_anon_key)


@lru_cache(maxsize=1)
def get_service_role_client() -> Client:
    """Get Supabase client using service role key (bypasses RLS).
    Use for the quota ledger, customer mileage updates and background jobs."""
    return create_client(settings.supabase_url, settings.supabase_service_role_key)
