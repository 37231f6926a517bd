"""Supabase client initialization."""

from supabase import Client, create_client

from guide_crawler.config import get_settings


class GuideDirectoryUnavailableError(RuntimeError):
    """Raised when the guide directory (Supabase) is not configured."""


def get_supabase_client() -> Client:
    """Get Supabase client instance.

    Raises:
        GuideDirectoryUnavailableError: If Supabase credentials are missing
    """
    settings = get_settings()
    if not settings.supabase_url or not settings.supabase_service_key:
        raise GuideDirectoryUnavailableError(
            "Supabase is not configured (SUPABASE_URL / SUPABASE_SERVICE_KEY)"
        )
    return create_client(settings.supabase_url, settings.supabase_service_key)
