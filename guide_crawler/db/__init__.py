"""Guide directory client and repository layer."""

from guide_crawler.db.client import GuideDirectoryUnavailableError, get_supabase_client
from guide_crawler.db.repository import (
    GuideDirectory,
    SupabaseGuideDirectory,
    get_guide,
    list_active_guides,
)

__all__ = [
    "GuideDirectoryUnavailableError",
    "get_supabase_client",
    "GuideDirectory",
    "SupabaseGuideDirectory",
    "get_guide",
    "list_active_guides",
]
