"""Guide directory repository.

Guides are read-only here: the crawler only needs each guide's slug,
website URL and active flag. Rows may use snake_case or camelCase column
names.
"""

import time
from typing import Any, List, Protocol

import logfire

from guide_crawler.config import get_settings
from guide_crawler.db.client import get_supabase_client
from guide_crawler.models.scheduler_models import GuideRecord


class GuideDirectory(Protocol):
    """Source of guides for the scheduler."""

    def list_active_guides(self) -> List[GuideRecord]:
        ...

    def get_guide(self, slug: str) -> GuideRecord | None:
        ...


def _row_to_guide(row: dict[str, Any]) -> GuideRecord:
    website_url = row.get("website_url", row.get("websiteUrl"))
    is_active = row.get("is_active", row.get("isActive", True))
    return GuideRecord(
        slug=str(row.get("slug") or row.get("id") or ""),
        website_url=str(website_url).strip() if website_url else None,
        is_active=bool(is_active),
    )


def list_active_guides() -> List[GuideRecord]:
    """
    List all active guides.

    Returns:
        Active guides, in directory order
    """
    start_time = time.time()
    settings = get_settings()
    supabase = get_supabase_client()

    try:
        result = (
            supabase.table(settings.guides_table)
            .select("*")
            .eq("is_active", True)
            .execute()
        )
    except Exception as e:
        logfire.error(
            "Error listing active guides",
            error=str(e),
            error_type=type(e).__name__,
            response_time_ms=(time.time() - start_time) * 1000,
        )
        raise

    guides = [_row_to_guide(row) for row in result.data or []]
    logfire.info(
        "Active guides listed",
        guide_count=len(guides),
        response_time_ms=(time.time() - start_time) * 1000,
    )
    return guides


def get_guide(slug: str) -> GuideRecord | None:
    """
    Get a guide by slug.

    Args:
        slug: Guide slug

    Returns:
        GuideRecord if found, None otherwise
    """
    settings = get_settings()
    supabase = get_supabase_client()

    result = supabase.table(settings.guides_table).select("*").eq("slug", slug).execute()

    if not result.data:
        logfire.info("Guide not found", slug=slug)
        return None
    return _row_to_guide(result.data[0])


class SupabaseGuideDirectory:
    """GuideDirectory backed by the Supabase guides table."""

    def list_active_guides(self) -> List[GuideRecord]:
        return list_active_guides()

    def get_guide(self, slug: str) -> GuideRecord | None:
        return get_guide(slug)
