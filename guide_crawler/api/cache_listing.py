"""Read-only listing of persisted crawl caches."""

from typing import List

from fastapi import APIRouter, Depends

from guide_crawler.api.auth import require_api_key
from guide_crawler.models.cache_models import CacheListingEntry
from guide_crawler.services.cache_store import get_cache_store

router = APIRouter()


@router.get(
    "/scraping-list",
    dependencies=[Depends(require_api_key)],
    response_model=List[CacheListingEntry],
    response_model_by_alias=True,
)
async def list_caches():
    """All persisted guide caches, newest first."""
    return await get_cache_store().list_documents()
