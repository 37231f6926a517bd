"""Live site search endpoint."""

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse

from guide_crawler.models.search_models import SearchResponse
from guide_crawler.services.crawler import InvalidWebsiteUrlError
from guide_crawler.services.site_search import get_site_search

router = APIRouter()


@router.get(
    "/site-search",
    response_model=SearchResponse,
    response_model_by_alias=True,
    response_model_exclude_none=True,
)
async def site_search(base: str = Query(""), q: str = Query("")):
    """Find the pages of ``base`` most relevant to ``q``."""
    if not base:
        return JSONResponse(status_code=400, content={"error": "base is required"})
    try:
        return await get_site_search().search(base, q)
    except InvalidWebsiteUrlError as e:
        return JSONResponse(status_code=400, content={"error": str(e)})
