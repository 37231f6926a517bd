"""Crawl trigger endpoint."""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from guide_crawler.api.auth import require_api_key
from guide_crawler.models.crawl_models import CrawlRequest, CrawlResponse
from guide_crawler.services.crawler import InvalidWebsiteUrlError, get_website_crawler

router = APIRouter()


def _validation_message(error: ValidationError) -> str:
    first = error.errors()[0]
    field = ".".join(str(part) for part in first.get("loc", ()))
    return f"{field}: {first.get('msg')}" if field else str(first.get("msg"))


@router.post(
    "/website-scraper",
    dependencies=[Depends(require_api_key)],
    response_model=CrawlResponse,
    response_model_by_alias=True,
    response_model_exclude_none=True,
)
async def crawl_website(request: Request):
    """Crawl a website and return its readable pages."""
    try:
        payload = await request.json()
    except ValueError:
        return JSONResponse(status_code=400, content={"error": "Invalid JSON body"})
    if not isinstance(payload, dict):
        return JSONResponse(status_code=400, content={"error": "Body must be a JSON object"})

    try:
        crawl_request = CrawlRequest.model_validate(payload)
    except ValidationError as e:
        return JSONResponse(status_code=400, content={"error": _validation_message(e)})

    try:
        return await get_website_crawler().crawl(crawl_request)
    except InvalidWebsiteUrlError as e:
        return JSONResponse(status_code=400, content={"error": str(e)})
