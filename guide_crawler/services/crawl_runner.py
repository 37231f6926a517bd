"""How the scheduler runs a crawl for one guide.

- LocalCrawlRunner: calls the in-process WebsiteCrawler
- HttpCrawlRunner: POSTs to this service's own /website-scraper endpoint,
  so scheduled crawls go through the same surface as operator requests
"""

from typing import Any, Protocol

import httpx
import logfire

from guide_crawler.config import get_settings
from guide_crawler.constants import CRAWL_RUNNER_ERROR_BODY_CHARS
from guide_crawler.models.crawl_models import CrawlRequest, CrawlResponse
from guide_crawler.services.crawler import WebsiteCrawler, get_website_crawler


class CrawlRunnerError(RuntimeError):
    """Raised when the crawl endpoint answers with a non-success status."""


class CrawlRunner(Protocol):
    async def run(self, website_url: str, options: dict[str, Any]) -> CrawlResponse:
        """Crawl website_url with the given camelCase request options."""
        ...


class LocalCrawlRunner:
    """Run crawls in-process."""

    def __init__(self, crawler: WebsiteCrawler | None = None):
        self._crawler = crawler

    async def run(self, website_url: str, options: dict[str, Any]) -> CrawlResponse:
        crawler = self._crawler or get_website_crawler()
        request = CrawlRequest.model_validate({"websiteUrl": website_url, **options})
        return await crawler.crawl(request)


class HttpCrawlRunner:
    """Run crawls through the service's own HTTP crawl endpoint."""

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        timeout: float = 300.0,
    ):
        """Initialize the runner.

        Args:
            base_url: Service base URL (defaults to settings.public_base_url)
            api_key: Operator key sent as X-API-Key (defaults to settings.api_key)
            timeout: Whole-crawl timeout in seconds
        """
        settings = get_settings()
        self._base_url = (base_url or settings.public_base_url).rstrip("/")
        self._api_key = api_key if api_key is not None else settings.api_key
        self._timeout = timeout

    async def run(self, website_url: str, options: dict[str, Any]) -> CrawlResponse:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["X-API-Key"] = self._api_key

        async with httpx.AsyncClient(timeout=self._timeout) as client:
            response = await client.post(
                f"{self._base_url}/website-scraper",
                json={"websiteUrl": website_url, **options},
                headers=headers,
            )

        if not response.is_success:
            body = response.text[:CRAWL_RUNNER_ERROR_BODY_CHARS]
            logfire.error(
                "Crawl endpoint failed",
                website_url=website_url,
                status_code=response.status_code,
            )
            raise CrawlRunnerError(f"Scraper HTTP {response.status_code} {body}".strip())

        return CrawlResponse.model_validate(response.json())


def get_crawl_runner() -> CrawlRunner:
    """Runner selected by settings.scheduler_crawl_via_http."""
    if get_settings().scheduler_crawl_via_http:
        return HttpCrawlRunner()
    return LocalCrawlRunner()
