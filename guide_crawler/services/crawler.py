"""Bounded-concurrency website crawler.

The crawl walks a shared frontier from a seed set (sitemap first, homepage
fallback) with a fixed pool of asyncio worker tasks:
- RobotsGate: global robots.txt kill-switch and declared sitemaps
- Frontier: two-tier queue; high-priority links are tried before any
  previously queued low-priority link
- WebsiteCrawler: coordinates fetch, extraction and classification

Components (fetcher, result cache) can be injected for testing.
"""

import asyncio
import re
import time
from collections import deque
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator, Deque, Iterable, List
from urllib.parse import urlparse

import httpx
import logfire

from guide_crawler.config import get_settings
from guide_crawler.constants import (
    HIGH_PRIORITY_LINK_THRESHOLD,
    MAX_PAGE_TEXT_CHARS,
    SITEMAP_SEED_FACTOR,
)
from guide_crawler.models.crawl_models import CrawlRequest, CrawlResponse, ScrapedPage
from guide_crawler.services.content_extractor import (
    classify_kind,
    compute_link_priority,
    extract_links,
    extract_meta,
    extract_readable_text,
    has_non_page_extension,
    is_thin_content,
    normalize_url,
)
from guide_crawler.services.fetcher import HttpxPageFetcher, PageFetcher
from guide_crawler.services.result_cache import CrawlResultCache, crawl_cache_key
from guide_crawler.services.robots import RobotsGate
from guide_crawler.services.sitemaps import discover_sitemap_urls

ROBOTS_DISALLOWED_WARNING = "robots.txt disallows crawling"


class InvalidWebsiteUrlError(ValueError):
    """Raised when a website URL is missing or not an absolute http(s) URL."""


def normalize_base(url: str | None) -> str:
    """Validate a website URL and return its origin (scheme://host[:port]).

    Raises:
        InvalidWebsiteUrlError: If the URL is not an absolute http(s) URL
    """
    try:
        parsed = urlparse((url or "").strip())
    except ValueError as e:
        raise InvalidWebsiteUrlError(f"Invalid websiteUrl: {url!r}") from e
    if parsed.scheme.lower() not in ("http", "https") or not parsed.hostname:
        raise InvalidWebsiteUrlError(f"Invalid websiteUrl: {url!r}")
    return f"{parsed.scheme.lower()}://{parsed.netloc.lower()}"


@dataclass(frozen=True)
class FrontierItem:
    url: str
    depth: int


class Frontier:
    """Two-tier crawl queue.

    High-priority items go to the front tier, which is always drained
    before the back tier. A batch of high-priority items keeps its own
    order and lands ahead of earlier high-priority items.
    """

    def __init__(self) -> None:
        self._high: Deque[FrontierItem] = deque()
        self._low: Deque[FrontierItem] = deque()

    def push_high(self, items: Iterable[FrontierItem]) -> None:
        self._high.extendleft(reversed(list(items)))

    def push_low(self, items: Iterable[FrontierItem]) -> None:
        self._low.extend(items)

    def pop(self) -> FrontierItem | None:
        if self._high:
            return self._high.popleft()
        if self._low:
            return self._low.popleft()
        return None

    def __len__(self) -> int:
        return len(self._high) + len(self._low)


@dataclass
class _CrawlState:
    request: CrawlRequest
    include: List[re.Pattern]
    exclude: List[re.Pattern]
    frontier: Frontier = field(default_factory=Frontier)
    seen: set[str] = field(default_factory=set)
    pages: List[ScrapedPage] = field(default_factory=list)
    in_flight: int = 0
    changed: asyncio.Condition = field(default_factory=asyncio.Condition)

    def passes_filters(self, url: str) -> bool:
        if has_non_page_extension(url):
            return False
        if any(p.search(url) for p in self.exclude):
            return False
        if self.include and not any(p.search(url) for p in self.include):
            return False
        return True


class WebsiteCrawler:
    """Coordinate a bounded crawl of one website.

    Stops when the frontier is exhausted or ``max_pages`` pages have been
    collected. The cap is checked cooperatively by each worker before it
    takes more work, so up to ``max_concurrency - 1`` extra pages may be
    collected by fetches already in flight.
    """

    def __init__(
        self,
        fetcher: PageFetcher | None = None,
        result_cache: CrawlResultCache | None = None,
        user_agent: str | None = None,
    ):
        """Initialize the crawler.

        Args:
            fetcher: Page fetcher (defaults to an HttpxPageFetcher sharing
                one client per crawl)
            result_cache: Window cache for duplicate requests (None disables it)
            user_agent: User-Agent for the default fetcher
        """
        self._fetcher = fetcher
        self._result_cache = result_cache
        self._user_agent = user_agent

    @asynccontextmanager
    async def _fetcher_scope(self, request: CrawlRequest) -> AsyncIterator[PageFetcher]:
        if self._fetcher is not None:
            yield self._fetcher
            return
        headers = dict(HttpxPageFetcher.DEFAULT_HEADERS)
        if self._user_agent:
            headers["User-Agent"] = self._user_agent
        limits = httpx.Limits(max_keepalive_connections=request.max_concurrency)
        async with httpx.AsyncClient(
            timeout=request.timeout_seconds,
            follow_redirects=True,
            headers=headers,
            limits=limits,
        ) as client:
            yield HttpxPageFetcher(client=client, headers=headers)

    async def crawl(self, request: CrawlRequest) -> CrawlResponse:
        """Crawl the site named by ``request.website_url``.

        Raises:
            InvalidWebsiteUrlError: If website_url is not an http(s) URL
        """
        origin = normalize_base(request.website_url)
        key = crawl_cache_key(
            origin,
            request.max_pages,
            request.max_depth,
            request.include_patterns,
            request.exclude_patterns,
        )
        if self._result_cache is not None:
            cached = self._result_cache.get(key)
            if cached is not None:
                return cached.model_copy(update={"cached": True})

        start_time = time.time()
        with logfire.span(
            "crawl {origin}",
            origin=origin,
            max_pages=request.max_pages,
            max_depth=request.max_depth,
            max_concurrency=request.max_concurrency,
        ):
            async with self._fetcher_scope(request) as fetcher:
                policy = await RobotsGate(fetcher).read(origin)
                if request.respect_robots_txt and policy.disallow_all:
                    logfire.warn("Crawl blocked by robots.txt", origin=origin)
                    return CrawlResponse(
                        base=origin, total=0, pages=[], warning=ROBOTS_DISALLOWED_WARNING
                    )

                state = _CrawlState(
                    request=request,
                    include=[re.compile(p, re.I) for p in request.include_patterns],
                    exclude=[re.compile(p, re.I) for p in request.exclude_patterns],
                )
                await self._seed(state, fetcher, origin, policy.sitemaps)

                workers = [
                    asyncio.create_task(self._worker(state, fetcher))
                    for _ in range(request.max_concurrency)
                ]
                await asyncio.gather(*workers)

        response = CrawlResponse(base=origin, total=len(state.pages), pages=state.pages)
        if self._result_cache is not None:
            self._result_cache.set(key, response)

        logfire.info(
            "Website crawl completed",
            origin=origin,
            pages_collected=len(state.pages),
            urls_seen=len(state.seen),
            total_time_ms=(time.time() - start_time) * 1000,
        )
        return response

    async def _seed(
        self,
        state: _CrawlState,
        fetcher: PageFetcher,
        origin: str,
        declared_sitemaps: List[str],
    ) -> None:
        """Enqueue sitemap URLs at depth 0, or the homepage when no sitemap yields any."""
        seeds = await discover_sitemap_urls(
            fetcher,
            origin,
            declared_sitemaps,
            limit=state.request.max_pages * SITEMAP_SEED_FACTOR,
        )
        if not seeds:
            seeds = [normalize_url(origin)]

        items = []
        for url in seeds:
            if url not in state.seen:
                state.seen.add(url)
                items.append(FrontierItem(url=url, depth=0))
        state.frontier.push_low(items)

    async def _worker(self, state: _CrawlState, fetcher: PageFetcher) -> None:
        """Pop and visit frontier items until the frontier drains or the page cap is hit.

        An idle worker waits while other workers are still visiting pages,
        since those visits may enqueue new links.
        """
        while len(state.pages) < state.request.max_pages:
            item = state.frontier.pop()
            if item is None:
                if state.in_flight == 0:
                    return
                async with state.changed:
                    await state.changed.wait()
                continue

            state.in_flight += 1
            try:
                await self._visit(state, fetcher, item)
            except Exception as e:
                logfire.warn(
                    "Skipping page after crawl error",
                    url=item.url,
                    error=str(e),
                    error_type=type(e).__name__,
                )
            finally:
                state.in_flight -= 1
                async with state.changed:
                    state.changed.notify_all()

    async def _visit(self, state: _CrawlState, fetcher: PageFetcher, item: FrontierItem) -> None:
        request = state.request
        html = await fetcher.fetch_html(
            item.url, request.timeout_seconds, request.max_html_bytes
        )
        if not html:
            return

        title, description = extract_meta(html)
        text = extract_readable_text(html)
        if is_thin_content(text):
            logfire.debug("Skipping thin page", url=item.url, text_chars=len(text))
            return

        state.pages.append(
            ScrapedPage(
                url=item.url,
                title=title,
                description=description,
                text=text[:MAX_PAGE_TEXT_CHARS],
                kind=classify_kind(item.url, title, html),
            )
        )

        if item.depth >= request.max_depth:
            return

        ranked = []
        for link in extract_links(item.url, html):
            if link in state.seen or not state.passes_filters(link):
                continue
            state.seen.add(link)
            ranked.append((compute_link_priority(link), link))
        ranked.sort(key=lambda pair: pair[0], reverse=True)

        child_depth = item.depth + 1
        state.frontier.push_high(
            FrontierItem(link, child_depth)
            for priority, link in ranked
            if priority >= HIGH_PRIORITY_LINK_THRESHOLD
        )
        state.frontier.push_low(
            FrontierItem(link, child_depth)
            for priority, link in ranked
            if priority < HIGH_PRIORITY_LINK_THRESHOLD
        )


# Global crawler instance
_website_crawler: WebsiteCrawler | None = None


def get_website_crawler() -> WebsiteCrawler:
    """Get or create the global crawler (with the request window cache)."""
    global _website_crawler
    if _website_crawler is None:
        settings = get_settings()
        _website_crawler = WebsiteCrawler(
            result_cache=CrawlResultCache(
                ttl_seconds=settings.crawl_result_cache_ttl_seconds,
                max_entries=settings.crawl_result_cache_max_entries,
            ),
            user_agent=settings.user_agent,
        )
    return _website_crawler


def reset_website_crawler() -> None:
    """Reset the global crawler (primarily for testing)."""
    global _website_crawler
    _website_crawler = None
