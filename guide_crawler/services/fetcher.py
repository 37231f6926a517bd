"""Timeout-bounded, byte-capped HTTP fetching.

Every fetch failure (network error, timeout, non-HTML body, soft-404) is
recovered here as an empty result; nothing in this module raises to the
caller for a bad page.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Protocol

import httpx
import logfire

from guide_crawler.constants import USER_AGENT
from guide_crawler.services.content_extractor import invalid_reason

_FETCH_ERRORS = (httpx.HTTPError, httpx.InvalidURL, asyncio.TimeoutError)


class PageFetcher(Protocol):
    """Protocol for fetching page content."""

    async def fetch_html(
        self,
        url: str,
        timeout: float,
        max_bytes: int,
        screen: bool = True,
    ) -> str:
        """Fetch an HTML page, returning "" on any failure."""
        ...

    async def fetch_text(self, url: str, timeout: float) -> str:
        """Fetch a text resource (robots.txt, sitemap), returning "" on failure."""
        ...

    async def check_url_ok(self, url: str, timeout: float) -> bool:
        """True if url answers with a genuine, indexable HTML page."""
        ...


def _is_html(response: httpx.Response) -> bool:
    return "text/html" in response.headers.get("content-type", "").lower()


class HttpxPageFetcher:
    """Fetch pages using httpx.

    Pass a shared ``client`` to reuse keep-alive connections across a crawl;
    without one, each call opens and closes its own client.
    """

    DEFAULT_HEADERS = {
        "User-Agent": USER_AGENT,
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        "Accept-Language": "pt-PT,pt;q=0.9,en;q=0.8",
    }

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        headers: dict[str, str] | None = None,
    ):
        """Initialize the page fetcher.

        Args:
            client: Optional shared AsyncClient (caller owns its lifetime)
            headers: Optional custom headers (defaults to DEFAULT_HEADERS)
        """
        self._client = client
        self._headers = headers or self.DEFAULT_HEADERS.copy()

    @asynccontextmanager
    async def _client_for(self, timeout: float) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
            return
        async with httpx.AsyncClient(
            timeout=timeout,
            follow_redirects=True,
            headers=self._headers,
        ) as client:
            yield client

    async def _read_html(self, url: str, timeout: float, max_bytes: int) -> tuple[str, bool]:
        """GET url and read at most max_bytes of an HTML body.

        Returns:
            Tuple of (html, response_ok); html is "" for non-HTML responses
        """
        async with self._client_for(timeout) as client:
            async with client.stream(
                "GET", url, headers=self._headers, timeout=timeout
            ) as response:
                if not _is_html(response):
                    return "", response.is_success
                buffer = bytearray()
                async for chunk in response.aiter_bytes():
                    buffer.extend(chunk)
                    if len(buffer) >= max_bytes:
                        break
                encoding = response.encoding or "utf-8"
                html = bytes(buffer[:max_bytes]).decode(encoding, errors="replace")
                return html, response.is_success

    async def fetch_html(
        self,
        url: str,
        timeout: float,
        max_bytes: int,
        screen: bool = True,
    ) -> str:
        """Fetch an HTML page.

        Args:
            url: The URL to fetch
            timeout: Whole-request timeout in seconds
            max_bytes: Stop reading the body after this many bytes
            screen: Discard non-OK responses, soft-404s, noindex pages and
                empty listings

        Returns:
            HTML content, or "" if the page is unusable
        """
        try:
            html, ok = await asyncio.wait_for(
                self._read_html(url, timeout, max_bytes), timeout=timeout
            )
        except _FETCH_ERRORS as e:
            logfire.debug("Page fetch failed", url=url, error=str(e), error_type=type(e).__name__)
            return ""

        if not html:
            return ""
        if screen:
            reason = "http_error" if not ok else invalid_reason(html)
            if reason:
                logfire.debug("Page discarded", url=url, reason=reason)
                return ""
        return html

    async def fetch_text(self, url: str, timeout: float) -> str:
        """Fetch a text resource with no content-type or body screening.

        Returns:
            Body text, or "" on a non-OK response or any failure
        """

        async def _get() -> str:
            async with self._client_for(timeout) as client:
                response = await client.get(url, headers=self._headers, timeout=timeout)
                if not response.is_success:
                    return ""
                return response.text

        try:
            return await asyncio.wait_for(_get(), timeout=timeout)
        except _FETCH_ERRORS as e:
            logfire.debug("Text fetch failed", url=url, error=str(e), error_type=type(e).__name__)
            return ""

    async def check_url_ok(self, url: str, timeout: float) -> bool:
        """Check that url is a live, indexable HTML page.

        Tries HEAD first; when HEAD is not OK or not HTML, falls back to a
        short screened GET.
        """

        async def _head() -> bool:
            async with self._client_for(timeout) as client:
                response = await client.head(url, headers=self._headers, timeout=timeout)
                return response.is_success and _is_html(response)

        try:
            if await asyncio.wait_for(_head(), timeout=timeout):
                return True
        except _FETCH_ERRORS as e:
            logfire.debug("HEAD check failed", url=url, error=str(e))

        html = await self.fetch_html(url, max(3.0, timeout / 2), max_bytes=250_000)
        return bool(html)
