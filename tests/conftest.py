"""Shared pytest fixtures and configuration.

Fixture Categories:
1. Fakes: fake_fetcher (in-memory site), fake_directory, fake_runner
2. Stores: cache_store (tmp dir, controllable clock)
3. HTTP: respx_mock, html_response
4. Infrastructure: mock_settings, test_client, isolated singletons
"""

import asyncio
import os
from typing import Any, Dict, List

import pytest

os.environ.setdefault("LOGFIRE_IGNORE_NO_CONFIG", "1")

import httpx
import respx

from guide_crawler.config import get_settings
from guide_crawler.models.crawl_models import CrawlResponse, ScrapedPage
from guide_crawler.models.scheduler_models import GuideRecord
from guide_crawler.services.cache_store import ScrapingCacheStore, reset_cache_store
from guide_crawler.services.content_extractor import looks_invalid
from guide_crawler.services.crawler import reset_website_crawler
from guide_crawler.services.scheduler import reset_scheduler
from guide_crawler.services.site_search import reset_site_search

LOREM = (
    "Vinhos do Douro escolhidos a dedo pela nossa equipa de enologia. "
    "Cada garrafa tem notas de prova, sugestões de harmonização e origem "
    "da quinta. Entregamos em todo o país em embalagens seguras e "
    "recicláveis, com acompanhamento do pedido desde a adega até à porta. "
)


def page_html(title: str, body: str = LOREM, links: List[str] | None = None) -> str:
    """A readable HTML page (well above the thin-content threshold)."""
    anchors = "".join(f'<a href="{href}">{href}</a>' for href in links or [])
    return (
        f"<html><head><title>{title}</title>"
        f'<meta name="description" content="{title} description"></head>'
        f"<body><main><h1>{title}</h1><p>{body}</p><p>{LOREM}</p>{anchors}</main>"
        "</body></html>"
    )


class FakeFetcher:
    """In-memory PageFetcher recording every request."""

    def __init__(self) -> None:
        self.pages: Dict[str, str] = {}
        self.texts: Dict[str, str] = {}
        self.html_requests: List[str] = []
        self.text_requests: List[str] = []
        self.checked: List[str] = []
        self.delay = 0.0

    async def fetch_html(
        self, url: str, timeout: float, max_bytes: int, screen: bool = True
    ) -> str:
        self.html_requests.append(url)
        if self.delay:
            await asyncio.sleep(self.delay)
        html = self.pages.get(url, "")[:max_bytes]
        if screen and looks_invalid(html):
            return ""
        return html

    async def fetch_text(self, url: str, timeout: float) -> str:
        self.text_requests.append(url)
        return self.texts.get(url, "")

    async def check_url_ok(self, url: str, timeout: float) -> bool:
        self.checked.append(url)
        html = self.pages.get(url, "")
        return bool(html) and not looks_invalid(html)


class FakeGuideDirectory:
    """GuideDirectory over a list of guides."""

    def __init__(self, guides: List[GuideRecord] | None = None, error: Exception | None = None):
        self.guides = list(guides or [])
        self.error = error

    def list_active_guides(self) -> List[GuideRecord]:
        if self.error is not None:
            raise self.error
        return [g for g in self.guides if g.is_active]

    def get_guide(self, slug: str) -> GuideRecord | None:
        return next((g for g in self.guides if g.slug == slug), None)


class FakeCrawlRunner:
    """CrawlRunner returning a fixed number of pages per site.

    Sites listed in ``failures`` raise; while ``gate`` is set, every run
    waits for it.
    """

    def __init__(self, pages_per_site: int = 2) -> None:
        self.pages_per_site = pages_per_site
        self.failures: Dict[str, Exception] = {}
        self.calls: List[tuple[str, Dict[str, Any]]] = []
        self.gate: asyncio.Event | None = None

    async def run(self, website_url: str, options: Dict[str, Any]) -> CrawlResponse:
        self.calls.append((website_url, options))
        if self.gate is not None:
            await self.gate.wait()
        if website_url in self.failures:
            raise self.failures[website_url]
        pages = [
            ScrapedPage(url=f"{website_url.rstrip('/')}/p{i}", title=f"Page {i}", text=LOREM)
            for i in range(self.pages_per_site)
        ]
        return CrawlResponse(base=website_url, total=len(pages), pages=pages)


@pytest.fixture(autouse=True)
def isolated_singletons():
    """Fresh settings and service singletons for every test."""
    get_settings.cache_clear()
    yield
    reset_scheduler()
    reset_website_crawler()
    reset_cache_store()
    reset_site_search()
    get_settings.cache_clear()


@pytest.fixture
def fake_fetcher():
    return FakeFetcher()


@pytest.fixture
def fake_directory():
    return FakeGuideDirectory(
        [
            GuideRecord(slug="adega", website_url="https://adega.test"),
            GuideRecord(slug="quinta", website_url="https://quinta.test"),
            GuideRecord(slug="sem-site", website_url=None),
            GuideRecord(slug="inativo", website_url="https://inativo.test", is_active=False),
        ]
    )


@pytest.fixture
def fake_runner():
    return FakeCrawlRunner()


class FakeClock:
    """Controllable epoch-milliseconds clock."""

    def __init__(self, now_ms: int = 1_700_000_000_000) -> None:
        self.now_ms = now_ms

    def __call__(self) -> int:
        return self.now_ms

    def advance_hours(self, hours: float) -> None:
        self.now_ms += int(hours * 60 * 60 * 1000)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache_store(tmp_path, clock):
    """Cache store writing under a temporary directory."""
    return ScrapingCacheStore(cache_dir=tmp_path / "cache", ttl_hours=4, clock=clock)


@pytest.fixture
def respx_mock():
    """Respx router; unmatched requests fail the test."""
    with respx.mock(assert_all_called=False) as router:
        yield router


@pytest.fixture
def html_response():
    """Factory for an HTML httpx.Response."""

    def _build(body: str, status_code: int = 200) -> httpx.Response:
        return httpx.Response(
            status_code,
            text=body,
            headers={"content-type": "text/html; charset=utf-8"},
        )

    return _build


@pytest.fixture
def mock_settings(monkeypatch, tmp_path):
    """Settings for a test environment, read from environment variables."""
    monkeypatch.setenv("ENV", "local")
    monkeypatch.setenv("API_KEY", "test-operator-key")
    monkeypatch.setenv("CRON_SECRET", "test-cron-secret")
    monkeypatch.setenv("CACHE_DIR", str(tmp_path / "scraping-cache"))
    monkeypatch.delenv("SUPABASE_URL", raising=False)
    monkeypatch.delenv("SUPABASE_SERVICE_KEY", raising=False)
    monkeypatch.delenv("LOGFIRE_TOKEN", raising=False)
    monkeypatch.delenv("SENTRY_DSN", raising=False)
    get_settings.cache_clear()
    return get_settings()


@pytest.fixture
def test_client(mock_settings):
    """FastAPI TestClient for E2E tests."""
    from fastapi.testclient import TestClient

    from guide_crawler.main import app

    return TestClient(app)


@pytest.fixture
def make_page():
    """Factory for readable HTML pages: make_page(title, body=..., links=[...])."""
    return page_html
