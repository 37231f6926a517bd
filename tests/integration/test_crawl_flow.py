"""Integration tests: crawler, fetcher, scheduler and cache over mocked HTTP."""

import httpx
import pytest

from guide_crawler.models.crawl_models import CrawlRequest
from guide_crawler.models.scheduler_models import GuideRecord
from guide_crawler.services.crawl_runner import LocalCrawlRunner
from guide_crawler.services.crawler import WebsiteCrawler
from guide_crawler.services.scheduler import ScheduledScrapingService

BASE = "https://example.test"

SITEMAP = f"""<?xml version="1.0" encoding="UTF-8"?>
<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">
  <url><loc>{BASE}/produtos/vinho-1</loc></url>
  <url><loc>{BASE}/sobre</loc></url>
  <url><loc>{BASE}/sitemap-extra.xml</loc></url>
</urlset>"""


@pytest.fixture
def example_site(respx_mock, html_response, make_page):
    """Mock example.test: no robots.txt, a sitemap and five linked pages."""
    routes = {
        "robots": respx_mock.get(f"{BASE}/robots.txt").mock(return_value=httpx.Response(404)),
        "sitemap": respx_mock.get(f"{BASE}/sitemap.xml").mock(
            return_value=httpx.Response(
                200, text=SITEMAP, headers={"content-type": "application/xml"}
            )
        ),
        "sitemap_extra": respx_mock.get(f"{BASE}/sitemap-extra.xml").mock(
            return_value=httpx.Response(200, text="<urlset></urlset>")
        ),
    }
    pages = {
        "/produtos/vinho-1": make_page(
            "Vinho 1", links=["/produtos/vinho-2", "/sobre", "/produtos/vinho-1#notas"]
        ),
        "/sobre": make_page("Sobre", links=["/contactos", "/produtos/vinho-2"]),
        "/produtos/vinho-2": make_page("Vinho 2", links=["/produtos/vinho-3"]),
        "/contactos": make_page("Contactos"),
        "/produtos/vinho-3": make_page("Vinho 3"),
    }
    for path, html in pages.items():
        routes[path] = respx_mock.get(f"{BASE}{path}").mock(return_value=html_response(html))
    respx_mock.route().respond(404)
    return routes


@pytest.mark.asyncio
async def test_end_to_end_sitemap_crawl(example_site):
    request = CrawlRequest.model_validate(
        {"websiteUrl": BASE, "maxDepth": 1, "maxPages": 10, "maxConcurrency": 4}
    )

    response = await WebsiteCrawler().crawl(request)

    urls = [p.url for p in response.pages]
    assert len(urls) == len(set(urls))
    assert sorted(urls) == [
        f"{BASE}/contactos",
        f"{BASE}/produtos/vinho-1",
        f"{BASE}/produtos/vinho-2",
        f"{BASE}/sobre",
    ]
    assert not example_site["sitemap_extra"].called
    assert example_site["robots"].call_count == 1
    assert example_site["/produtos/vinho-1"].call_count == 1
    assert example_site["/sobre"].call_count == 1
    assert example_site["/produtos/vinho-2"].call_count == 1
    assert not example_site["/produtos/vinho-3"].called
    assert all("sitemap" not in url for url in urls)
    kinds = {p.url: p.kind for p in response.pages}
    assert kinds[f"{BASE}/produtos/vinho-1"] == "product"
    assert kinds[f"{BASE}/sobre"] == "page"


@pytest.mark.asyncio
async def test_robots_disallow_performs_no_page_fetches(respx_mock, html_response, make_page):
    respx_mock.get(f"{BASE}/robots.txt").mock(
        return_value=httpx.Response(200, text="User-agent: *\nDisallow: /")
    )
    home = respx_mock.get(f"{BASE}/").mock(return_value=html_response(make_page("Início")))
    respx_mock.route().respond(404)

    response = await WebsiteCrawler().crawl(CrawlRequest(website_url=BASE))

    assert response.pages == []
    assert response.warning
    assert not home.called


@pytest.mark.asyncio
async def test_scheduled_crawl_is_cached(example_site, cache_store, fake_directory):
    fake_directory.guides = [GuideRecord(slug="exemplo", website_url=BASE)]
    scheduler = ScheduledScrapingService(
        cache_store=cache_store,
        directory=fake_directory,
        runner=LocalCrawlRunner(crawler=WebsiteCrawler()),
    )

    stats = await scheduler.run()

    assert stats.scraped == 1
    pages = await cache_store.get_valid_by_domain("example.test")
    assert pages is not None
    # Sweep bounds crawl to depth 2, so vinho-3 is reached as well
    assert f"{BASE}/produtos/vinho-3" in {p.url for p in pages}
