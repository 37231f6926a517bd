"""Tests for WebsiteCrawler and the frontier."""

import pytest

from guide_crawler.models.crawl_models import CrawlRequest
from guide_crawler.services.crawler import (
    ROBOTS_DISALLOWED_WARNING,
    Frontier,
    FrontierItem,
    InvalidWebsiteUrlError,
    WebsiteCrawler,
    normalize_base,
)
from guide_crawler.services.result_cache import CrawlResultCache

BASE = "https://example.test"


def request(**overrides) -> CrawlRequest:
    payload = {"websiteUrl": BASE, "maxConcurrency": 4}
    payload.update(overrides)
    return CrawlRequest.model_validate(payload)


class TestNormalizeBase:
    def test_origin(self):
        assert normalize_base(" HTTPS://Example.test/loja?x=1 ") == "https://example.test"
        assert normalize_base("http://example.test:8080/a") == "http://example.test:8080"

    @pytest.mark.parametrize("url", [None, "", "example.test", "ftp://example.test", "https://"])
    def test_invalid(self, url):
        with pytest.raises(InvalidWebsiteUrlError):
            normalize_base(url)


class TestFrontier:
    """Test two-tier ordering."""

    def test_high_before_low(self):
        frontier = Frontier()
        frontier.push_low([FrontierItem("low-1", 0), FrontierItem("low-2", 0)])
        frontier.push_high([FrontierItem("high-1", 1), FrontierItem("high-2", 1)])

        assert [frontier.pop().url for _ in range(4)] == ["high-1", "high-2", "low-1", "low-2"]
        assert frontier.pop() is None

    def test_later_high_batch_goes_first(self):
        frontier = Frontier()
        frontier.push_high([FrontierItem("a", 1)])
        frontier.push_high([FrontierItem("b", 1), FrontierItem("c", 1)])

        assert [frontier.pop().url for _ in range(3)] == ["b", "c", "a"]
        assert len(frontier) == 0


class TestWebsiteCrawler:
    """Test crawl behaviour against an in-memory site."""

    @pytest.mark.asyncio
    async def test_invalid_url_rejected_before_network(self, fake_fetcher, make_page):
        crawler = WebsiteCrawler(fetcher=fake_fetcher)

        with pytest.raises(InvalidWebsiteUrlError):
            await crawler.crawl(request(websiteUrl="not a url"))
        assert fake_fetcher.text_requests == []
        assert fake_fetcher.html_requests == []

    @pytest.mark.asyncio
    async def test_robots_kill_switch(self, fake_fetcher, make_page):
        fake_fetcher.texts[f"{BASE}/robots.txt"] = "User-agent: *\nDisallow: /"
        fake_fetcher.pages[f"{BASE}/"] = make_page("Início")

        response = await WebsiteCrawler(fetcher=fake_fetcher).crawl(request())

        assert response.pages == []
        assert response.warning == ROBOTS_DISALLOWED_WARNING
        assert fake_fetcher.html_requests == []

    @pytest.mark.asyncio
    async def test_robots_ignored_when_disabled(self, fake_fetcher, make_page):
        fake_fetcher.texts[f"{BASE}/robots.txt"] = "User-agent: *\nDisallow: /"
        fake_fetcher.pages[f"{BASE}/"] = make_page("Início")

        response = await WebsiteCrawler(fetcher=fake_fetcher).crawl(
            request(respectRobotsTxt=False)
        )

        assert [p.url for p in response.pages] == [f"{BASE}/"]
        assert response.warning is None

    @pytest.mark.asyncio
    async def test_homepage_seed_and_link_following(self, fake_fetcher, make_page):
        fake_fetcher.pages[f"{BASE}/"] = make_page(
            "Início", links=["/sobre", "/produtos/tinto", "https://other.test/x"]
        )
        fake_fetcher.pages[f"{BASE}/sobre"] = make_page("Sobre", links=["/"])
        fake_fetcher.pages[f"{BASE}/produtos/tinto"] = make_page("Tinto", links=["/sobre"])

        response = await WebsiteCrawler(fetcher=fake_fetcher).crawl(request(maxDepth=2))

        urls = sorted(p.url for p in response.pages)
        assert urls == [f"{BASE}/", f"{BASE}/produtos/tinto", f"{BASE}/sobre"]
        assert response.total == 3
        assert response.base == BASE
        kinds = {p.url: p.kind for p in response.pages}
        assert kinds[f"{BASE}/produtos/tinto"] == "product"
        assert all(not u.startswith("https://other.test") for u in fake_fetcher.html_requests)

    @pytest.mark.asyncio
    async def test_no_revisits(self, fake_fetcher, make_page):
        # Every page links to every other page
        paths = [f"/p{i}" for i in range(8)]
        fake_fetcher.pages[f"{BASE}/"] = make_page("Início", links=paths)
        for path in paths:
            fake_fetcher.pages[f"{BASE}{path}"] = make_page(path, links=["/"] + paths)

        response = await WebsiteCrawler(fetcher=fake_fetcher).crawl(
            request(maxDepth=3, maxConcurrency=8)
        )

        urls = [p.url for p in response.pages]
        assert len(urls) == len(set(urls)) == 9
        assert len(fake_fetcher.html_requests) == len(set(fake_fetcher.html_requests))

    @pytest.mark.asyncio
    async def test_page_cap_with_bounded_overshoot(self, fake_fetcher, make_page):
        paths = [f"/p{i}" for i in range(30)]
        fake_fetcher.pages[f"{BASE}/"] = make_page("Início", links=paths)
        for path in paths:
            fake_fetcher.pages[f"{BASE}{path}"] = make_page(path)
        fake_fetcher.delay = 0.001

        response = await WebsiteCrawler(fetcher=fake_fetcher).crawl(
            request(maxPages=5, maxConcurrency=4)
        )

        assert 5 <= len(response.pages) <= 5 + 4 - 1

    @pytest.mark.asyncio
    async def test_depth_bound(self, fake_fetcher, make_page):
        fake_fetcher.pages[f"{BASE}/"] = make_page("Início", links=["/nivel-1"])
        fake_fetcher.pages[f"{BASE}/nivel-1"] = make_page("Um", links=["/nivel-2"])
        fake_fetcher.pages[f"{BASE}/nivel-2"] = make_page("Dois")

        response = await WebsiteCrawler(fetcher=fake_fetcher).crawl(request(maxDepth=1))

        assert sorted(p.url for p in response.pages) == [f"{BASE}/", f"{BASE}/nivel-1"]
        assert f"{BASE}/nivel-2" not in fake_fetcher.html_requests

    @pytest.mark.asyncio
    async def test_depth_zero_fetches_only_seeds(self, fake_fetcher, make_page):
        fake_fetcher.pages[f"{BASE}/"] = make_page("Início", links=["/sobre"])
        fake_fetcher.pages[f"{BASE}/sobre"] = make_page("Sobre")

        response = await WebsiteCrawler(fetcher=fake_fetcher).crawl(request(maxDepth=0))

        assert [p.url for p in response.pages] == [f"{BASE}/"]

    @pytest.mark.asyncio
    async def test_thin_pages_excluded(self, fake_fetcher, make_page):
        fake_fetcher.pages[f"{BASE}/"] = make_page("Início", links=["/ok"])
        fake_fetcher.pages[f"{BASE}/ok"] = "<html><body><p>OK</p></body></html>"

        response = await WebsiteCrawler(fetcher=fake_fetcher).crawl(request())

        assert [p.url for p in response.pages] == [f"{BASE}/"]
        assert f"{BASE}/ok" in fake_fetcher.html_requests

    @pytest.mark.asyncio
    async def test_include_and_exclude_patterns(self, fake_fetcher, make_page):
        fake_fetcher.pages[f"{BASE}/"] = make_page(
            "Início", links=["/produtos/tinto", "/produtos/branco", "/blog/vindima"]
        )
        for path in ("/produtos/tinto", "/produtos/branco", "/blog/vindima"):
            fake_fetcher.pages[f"{BASE}{path}"] = make_page(path)

        response = await WebsiteCrawler(fetcher=fake_fetcher).crawl(
            request(includePatterns=["/produtos/"], excludePatterns=["branco"])
        )

        assert sorted(p.url for p in response.pages) == [f"{BASE}/", f"{BASE}/produtos/tinto"]

    @pytest.mark.asyncio
    async def test_high_priority_links_first(self, fake_fetcher, make_page):
        fake_fetcher.pages[f"{BASE}/"] = make_page(
            "Início", links=["/sobre", "/contactos", "/produto/tinto"]
        )
        for path in ("/sobre", "/contactos", "/produto/tinto"):
            fake_fetcher.pages[f"{BASE}{path}"] = make_page(path)

        await WebsiteCrawler(fetcher=fake_fetcher).crawl(request(maxConcurrency=1))

        assert fake_fetcher.html_requests == [
            f"{BASE}/",
            f"{BASE}/produto/tinto",
            f"{BASE}/sobre",
            f"{BASE}/contactos",
        ]

    @pytest.mark.asyncio
    async def test_sitemap_seeds_limited(self, fake_fetcher, make_page):
        locs = "".join(f"<url><loc>{BASE}/p{i}</loc></url>" for i in range(20))
        fake_fetcher.texts[f"{BASE}/sitemap.xml"] = f"<urlset>{locs}</urlset>"
        for i in range(20):
            fake_fetcher.pages[f"{BASE}/p{i}"] = make_page(f"P{i}")

        await WebsiteCrawler(fetcher=fake_fetcher).crawl(
            request(maxPages=2, maxDepth=0, maxConcurrency=1)
        )

        # maxPages * 3 seeds at most; only the first two are visited with one worker
        assert fake_fetcher.html_requests == [f"{BASE}/p0", f"{BASE}/p1"]
        assert f"{BASE}/" not in fake_fetcher.html_requests

    @pytest.mark.asyncio
    async def test_result_window_cache(self, fake_fetcher, make_page):
        fake_fetcher.pages[f"{BASE}/"] = make_page("Início")
        crawler = WebsiteCrawler(fetcher=fake_fetcher, result_cache=CrawlResultCache())

        first = await crawler.crawl(request())
        requests_after_first = len(fake_fetcher.html_requests)
        second = await crawler.crawl(request(maxConcurrency=2))

        assert first.cached is None
        assert second.cached is True
        assert second.pages == first.pages
        assert len(fake_fetcher.html_requests) == requests_after_first

    @pytest.mark.asyncio
    async def test_robots_block_not_cached(self, fake_fetcher, make_page):
        fake_fetcher.texts[f"{BASE}/robots.txt"] = "User-agent: *\nDisallow: /"
        cache = CrawlResultCache()

        await WebsiteCrawler(fetcher=fake_fetcher, result_cache=cache).crawl(request())

        assert cache.size == 0

    @pytest.mark.asyncio
    async def test_page_text_is_truncated(self, fake_fetcher, make_page):
        fake_fetcher.pages[f"{BASE}/"] = make_page("Longo", body="vinho " * 5000)

        response = await WebsiteCrawler(fetcher=fake_fetcher).crawl(request())

        assert len(response.pages[0].text) == 12000
        assert response.pages[0].title == "Longo"
        assert response.pages[0].description == "Longo description"
