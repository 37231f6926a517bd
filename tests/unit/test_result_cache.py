"""Tests for the crawl result window cache."""

from guide_crawler.models.crawl_models import CrawlResponse
from guide_crawler.services.result_cache import CrawlResultCache, crawl_cache_key


class FakeMonotonic:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


def response(base: str = "https://example.test") -> CrawlResponse:
    return CrawlResponse(base=base, total=0, pages=[])


def test_key_includes_bounds_and_patterns():
    a = crawl_cache_key("https://example.test", 40, 2, ["/produtos"], [])
    b = crawl_cache_key("https://example.test", 40, 2, [], ["/produtos"])
    c = crawl_cache_key("https://example.test", 40, 1, ["/produtos"], [])
    assert len({a, b, c}) == 3


class TestCrawlResultCache:
    """Test TTL and LRU behaviour."""

    def test_hit_and_miss(self):
        cache = CrawlResultCache(ttl_seconds=600, max_entries=5)
        cache.set("k", response())

        assert cache.get("k") == response()
        assert cache.get("other") is None

    def test_expires_after_ttl(self):
        clock = FakeMonotonic()
        cache = CrawlResultCache(ttl_seconds=600, max_entries=5, clock=clock)
        cache.set("k", response())

        clock.now += 599
        assert cache.get("k") is not None
        clock.now += 1
        assert cache.get("k") is None
        assert cache.size == 0

    def test_evicts_least_recently_used(self):
        cache = CrawlResultCache(ttl_seconds=600, max_entries=2)
        cache.set("a", response("https://a.test"))
        cache.set("b", response("https://b.test"))
        cache.get("a")
        cache.set("c", response("https://c.test"))

        assert cache.get("a") is not None
        assert cache.get("b") is None
        assert cache.get("c") is not None

    def test_clear(self):
        cache = CrawlResultCache()
        cache.set("k", response())
        cache.clear()

        assert cache.size == 0
