"""Short-lived in-process cache of crawl results."""

import time
from collections import OrderedDict
from threading import Lock
from typing import Callable, Iterable

import logfire

from guide_crawler.constants import (
    CRAWL_RESULT_CACHE_MAX_ENTRIES,
    CRAWL_RESULT_CACHE_TTL_SECONDS,
)
from guide_crawler.models.crawl_models import CrawlResponse


def crawl_cache_key(
    origin: str,
    max_pages: int,
    max_depth: int,
    include_patterns: Iterable[str],
    exclude_patterns: Iterable[str],
) -> str:
    """Composite key identifying equivalent crawl requests."""
    return "|".join(
        [
            origin,
            str(max_pages),
            str(max_depth),
            ",".join(include_patterns),
            ",".join(exclude_patterns),
        ]
    )


class CrawlResultCache:
    """
    Thread-safe LRU cache of crawl responses with a TTL.

    Absorbs duplicate crawl requests arriving within a short window. The
    least recently used entry is evicted once ``max_entries`` is reached.
    """

    def __init__(
        self,
        ttl_seconds: float = CRAWL_RESULT_CACHE_TTL_SECONDS,
        max_entries: int = CRAWL_RESULT_CACHE_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the cache.

        Args:
            ttl_seconds: Time-to-live for cache entries in seconds
            max_entries: Maximum number of entries kept
            clock: Monotonic time source (injectable for tests)
        """
        self._cache: OrderedDict[str, tuple[CrawlResponse, float]] = OrderedDict()
        self._ttl = ttl_seconds
        self._max_entries = max_entries
        self._clock = clock
        self._lock = Lock()

    def get(self, key: str) -> CrawlResponse | None:
        """Return the cached response if present and not expired."""
        with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                return None
            response, stored_at = entry
            if self._clock() - stored_at >= self._ttl:
                del self._cache[key]
                logfire.debug("Crawl result cache expired", key=key)
                return None
            self._cache.move_to_end(key)
            logfire.debug("Crawl result cache hit", key=key)
            return response

    def set(self, key: str, response: CrawlResponse) -> None:
        with self._lock:
            self._cache[key] = (response, self._clock())
            self._cache.move_to_end(key)
            while len(self._cache) > self._max_entries:
                self._cache.popitem(last=False)

    def clear(self) -> None:
        """Clear all cached results."""
        with self._lock:
            self._cache.clear()

    @property
    def size(self) -> int:
        with self._lock:
            return len(self._cache)
