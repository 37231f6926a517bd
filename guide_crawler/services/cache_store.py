"""Dual-keyed, TTL'd store of per-guide crawl snapshots.

Documents live in an in-memory map under both ``guide:<slug>`` and
``domain:<host>`` keys, and are persisted as one JSON file per guide.
A save replaces the guide's previous document wholesale; the file is
written to a temporary path and renamed into place so readers never see
a partial document.
"""

import asyncio
import os
import re
import time
from pathlib import Path
from typing import Callable, List
from urllib.parse import urlparse

import logfire
from pydantic import ValidationError

from guide_crawler.config import get_settings
from guide_crawler.constants import CACHE_TTL_HOURS, DEFAULT_CACHE_DIR
from guide_crawler.models.cache_models import CacheDocument, CacheListingEntry
from guide_crawler.models.crawl_models import ScrapedPage

_SLUG_RE = re.compile(r"[A-Za-z0-9][A-Za-z0-9._-]*")


def _now_ms() -> int:
    return int(time.time() * 1000)


def is_valid_slug(slug: str | None) -> bool:
    """True if slug can name a cache file."""
    return _SLUG_RE.fullmatch(slug or "") is not None


def domain_of(website_url: str) -> str:
    try:
        return (urlparse(website_url).hostname or "").lower()
    except ValueError:
        return ""


class ScrapingCacheStore:
    """
    Cache of the latest crawl per guide.

    Lookups are memory-first and fall back to the persisted files. A
    document is only returned while it is active, unexpired and non-empty.
    """

    def __init__(
        self,
        cache_dir: str | Path = DEFAULT_CACHE_DIR,
        ttl_hours: float = CACHE_TTL_HOURS,
        clock: Callable[[], int] = _now_ms,
    ):
        """
        Initialize the store.

        Args:
            cache_dir: Directory holding ``<slug>.json`` files (created on demand)
            ttl_hours: Time-to-live of a saved document
            clock: Epoch-milliseconds time source (injectable for tests)
        """
        self._dir = Path(cache_dir)
        self._ttl_ms = int(ttl_hours * 60 * 60 * 1000)
        self._clock = clock
        self._memory: dict[str, CacheDocument] = {}

    @staticmethod
    def _guide_key(slug: str) -> str:
        return f"guide:{slug}"

    @staticmethod
    def _domain_key(domain: str) -> str:
        return f"domain:{domain}"

    def _path_for(self, slug: str) -> Path:
        if not is_valid_slug(slug):
            raise ValueError(f"Invalid guide slug: {slug!r}")
        return self._dir / f"{slug}.json"

    def _remember(self, doc: CacheDocument) -> None:
        self._memory[self._guide_key(doc.guide_slug)] = doc
        if doc.domain:
            self._memory[self._domain_key(doc.domain)] = doc

    def _forget(self, doc: CacheDocument) -> None:
        self._memory.pop(self._guide_key(doc.guide_slug), None)
        if doc.domain and self._memory.get(self._domain_key(doc.domain)) is doc:
            del self._memory[self._domain_key(doc.domain)]

    # -------------------------------------------------------------------------
    # File helpers (run in a worker thread)
    # -------------------------------------------------------------------------

    def _write_file(self, path: Path, payload: str) -> None:
        self._dir.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_name(f".{path.name}.tmp")
        try:
            tmp_path.write_text(payload, encoding="utf-8")
            os.replace(tmp_path, path)
        except OSError:
            tmp_path.unlink(missing_ok=True)
            raise

    @staticmethod
    def _read_file(path: Path) -> CacheDocument | None:
        try:
            return CacheDocument.model_validate_json(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (OSError, ValidationError) as e:
            logfire.warn("Unreadable cache file", path=str(path), error=str(e))
            return None

    def _read_all(self) -> List[tuple[Path, CacheDocument]]:
        if not self._dir.is_dir():
            return []
        out = []
        for path in sorted(self._dir.glob("*.json")):
            doc = self._read_file(path)
            if doc is not None:
                out.append((path, doc))
        return out

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    async def save(
        self, guide_slug: str, website_url: str, pages: List[ScrapedPage]
    ) -> CacheDocument:
        """Store a fresh snapshot for a guide, replacing any previous one."""
        path = self._path_for(guide_slug)
        now = self._clock()
        doc = CacheDocument(
            guide_slug=guide_slug,
            website_url=website_url,
            domain=domain_of(website_url),
            pages=list(pages),
            timestamp=now,
            expires_at=now + self._ttl_ms,
            status="active",
        )

        await asyncio.to_thread(
            self._write_file, path, doc.model_dump_json(by_alias=True, indent=2)
        )

        previous = self._memory.get(self._guide_key(guide_slug))
        if previous is not None:
            self._forget(previous)
        self._remember(doc)
        logfire.info(
            "Crawl cached",
            guide_slug=guide_slug,
            domain=doc.domain,
            page_count=len(doc.pages),
            expires_at=doc.expires_at,
        )
        return doc

    async def get_valid_by_guide(self, guide_slug: str) -> List[ScrapedPage] | None:
        """Pages of the guide's valid snapshot, or None."""
        now = self._clock()
        mem = self._memory.get(self._guide_key(guide_slug))
        if mem is not None and mem.is_valid(now):
            return mem.pages

        try:
            path = self._path_for(guide_slug)
        except ValueError:
            return None
        doc = await asyncio.to_thread(self._read_file, path)
        if doc is not None and doc.is_valid(now):
            self._remember(doc)
            return doc.pages
        return None

    async def get_valid_by_domain(self, domain: str) -> List[ScrapedPage] | None:
        """Pages of a valid snapshot for the domain, or None.

        A memory miss scans the persisted files and remembers the first hit.
        """
        domain = (domain or "").lower()
        now = self._clock()
        mem = self._memory.get(self._domain_key(domain))
        if mem is not None and mem.is_valid(now):
            return mem.pages

        for _, doc in await asyncio.to_thread(self._read_all):
            if doc.domain == domain and doc.is_valid(now):
                self._remember(doc)
                return doc.pages
        return None

    async def cleanup_expired(self) -> int:
        """Delete expired files and evict their memory entries.

        Returns:
            Number of documents removed
        """
        now = self._clock()
        removed = 0
        for path, doc in await asyncio.to_thread(self._read_all):
            if doc.expires_at > now:
                continue
            try:
                await asyncio.to_thread(path.unlink)
            except FileNotFoundError:
                pass
            self._forget(doc)
            removed += 1

        for key, doc in list(self._memory.items()):
            if doc.expires_at <= now:
                del self._memory[key]

        if removed:
            logfire.info("Expired cache documents removed", removed=removed)
        return removed

    async def list_documents(self) -> List[CacheListingEntry]:
        """Summaries of all persisted documents, newest first."""
        entries = [
            CacheListingEntry(
                slug=path.stem,
                website_url=doc.website_url,
                pages=len(doc.pages),
                timestamp=doc.timestamp,
                expires_at=doc.expires_at,
            )
            for path, doc in await asyncio.to_thread(self._read_all)
        ]
        entries.sort(key=lambda e: e.timestamp, reverse=True)
        return entries


# Global store instance
_cache_store: ScrapingCacheStore | None = None


def get_cache_store() -> ScrapingCacheStore:
    """Get or create the global cache store."""
    global _cache_store
    if _cache_store is None:
        settings = get_settings()
        _cache_store = ScrapingCacheStore(
            cache_dir=settings.cache_dir, ttl_hours=settings.cache_ttl_hours
        )
    return _cache_store


def reset_cache_store() -> None:
    """Reset the global store (primarily for testing)."""
    global _cache_store
    _cache_store = None
