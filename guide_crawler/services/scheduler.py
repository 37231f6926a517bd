"""Scheduled crawling of every active guide.

One process-wide ScheduledScrapingService owns a SchedulerState:
- start()/stop() toggle a periodic asyncio task (immediate sweep, then
  one sweep every ``interval_hours``)
- run() performs a sweep under a single-flight lock; a caller arriving
  while a sweep is in progress receives the in-flight RunStats object
- run_for_guide() crawls one guide on demand

A failing guide is recorded in RunStats and never aborts the sweep. A
failure to list guides propagates to the caller.
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Iterator

import logfire

from guide_crawler.config import get_settings
from guide_crawler.constants import (
    GUIDE_CRAWL_OPTIONS,
    SCHEDULER_INTERVAL_HOURS,
    SCHEDULER_WORKER_COUNT,
    SWEEP_CRAWL_OPTIONS,
)
from guide_crawler.db.repository import GuideDirectory, SupabaseGuideDirectory
from guide_crawler.models.scheduler_models import (
    GuideRecord,
    GuideRunResult,
    RunDetail,
    RunStats,
)
from guide_crawler.services.cache_store import (
    ScrapingCacheStore,
    get_cache_store,
    is_valid_slug,
)
from guide_crawler.services.crawl_runner import CrawlRunner, get_crawl_runner
from guide_crawler.services.crawler import InvalidWebsiteUrlError, normalize_base


class GuideNotFoundError(LookupError):
    """Raised when a guide slug is not in the guide directory."""


def _now_ms() -> int:
    return int(time.time() * 1000)


def has_valid_website_url(url: str | None) -> bool:
    try:
        normalize_base(url)
    except InvalidWebsiteUrlError:
        return False
    return True


@dataclass
class SchedulerState:
    """Mutable scheduler state owned by one service instance."""

    timer_task: asyncio.Task | None = None
    sweep_task: asyncio.Task | None = None
    last_stats: RunStats | None = None
    sweep_lock: asyncio.Lock = field(default_factory=asyncio.Lock)


class ScheduledScrapingService:
    """Run crawls for one guide on demand or for all active guides periodically."""

    def __init__(
        self,
        cache_store: ScrapingCacheStore | None = None,
        directory: GuideDirectory | None = None,
        runner: CrawlRunner | None = None,
        interval_hours: float = SCHEDULER_INTERVAL_HOURS,
        worker_count: int = SCHEDULER_WORKER_COUNT,
    ):
        """Initialize the service.

        Args:
            cache_store: Where crawl results are saved
            directory: Source of guides (defaults to Supabase)
            runner: How crawls are executed (defaults per settings)
            interval_hours: Hours between periodic sweeps
            worker_count: Guides crawled concurrently during a sweep
        """
        self._cache_store = cache_store or get_cache_store()
        self._directory = directory or SupabaseGuideDirectory()
        self._runner = runner or get_crawl_runner()
        self._interval_seconds = interval_hours * 60 * 60
        self._worker_count = max(1, worker_count)
        self._state = SchedulerState()

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    @property
    def is_started(self) -> bool:
        task = self._state.timer_task
        return task is not None and not task.done()

    @property
    def is_running(self) -> bool:
        """True while a sweep is in progress."""
        return self._state.sweep_lock.locked()

    def get_stats(self) -> RunStats | None:
        return self._state.last_stats

    def start(self) -> None:
        """Start periodic sweeps. Must be called from a running event loop."""
        if self.is_started:
            return
        self._state.timer_task = asyncio.get_running_loop().create_task(self._periodic())
        logfire.info("Scheduler started", interval_seconds=self._interval_seconds)

    def stop(self) -> None:
        """Stop periodic sweeps. A sweep in progress is left to finish."""
        task = self._state.timer_task
        if task is not None:
            task.cancel()
        self._state.timer_task = None
        logfire.info("Scheduler stopped")

    async def _periodic(self) -> None:
        # stop() cancels this loop; a sweep already in progress runs to completion
        while True:
            self._state.sweep_task = asyncio.create_task(self._scheduled_sweep())
            await asyncio.shield(self._state.sweep_task)
            await asyncio.sleep(self._interval_seconds)

    async def _scheduled_sweep(self) -> None:
        try:
            await self.run()
        except Exception as e:
            logfire.error(
                "Scheduled sweep failed",
                error=str(e),
                error_type=type(e).__name__,
            )

    # -------------------------------------------------------------------------
    # Crawling
    # -------------------------------------------------------------------------

    async def _crawl_and_save(self, slug: str, website_url: str, options: dict[str, Any]) -> int:
        response = await self._runner.run(website_url, options)
        await self._cache_store.save(slug, website_url, response.pages)
        return len(response.pages)

    async def run_for_guide(self, slug: str, website_url: str | None = None) -> GuideRunResult:
        """Crawl and cache one guide.

        Args:
            slug: Guide slug
            website_url: Site to crawl (looked up in the directory when omitted)

        Raises:
            ValueError: If slug is empty or cannot name a cache file
            GuideNotFoundError: If the guide is not in the directory
            InvalidWebsiteUrlError: If the website URL is missing or malformed
        """
        target_slug = (slug or "").strip()
        if not target_slug:
            raise ValueError("slug is required")
        if not is_valid_slug(target_slug):
            raise ValueError(f"Invalid guide slug: {target_slug!r}")

        site = (website_url or "").strip()
        if not site:
            guide = await asyncio.to_thread(self._directory.get_guide, target_slug)
            if guide is None:
                raise GuideNotFoundError(f"Guide not found: {target_slug}")
            site = (guide.website_url or "").strip()
        normalize_base(site)

        with logfire.span("crawl guide {slug}", slug=target_slug, website_url=site):
            pages = await self._crawl_and_save(target_slug, site, GUIDE_CRAWL_OPTIONS)
        return GuideRunResult(slug=target_slug, website_url=site, pages=pages)

    async def run(self) -> RunStats:
        """Sweep all active guides.

        Returns:
            This sweep's stats, or the in-flight stats if a sweep is already running
        """
        if self._state.sweep_lock.locked():
            logfire.info("Sweep already running, returning in-flight stats")
            return self._state.last_stats or RunStats(started_at=_now_ms())

        async with self._state.sweep_lock:
            previous = self._state.last_stats
            stats = RunStats(started_at=_now_ms())
            self._state.last_stats = stats

            with logfire.span("scheduled sweep"):
                try:
                    guides = await asyncio.to_thread(self._directory.list_active_guides)
                except Exception:
                    self._state.last_stats = previous
                    raise

                stats.total_guides = len(guides)
                shared = iter(guides)
                await asyncio.gather(
                    *(
                        self._sweep_worker(shared, stats)
                        for _ in range(min(self._worker_count, max(1, len(guides))))
                    )
                )

                try:
                    await self._cache_store.cleanup_expired()
                except OSError as e:
                    logfire.warn("Cache cleanup failed", error=str(e))

            stats.finished_at = _now_ms()
            logfire.info(
                "Sweep completed",
                total_guides=stats.total_guides,
                scraped=stats.scraped,
                skipped=stats.skipped,
                errors=stats.errors,
                duration_ms=stats.finished_at - stats.started_at,
            )
            return stats

    async def _sweep_worker(self, guides: Iterator[GuideRecord], stats: RunStats) -> None:
        # The iterator is shared, so each guide is handed to exactly one worker
        for guide in guides:
            await self._sweep_guide(guide, stats)

    async def _sweep_guide(self, guide: GuideRecord, stats: RunStats) -> None:
        if not is_valid_slug(guide.slug):
            stats.errors += 1
            stats.details.append(
                RunDetail(
                    slug=guide.slug,
                    website_url=guide.website_url,
                    error=f"Invalid guide slug: {guide.slug!r}",
                )
            )
            return

        if not has_valid_website_url(guide.website_url):
            stats.skipped += 1
            stats.details.append(
                RunDetail(slug=guide.slug, website_url=guide.website_url, error="No websiteUrl")
            )
            return

        try:
            pages = await self._crawl_and_save(guide.slug, guide.website_url, SWEEP_CRAWL_OPTIONS)
        except Exception as e:
            stats.errors += 1
            stats.details.append(
                RunDetail(
                    slug=guide.slug,
                    website_url=guide.website_url,
                    error=str(e) or type(e).__name__,
                )
            )
            logfire.warn(
                "Guide crawl failed during sweep",
                slug=guide.slug,
                error=str(e),
                error_type=type(e).__name__,
            )
            return

        stats.scraped += 1
        stats.details.append(
            RunDetail(slug=guide.slug, website_url=guide.website_url, pages=pages)
        )


# Global scheduler instance
_scheduler: ScheduledScrapingService | None = None


def get_scheduler() -> ScheduledScrapingService:
    """Get or create the process-wide scheduler."""
    global _scheduler
    if _scheduler is None:
        settings = get_settings()
        _scheduler = ScheduledScrapingService(
            interval_hours=settings.scheduler_interval_hours,
            worker_count=settings.scheduler_worker_count,
        )
    return _scheduler


def reset_scheduler() -> None:
    """Stop and drop the global scheduler (primarily for testing)."""
    global _scheduler
    if _scheduler is not None:
        _scheduler.stop()
    _scheduler = None
