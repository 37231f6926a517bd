"""Models for guides, scheduled sweeps and scheduler control responses."""

from typing import List

from pydantic import Field

from guide_crawler.models.crawl_models import CamelModel


class GuideRecord(CamelModel):
    """A guide (tenant) as read from the guide directory."""

    slug: str
    website_url: str | None = None
    is_active: bool = True


class RunDetail(CamelModel):
    """Outcome of one guide within a sweep."""

    slug: str
    website_url: str | None = None
    pages: int | None = None
    error: str | None = None


class RunStats(CamelModel):
    """Outcome of one sweep.

    Mutated by the sweep workers while it runs and frozen once
    ``finished_at`` is set.
    """

    started_at: int
    finished_at: int | None = None
    total_guides: int = 0
    scraped: int = 0
    skipped: int = 0
    errors: int = 0
    details: List[RunDetail] = Field(default_factory=list)


class GuideRunResult(CamelModel):
    """Result of crawling a single guide on demand."""

    slug: str
    website_url: str
    pages: int


class SchedulerControlResponse(CamelModel):
    """Response of the scheduler control endpoint."""

    ok: bool = True
    running: bool | None = None
    stats: RunStats | None = None
    result: GuideRunResult | None = None
