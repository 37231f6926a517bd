"""Models for persisted crawl snapshots."""

from typing import List, Literal

from pydantic import Field

from guide_crawler.models.crawl_models import CamelModel, ScrapedPage


class CacheDocument(CamelModel):
    """One guide's latest crawl snapshot.

    Timestamps are epoch milliseconds. A document is valid only while it is
    active, unexpired and holds at least one page.
    """

    guide_slug: str
    website_url: str
    domain: str = ""
    pages: List[ScrapedPage] = Field(default_factory=list)
    timestamp: int
    expires_at: int
    status: Literal["active", "expired"] = "active"

    def is_valid(self, now_ms: int) -> bool:
        return self.status == "active" and self.expires_at > now_ms and len(self.pages) > 0


class CacheListingEntry(CamelModel):
    """Summary of a persisted document for the administrative listing."""

    slug: str
    website_url: str
    pages: int
    timestamp: int
    expires_at: int
