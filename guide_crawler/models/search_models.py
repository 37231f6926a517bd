"""Models for live site search."""

from typing import List

from pydantic import Field

from guide_crawler.models.crawl_models import CamelModel


class SearchResult(CamelModel):
    """A ranked candidate page for a query."""

    url: str
    title: str | None = None
    score: float = 0
    verified: bool | None = None
    confidence: float | None = None


class SearchResponse(CamelModel):
    base: str
    q: str
    results: List[SearchResult] = Field(default_factory=list)
