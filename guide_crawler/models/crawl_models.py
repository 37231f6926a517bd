"""Models for crawl requests, scraped pages and crawl responses."""

import re
from typing import Any, List, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from guide_crawler.constants import (
    MAX_CONCURRENCY_BOUNDS,
    MAX_DEPTH_BOUNDS,
    MAX_HTML_BYTES_BOUNDS,
    MAX_PAGES_BOUNDS,
    REQUEST_TIMEOUT_MS_BOUNDS,
)

PageKind = Literal["product", "page", "blog", "faq"]


class CamelModel(BaseModel):
    """Base model serialized with camelCase aliases, accepting either name on input."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _clamp(value: Any, bounds: tuple[int, int, int]) -> int:
    """Coerce value to an int inside bounds; missing or non-numeric values use the default."""
    low, default, high = bounds
    if value is None or isinstance(value, bool):
        return default
    try:
        number = int(float(value))
    except (TypeError, ValueError):
        return default
    return max(low, min(high, number))


class ScrapedPage(CamelModel):
    """One harvested document. Immutable once created."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )

    url: str
    title: str | None = None
    description: str | None = None
    text: str | None = None
    kind: PageKind = "page"


class CrawlRequest(CamelModel):
    """Crawl trigger parameters.

    Every numeric bound is clamped into its allowed range rather than
    rejected, so a request can never ask for an unbounded crawl.
    """

    website_url: str = Field(..., description="Seed URL (http or https)")
    max_pages: int = Field(default=MAX_PAGES_BOUNDS[1])
    max_depth: int = Field(default=MAX_DEPTH_BOUNDS[1])
    max_concurrency: int = Field(default=MAX_CONCURRENCY_BOUNDS[1])
    timeout_ms: int = Field(default=REQUEST_TIMEOUT_MS_BOUNDS[1])
    max_html_bytes: int = Field(default=MAX_HTML_BYTES_BOUNDS[1])
    include_patterns: List[str] = Field(default_factory=list)
    exclude_patterns: List[str] = Field(default_factory=list)
    respect_robots_txt: bool = True

    @field_validator("website_url", mode="before")
    @classmethod
    def _coerce_url(cls, value: Any) -> str:
        return "" if value is None else str(value).strip()

    @field_validator("max_pages", mode="before")
    @classmethod
    def _clamp_max_pages(cls, value: Any) -> int:
        return _clamp(value, MAX_PAGES_BOUNDS)

    @field_validator("max_depth", mode="before")
    @classmethod
    def _clamp_max_depth(cls, value: Any) -> int:
        return _clamp(value, MAX_DEPTH_BOUNDS)

    @field_validator("max_concurrency", mode="before")
    @classmethod
    def _clamp_max_concurrency(cls, value: Any) -> int:
        return _clamp(value, MAX_CONCURRENCY_BOUNDS)

    @field_validator("timeout_ms", mode="before")
    @classmethod
    def _clamp_timeout(cls, value: Any) -> int:
        return _clamp(value, REQUEST_TIMEOUT_MS_BOUNDS)

    @field_validator("max_html_bytes", mode="before")
    @classmethod
    def _clamp_max_html_bytes(cls, value: Any) -> int:
        return _clamp(value, MAX_HTML_BYTES_BOUNDS)

    @field_validator("include_patterns", "exclude_patterns", mode="before")
    @classmethod
    def _validate_patterns(cls, value: Any) -> List[str]:
        if not isinstance(value, list):
            return []
        patterns = [str(p) for p in value if p]
        for pattern in patterns:
            try:
                re.compile(pattern)
            except re.error as e:
                raise ValueError(f"Invalid pattern {pattern!r}: {e}") from e
        return patterns

    @field_validator("respect_robots_txt", mode="before")
    @classmethod
    def _coerce_respect_robots(cls, value: Any) -> bool:
        # Only an explicit false disables the robots check
        return value is not False

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000


class CrawlResponse(CamelModel):
    """Result of one crawl."""

    base: str
    total: int = 0
    pages: List[ScrapedPage] = Field(default_factory=list)
    warning: str | None = None
    cached: bool | None = None
