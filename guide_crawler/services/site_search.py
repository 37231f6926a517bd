"""Live site search: find the pages of a site most relevant to a query.

A lighter, synchronous relative of the crawler. Candidates come from the
site's sitemap (or homepage links), are pre-ranked by URL path, and the
best ones are fetched, scored, verified and filtered by confidence. The
cache store is not involved.
"""

import asyncio
import re
import unicodedata
from dataclasses import dataclass
from typing import List
from urllib.parse import urlparse

import logfire

from guide_crawler.constants import (
    SEARCH_CONFIDENCE_BODY_CHARS,
    SEARCH_HOMEPAGE_LINKS,
    SEARCH_HOMEPAGE_TIMEOUT_SECONDS,
    SEARCH_MAX_HTML_BYTES,
    SEARCH_MAX_RESULTS,
    SEARCH_MAX_TOKENS,
    SEARCH_MIN_CONFIDENCE,
    SEARCH_PAGE_TIMEOUT_SECONDS,
    SEARCH_SCORING_BODY_CHARS,
    SEARCH_SITEMAP_CANDIDATES,
    SEARCH_TOP_CANDIDATES,
    SEARCH_VERIFY_TIMEOUT_SECONDS,
)
from guide_crawler.models.search_models import SearchResponse, SearchResult
from guide_crawler.services.content_extractor import (
    extract_links,
    extract_title,
    has_non_page_extension,
    normalize_url,
)
from guide_crawler.services.crawler import normalize_base
from guide_crawler.services.fetcher import HttpxPageFetcher, PageFetcher
from guide_crawler.services.robots import RobotsGate
from guide_crawler.services.sitemaps import discover_sitemap_urls

_TOKEN_SPLIT_RE = re.compile(r"[^a-z0-9]+")


def fold(text: str) -> str:
    """Lowercase and strip diacritics."""
    decomposed = unicodedata.normalize("NFD", (text or "").lower())
    return "".join(c for c in decomposed if not unicodedata.combining(c))


def tokenize(query: str) -> List[str]:
    """Split a query into at most SEARCH_MAX_TOKENS folded alphanumeric tokens."""
    return [t for t in _TOKEN_SPLIT_RE.split(fold(query)) if t][:SEARCH_MAX_TOKENS]


def text_score(haystack: str, tokens: List[str]) -> int:
    """3 points per token occurrence, +2 when the token stands as a path segment."""
    hay = fold(haystack)
    score = 0
    for token in tokens:
        score += hay.count(token) * 3
        if (
            f"/{token}" in hay
            or f"-{token}-" in hay
            or f"_{token}_" in hay
        ):
            score += 2
    return score


PRODUCT_BOOST_RULES: List[tuple[re.Pattern, int]] = [
    (
        re.compile(
            r"produto|produtos|product|products|loja|shop|categoria|categories"
            r"|collection|collections|item|artigo"
        ),
        20,
    ),
    (re.compile(r"/produtos?/|/products?/"), 15),
    (re.compile(r"\bsku\b|\bid\b"), 5),
    (re.compile(r"sitemap|/page/"), -50),
    (re.compile(r"\.(xml|xsl|gz)$"), -100),
]


def product_boost(url: str) -> int:
    """Boost for shop/product-like paths, penalty for listings and feeds."""
    path = urlparse(url).path.lower()
    return sum(weight for pattern, weight in PRODUCT_BOOST_RULES if pattern.search(path))


def relevance_bonus(query: str, tokens: List[str], title: str, path: str, body: str) -> int:
    """Exact-phrase, term-proximity and title/path presence bonuses.

    Args:
        query: Raw query text
        tokens: Query tokens
        title: Folded page title
        path: Folded URL path
        body: Folded leading part of the page body
    """
    bonus = 0
    phrase = fold(query).strip()
    if len(phrase) >= 3:
        if phrase in title:
            bonus += 40
        if phrase in path:
            bonus += 25
        if phrase in body:
            bonus += 20

    if len(tokens) >= 2:
        positions = sorted(i for i in (body.find(t) for t in tokens) if i >= 0)
        if len(positions) >= 2:
            min_gap = min(b - a for a, b in zip(positions, positions[1:]))
            if min_gap < 50:
                bonus += 20
            elif min_gap < 120:
                bonus += 10

    for token in tokens:
        if token in title:
            bonus += 12
        if token in path:
            bonus += 8
    return bonus


def confidence(tokens: List[str], title: str, path: str, body: str) -> float:
    """Fraction of distinct tokens found in the title, the path or the body."""
    unique = list(dict.fromkeys(tokens))
    if not unique:
        return 1.0
    present = sum(1 for t in unique if t in title or t in path or t in body)
    return present / len(unique)


@dataclass
class _Candidate:
    url: str
    score: float
    title: str | None = None
    verified: bool | None = None
    confidence: float | None = None


class SiteSearch:
    """Rank a site's pages against a free-text query."""

    def __init__(self, fetcher: PageFetcher | None = None):
        self._fetcher = fetcher or HttpxPageFetcher()

    async def search(self, base: str, query: str) -> SearchResponse:
        """Search base for query.

        Raises:
            InvalidWebsiteUrlError: If base is not an http(s) URL
        """
        origin = normalize_base(base)
        tokens = tokenize(query)

        with logfire.span("site search {origin}", origin=origin, token_count=len(tokens)):
            candidates = await self._discover(origin, tokens)
            candidates.sort(key=lambda c: c.score, reverse=True)
            top = candidates[:SEARCH_TOP_CANDIDATES]

            await asyncio.gather(*(self._evaluate(c, query, tokens) for c in top))

        top.sort(key=lambda c: c.score, reverse=True)
        unique: dict[str, _Candidate] = {}
        for candidate in top:
            unique.setdefault(candidate.url, candidate)
        ranked = list(unique.values())

        min_confidence = SEARCH_MIN_CONFIDENCE if tokens else 0
        filtered = [c for c in ranked if (c.confidence or 0) >= min_confidence]
        chosen = (filtered or ranked)[:SEARCH_MAX_RESULTS]

        logfire.info(
            "Site search completed",
            origin=origin,
            candidate_count=len(candidates),
            result_count=len(chosen),
        )
        return SearchResponse(
            base=origin,
            q=query,
            results=[
                SearchResult(
                    url=c.url,
                    title=c.title,
                    score=c.score,
                    verified=c.verified,
                    confidence=c.confidence,
                )
                for c in chosen
            ],
        )

    async def _discover(self, origin: str, tokens: List[str]) -> List[_Candidate]:
        """Sitemap URLs matching the tokens by path, else matching homepage links."""
        policy = await RobotsGate(self._fetcher).read(origin)
        sitemap_urls = await discover_sitemap_urls(
            self._fetcher, origin, policy.sitemaps, limit=SEARCH_SITEMAP_CANDIDATES
        )
        candidates = []
        for url in sitemap_urls:
            score = text_score(_path_of(url), tokens)
            if score > 0 or not tokens:
                candidates.append(_Candidate(url=url, score=score))
        if candidates:
            return candidates

        homepage = normalize_url(origin)
        html = await self._fetcher.fetch_html(
            homepage, SEARCH_HOMEPAGE_TIMEOUT_SECONDS, SEARCH_MAX_HTML_BYTES, screen=False
        )
        links = [
            link
            for link in extract_links(homepage, html)
            if "sitemap" not in link.lower() and not has_non_page_extension(link)
        ][:SEARCH_HOMEPAGE_LINKS]
        for url in links:
            score = text_score(_path_of(url), tokens)
            if score > 0:
                candidates.append(_Candidate(url=url, score=score))
        return candidates

    async def _evaluate(self, candidate: _Candidate, query: str, tokens: List[str]) -> None:
        """Fetch a candidate, add content-based score and set verification and confidence."""
        html = await self._fetcher.fetch_html(
            candidate.url, SEARCH_PAGE_TIMEOUT_SECONDS, SEARCH_MAX_HTML_BYTES, screen=False
        )
        title = extract_title(html)
        candidate.title = title

        folded_title = fold(title or "")
        path = fold(_path_of(candidate.url))
        body = fold(html)

        if title:
            candidate.score += text_score(title, tokens) * 2
        candidate.score += product_boost(candidate.url)
        candidate.score += relevance_bonus(
            query, tokens, folded_title, path, body[:SEARCH_SCORING_BODY_CHARS]
        )

        candidate.verified = await self._fetcher.check_url_ok(
            candidate.url, SEARCH_VERIFY_TIMEOUT_SECONDS
        )
        candidate.confidence = confidence(
            tokens, folded_title, path, body[:SEARCH_CONFIDENCE_BODY_CHARS]
        )


def _path_of(url: str) -> str:
    parsed = urlparse(url)
    return f"{parsed.path}?{parsed.query}" if parsed.query else parsed.path


# Global search instance
_site_search: SiteSearch | None = None


def get_site_search() -> SiteSearch:
    """Get or create the global site search."""
    global _site_search
    if _site_search is None:
        _site_search = SiteSearch()
    return _site_search


def reset_site_search() -> None:
    """Reset the global site search (primarily for testing)."""
    global _site_search
    _site_search = None
