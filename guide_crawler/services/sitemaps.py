"""Sitemap-based seed discovery shared by the crawler and site search."""

from typing import Iterable, List

import logfire

from guide_crawler.constants import SITEMAP_TIMEOUT_SECONDS
from guide_crawler.services.content_extractor import extract_sitemap_urls
from guide_crawler.services.fetcher import PageFetcher

CONVENTIONAL_SITEMAP_PATHS = ("/sitemap.xml", "/sitemap_index.xml")


def candidate_sitemaps(origin: str, declared: Iterable[str] = ()) -> List[str]:
    """Robots-declared sitemaps first, then the conventional paths, de-duplicated."""
    out: List[str] = []
    for url in list(declared) + [f"{origin}{path}" for path in CONVENTIONAL_SITEMAP_PATHS]:
        if url not in out:
            out.append(url)
    return out


async def discover_sitemap_urls(
    fetcher: PageFetcher,
    origin: str,
    declared: Iterable[str] = (),
    limit: int | None = None,
    timeout: float = SITEMAP_TIMEOUT_SECONDS,
) -> List[str]:
    """Return page URLs from the first candidate sitemap that yields any.

    Later sitemaps are not consulted once one produced URLs.

    Args:
        fetcher: Page fetcher used for the sitemap requests
        origin: Site origin (scheme://host)
        declared: Sitemap URLs declared in robots.txt
        limit: Maximum number of URLs returned
        timeout: Per-sitemap fetch timeout in seconds
    """
    for sitemap_url in candidate_sitemaps(origin, declared):
        xml = await fetcher.fetch_text(sitemap_url, timeout)
        if not xml:
            continue
        urls = extract_sitemap_urls(xml, origin)
        if limit is not None:
            urls = urls[:limit]
        if urls:
            logfire.info(
                "Seeded from sitemap",
                origin=origin,
                sitemap=sitemap_url,
                url_count=len(urls),
            )
            return urls
    return []
