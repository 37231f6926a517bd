"""Pure HTML/XML helpers used by the crawler and site search.

Nothing in this module performs I/O or keeps state:
- normalize_url / same_host: URL canonicalisation for deduplication
- extract_links / extract_sitemap_urls: link discovery
- extract_meta / extract_readable_text / is_thin_content: page content
- classify_kind / compute_link_priority: ordered heuristic rule chains
- looks_invalid: soft-404, noindex and empty-listing detection

Heuristics are expressed as ordered ``(pattern, tag)`` rule lists so each
rule can be tested on its own and the first match wins.
"""

import json
import re
from typing import Callable, List
from urllib.parse import unquote_plus, urljoin, urlparse, urlunparse

from bs4 import BeautifulSoup

from guide_crawler.constants import MIN_READABLE_TEXT_CHARS, TRACKING_QUERY_PARAMS

# Extensions of resources that are never HTML pages
NON_PAGE_EXTENSIONS = frozenset(
    (
        ".xml",
        ".xsl",
        ".gz",
        ".pdf",
        ".zip",
        ".json",
        ".csv",
        ".xls",
        ".xlsx",
        ".jpg",
        ".jpeg",
        ".png",
        ".gif",
        ".webp",
        ".svg",
        ".ico",
        ".tar",
        ".css",
        ".js",
        ".rss",
        ".mp3",
        ".mp4",
        ".webm",
        ".woff",
        ".woff2",
        ".ttf",
        ".eot",
    )
)

_SKIPPED_HREF_PREFIXES = ("#", "mailto:", "tel:", "javascript:", "data:")

_LOC_RE = re.compile(r"<loc>\s*([^<\s]+)\s*</loc>", re.IGNORECASE)
_WHITESPACE_RE = re.compile(r"\s+")


# =============================================================================
# URLs
# =============================================================================


def has_non_page_extension(url: str) -> bool:
    """True if the URL path ends in an extension that is not an HTML page."""
    path = urlparse(url).path.lower()
    return any(path.endswith(ext) for ext in NON_PAGE_EXTENSIONS)


def _is_tracking(segment: str) -> bool:
    return unquote_plus(segment.split("=", 1)[0]).lower() in TRACKING_QUERY_PARAMS


def normalize_url(url: str) -> str:
    """Canonical form used as the crawl's dedup key.

    Lowercases scheme and host, gives empty paths a ``/``, drops the
    fragment and removes tracking query parameters. Trailing slashes on
    non-root paths are kept, since servers may treat them as distinct.
    """
    parsed = urlparse(url)
    query = "&".join(
        segment for segment in parsed.query.split("&") if segment and not _is_tracking(segment)
    )
    return urlunparse(
        (
            parsed.scheme.lower(),
            parsed.netloc.lower(),
            parsed.path or "/",
            parsed.params,
            query,
            "",
        )
    )


def same_host(base_url: str, url: str) -> bool:
    """True if url is an http(s) URL on the same hostname as base_url."""
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https"):
        return False
    return (parsed.hostname or "") == (urlparse(base_url).hostname or "")


# =============================================================================
# Link discovery
# =============================================================================


def extract_links(base_url: str, html: str) -> List[str]:
    """Extract same-host page links from HTML.

    Skips non-http schemes, ``rel="nofollow"`` anchors and other hosts;
    strips fragments and tracking parameters; de-duplicates preserving
    document order.

    Args:
        base_url: URL the HTML was fetched from (resolves relative links)
        html: Raw HTML content

    Returns:
        List of normalized absolute URLs
    """
    if not html:
        return []
    soup = BeautifulSoup(html, "html.parser")
    seen: set[str] = set()
    out: List[str] = []

    for anchor in soup.find_all(["a", "area"], href=True):
        href = (anchor.get("href") or "").strip()
        if not href or href.lower().startswith(_SKIPPED_HREF_PREFIXES):
            continue

        rel = anchor.get("rel") or []
        if isinstance(rel, str):
            rel = rel.split()
        if any(r.lower() == "nofollow" for r in rel):
            continue

        try:
            absolute = urljoin(base_url, href)
        except ValueError:
            continue
        if not same_host(base_url, absolute):
            continue

        normalized = normalize_url(absolute)
        if normalized not in seen:
            seen.add(normalized)
            out.append(normalized)

    return out


def extract_sitemap_urls(xml: str, base_url: str) -> List[str]:
    """Extract page URLs from a sitemap.

    Keeps same-host ``<loc>`` entries and drops nested sitemaps and
    non-page resources (xml, pdf, zip, json, ...).
    """
    if not xml:
        return []
    seen: set[str] = set()
    out: List[str] = []

    for raw in _LOC_RE.findall(xml):
        try:
            absolute = urljoin(base_url, raw.strip())
        except ValueError:
            continue
        if not same_host(base_url, absolute):
            continue
        if "sitemap" in urlparse(absolute).path.lower():
            continue
        if has_non_page_extension(absolute):
            continue
        normalized = normalize_url(absolute)
        if normalized not in seen:
            seen.add(normalized)
            out.append(normalized)

    return out


# =============================================================================
# Page content
# =============================================================================


def extract_title(html: str) -> str | None:
    """Return the whitespace-collapsed ``<title>`` text, or None."""
    if not html:
        return None
    soup = BeautifulSoup(html, "html.parser")
    if soup.title is None:
        return None
    title = _WHITESPACE_RE.sub(" ", soup.title.get_text()).strip()
    return title or None


def extract_meta(html: str) -> tuple[str | None, str | None]:
    """Extract (title, description) from page metadata."""
    if not html:
        return None, None
    soup = BeautifulSoup(html, "html.parser")

    title = None
    if soup.title is not None:
        title = _WHITESPACE_RE.sub(" ", soup.title.get_text()).strip() or None

    description = None
    tag = soup.find("meta", attrs={"name": re.compile(r"^description$", re.I)})
    if tag is not None and tag.get("content"):
        description = tag["content"].strip() or None

    return title, description


def extract_readable_text(html: str) -> str:
    """Strip non-content markup and return plain text.

    Entities are decoded by the parser. Runs of spaces collapse to one,
    and runs of blank lines collapse to a single blank line.
    """
    if not html:
        return ""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["script", "style", "noscript", "template", "svg", "nav", "footer"]):
        tag.decompose()

    text = soup.get_text("\n").replace("\xa0", " ")
    lines = [re.sub(r"[ \t\f\v]+", " ", line).strip() for line in text.splitlines()]

    out: List[str] = []
    blank_run = 0
    for line in lines:
        if not line:
            blank_run += 1
            if blank_run == 1 and out:
                out.append("")
            continue
        blank_run = 0
        out.append(line)
    return "\n".join(out).strip()


def is_thin_content(text: str) -> bool:
    """True if text is too short to be worth keeping."""
    if not text:
        return True
    return len(_WHITESPACE_RE.sub(" ", text).strip()) < MIN_READABLE_TEXT_CHARS


# =============================================================================
# Classification
# =============================================================================

_PRODUCT_URL_RE = re.compile(r"product|produto|shop|loja|buy|comprar|cart|sku|item", re.I)
_PRODUCT_TITLE_RE = re.compile(r"produto|comprar|pre[çc]o|tamanho|\bcor\b", re.I)
_FAQ_URL_RE = re.compile(r"faq|perguntas-?frequentes|ajuda|suporte", re.I)
_FAQ_TITLE_RE = re.compile(r"faq|perguntas\s+frequentes|ajuda", re.I)
_BLOG_URL_RE = re.compile(r"blog|noticias|news|artigos|articles|post", re.I)
_BLOG_TITLE_RE = re.compile(r"blog|not[íi]cias|artigos|news", re.I)


def _iter_json_ld(html: str):
    soup = BeautifulSoup(html, "html.parser")
    for script in soup.find_all(
        "script", attrs={"type": re.compile(r"application/ld\+json", re.I)}
    ):
        try:
            data = json.loads(script.string or script.get_text() or "")
        except ValueError:
            continue
        stack = data if isinstance(data, list) else [data]
        while stack:
            item = stack.pop()
            if isinstance(item, list):
                stack.extend(item)
            elif isinstance(item, dict):
                yield item
                graph = item.get("@graph")
                if isinstance(graph, list):
                    stack.extend(graph)


def has_product_structured_data(html: str | None) -> bool:
    """True if a JSON-LD block declares a Product-typed entity."""
    if not html or "ld+json" not in html.lower():
        return False
    for item in _iter_json_ld(html):
        types = item.get("@type", "")
        types = types if isinstance(types, list) else [types]
        if any("product" in str(t).lower() for t in types):
            return True
    return False


KindRule = tuple[Callable[[str, str, str | None], bool], str]

KIND_RULES: List[KindRule] = [
    (
        lambda url, title, html: bool(
            _PRODUCT_URL_RE.search(url) or _PRODUCT_TITLE_RE.search(title)
        )
        or has_product_structured_data(html),
        "product",
    ),
    (
        lambda url, title, html: bool(
            _FAQ_URL_RE.search(url) or _FAQ_TITLE_RE.search(title)
        ),
        "faq",
    ),
    (
        lambda url, title, html: bool(
            _BLOG_URL_RE.search(url) or _BLOG_TITLE_RE.search(title)
        ),
        "blog",
    ),
]


def classify_kind(url: str, title: str | None = None, html: str | None = None) -> str:
    """Classify a page as product, faq, blog or page (first matching rule wins)."""
    url_lower = url.lower()
    title_lower = (title or "").lower()
    for predicate, kind in KIND_RULES:
        if predicate(url_lower, title_lower, html):
            return kind
    return "page"


LINK_PRIORITY_RULES: List[tuple[re.Pattern, int]] = [
    (re.compile(r"produto|product|loja|shop|item|sku", re.I), 30),
    (re.compile(r"categoria|category|catalogo|catalog|collection|produtos|products", re.I), 20),
    (re.compile(r"faq|perguntas|ajuda|suporte", re.I), 8),
    (re.compile(r"sitemap|/page/", re.I), -50),
    (re.compile(r"\.(xml|xsl|gz|pdf|zip|json)$", re.I), -100),
]


def compute_link_priority(url: str) -> int:
    """Crawl-order weight for a link. Only orders the frontier, never excludes."""
    try:
        path = urlparse(url).path.lower()
    except ValueError:
        return 0
    return sum(weight for pattern, weight in LINK_PRIORITY_RULES if pattern.search(path))


# =============================================================================
# Soft-404 detection
# =============================================================================

INVALID_PAGE_RULES: List[tuple[re.Pattern, str]] = [
    (re.compile(r"\b404\b"), "not_found"),
    (re.compile(r"p[áa]gina n[ãa]o encontrada"), "not_found"),
    (re.compile(r"p[áa]gina inexistente"), "not_found"),
    (re.compile(r"not found"), "not_found"),
    (
        re.compile(r"<meta[^>]+name=[\"']robots[\"'][^>]*content=[\"'][^\"']*noindex"),
        "noindex",
    ),
    (re.compile(r"x-robots-tag\s*:\s*noindex"), "noindex"),
    (
        re.compile(
            r"sem\s+resultados|nenhum\s+resultado|nenhum\s+produto"
            r"|no\s+products\s+found|no\s+results"
        ),
        "no_results",
    ),
]


def invalid_reason(html: str) -> str | None:
    """Return why a page body should be discarded, or None if it looks fine."""
    lower = (html or "").lower()
    for pattern, reason in INVALID_PAGE_RULES:
        if pattern.search(lower):
            return reason
    return None


def looks_invalid(html: str) -> bool:
    """True for soft-404s, noindex pages and empty result listings."""
    return invalid_reason(html) is not None
