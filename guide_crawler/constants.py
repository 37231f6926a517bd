"""Application-wide constants.

This module centralizes all magic numbers and configuration constants
to ensure a single source of truth and easier maintenance.

Constants are organized by category. Crawl request bounds are expressed
as (minimum, default, maximum) triples and clamped by the request model.
"""

# =============================================================================
# Crawl Request Bounds
# =============================================================================

MAX_PAGES_BOUNDS = (1, 40, 200)
MAX_DEPTH_BOUNDS = (0, 2, 5)
MAX_CONCURRENCY_BOUNDS = (1, 8, 16)
REQUEST_TIMEOUT_MS_BOUNDS = (2000, 8000, 15000)
MAX_HTML_BYTES_BOUNDS = (64_000, 250_000, 600_000)

# Sitemap seeding takes at most this many URLs per page of the crawl budget
SITEMAP_SEED_FACTOR = 3

# =============================================================================
# Content Extraction
# =============================================================================

# Readable text shorter than this (after whitespace collapse) is thin content
MIN_READABLE_TEXT_CHARS = 200

# Stored page text is truncated to this many characters
MAX_PAGE_TEXT_CHARS = 12_000

# Links with at least this priority jump to the front of the frontier
HIGH_PRIORITY_LINK_THRESHOLD = 20

# Query-string parameters removed from discovered links
TRACKING_QUERY_PARAMS = frozenset(
    (
        "utm_source",
        "utm_medium",
        "utm_campaign",
        "utm_term",
        "utm_content",
        "gclid",
        "fbclid",
    )
)

# =============================================================================
# HTTP Timeout Configuration
# =============================================================================

ROBOTS_TIMEOUT_SECONDS = 4.0
SITEMAP_TIMEOUT_SECONDS = 6.0
USER_AGENT = "Mozilla/5.0 (compatible; VirtualGuideBot/1.1; +https://virtualguide.info)"

# =============================================================================
# Crawl Result Window Cache
# =============================================================================

CRAWL_RESULT_CACHE_TTL_SECONDS = 600
CRAWL_RESULT_CACHE_MAX_ENTRIES = 50

# =============================================================================
# Cache Store
# =============================================================================

CACHE_TTL_HOURS = 4
DEFAULT_CACHE_DIR = ".scraping-cache"

# =============================================================================
# Scheduler
# =============================================================================

SCHEDULER_INTERVAL_HOURS = 4
SCHEDULER_WORKER_COUNT = 8

# Bounds used by the all-guides sweep
SWEEP_CRAWL_OPTIONS = {
    "maxPages": 40,
    "maxDepth": 2,
    "maxConcurrency": 12,
    "timeoutMs": 6000,
    "maxHtmlBytes": 180_000,
}

# Bounds used by a single-guide administrative run
GUIDE_CRAWL_OPTIONS = {
    "maxPages": 30,
    "maxDepth": 1,
    "maxConcurrency": 6,
    "timeoutMs": 5000,
    "maxHtmlBytes": 140_000,
}

# Error bodies from the HTTP crawl runner are truncated to this length
CRAWL_RUNNER_ERROR_BODY_CHARS = 180

# =============================================================================
# Site Search
# =============================================================================

SEARCH_MAX_TOKENS = 8
SEARCH_SITEMAP_CANDIDATES = 300
SEARCH_HOMEPAGE_LINKS = 200
SEARCH_TOP_CANDIDATES = 15
SEARCH_MAX_RESULTS = 5
SEARCH_MIN_CONFIDENCE = 0.6
SEARCH_HOMEPAGE_TIMEOUT_SECONDS = 6.0
SEARCH_PAGE_TIMEOUT_SECONDS = 5.0
SEARCH_VERIFY_TIMEOUT_SECONDS = 5.0
SEARCH_MAX_HTML_BYTES = 600_000

# Characters of lowercased body examined for scoring and confidence
SEARCH_SCORING_BODY_CHARS = 25_000
SEARCH_CONFIDENCE_BODY_CHARS = 20_000
