"""robots.txt interpretation.

Only a global kill-switch is enforced: a ``User-agent: *`` group holding
``Disallow: /`` with no ``Allow`` rule disables crawling of the whole site.
Path-level rules are not enforced. Declared ``Sitemap:`` lines are
collected for seeding.
"""

from dataclasses import dataclass, field
from typing import List
from urllib.parse import urljoin

import logfire

from guide_crawler.constants import ROBOTS_TIMEOUT_SECONDS
from guide_crawler.services.content_extractor import same_host
from guide_crawler.services.fetcher import PageFetcher


@dataclass(frozen=True)
class RobotsPolicy:
    disallow_all: bool = False
    sitemaps: List[str] = field(default_factory=list)


def parse_robots(raw_text: str, base_url: str) -> RobotsPolicy:
    """Parse robots.txt into a RobotsPolicy.

    Consecutive ``User-agent`` lines form one group; the group applies to
    us when one of them is ``*``.
    """
    star_disallow_root = False
    star_has_allow = False
    sitemaps: List[str] = []

    group_is_star = False
    in_agent_lines = False

    for line in (raw_text or "").splitlines():
        line = line.split("#", 1)[0].strip()
        if not line:
            continue

        key, _, value = line.partition(":")
        key = key.strip().lower()
        value = value.strip()

        if key == "sitemap":
            if value:
                sitemap_url = urljoin(base_url, value)
                if same_host(base_url, sitemap_url) and sitemap_url not in sitemaps:
                    sitemaps.append(sitemap_url)
            continue

        if key == "user-agent":
            if not in_agent_lines:
                group_is_star = False
            in_agent_lines = True
            group_is_star = group_is_star or value == "*"
            continue

        in_agent_lines = False
        if not group_is_star:
            continue

        if key == "disallow" and value == "/":
            star_disallow_root = True
        elif key == "allow" and value.startswith("/"):
            star_has_allow = True

    return RobotsPolicy(
        disallow_all=star_disallow_root and not star_has_allow,
        sitemaps=sitemaps,
    )


class RobotsGate:
    """Fetch and interpret a site's robots.txt. Fails open."""

    def __init__(self, fetcher: PageFetcher, timeout: float = ROBOTS_TIMEOUT_SECONDS):
        self._fetcher = fetcher
        self._timeout = timeout

    async def read(self, origin: str) -> RobotsPolicy:
        """Fetch {origin}/robots.txt; an unreachable file yields a permissive policy."""
        text = await self._fetcher.fetch_text(f"{origin}/robots.txt", self._timeout)
        if not text:
            return RobotsPolicy()
        policy = parse_robots(text, origin)
        logfire.debug(
            "robots.txt read",
            origin=origin,
            disallow_all=policy.disallow_all,
            sitemap_count=len(policy.sitemaps),
        )
        return policy

    async def check_disallowed(self, origin: str) -> bool:
        return (await self.read(origin)).disallow_all
