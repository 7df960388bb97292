from __future__ import annotations

from ..config import SiteConfig
from ..filters import UrlQueryFilter
from ..models import ScrapedRecord
from .base import CrawlerCore, with_rate_limit
from .registry import register

KARRIERE_SITE = SiteConfig(
    name="karriere",
    base_url="https://www.karriere.no/jobb",
    container=(
        'article[class*="job"]',
        'li[class*="job"]',
        'div[class*="job-card"]',
        'div[class*="vacancy"]',
    ),
    title=('h2[class*="title"]', 'h3[class*="title"]', "h2", "h3", 'a[class*="title"]'),
    company=('[class*="company"]', '[class*="employer"]', '[class*="arbeidsgiver"]'),
    location=('[class*="location"]', '[class*="sted"]', '[class*="place"]'),
    link=('a[href*="/jobb/"]', 'a[href*="stilling"]', "a[href]"),
    description=('[class*="description"]', '[class*="ingress"]', "p"),
)


@register
class KarriereCrawler:
    """karriere.no; filters go into the URL as ?q=..&sted=.."""

    kind = "karriere"

    def __init__(self, core: CrawlerCore, *, retries: int = 1, rate_limit_seconds: float | None = None) -> None:
        self._core = core
        self._retries = int(retries)
        self._site = with_rate_limit(KARRIERE_SITE, rate_limit_seconds)
        self._filter = UrlQueryFilter(location_param="sted")

    async def scrape(self) -> list[ScrapedRecord]:
        return await self._core.run(self._site, source=self.kind, retries=self._retries)

    async def scrape_with_filters(
        self, keywords: str | None = None, location: str | None = None
    ) -> list[ScrapedRecord]:
        url = self._filter.build_url(self._site.base_url, keywords, location)
        return await self._core.run(self._site.with_url(url), source=self.kind, retries=self._retries)
