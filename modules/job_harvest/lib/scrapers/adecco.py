from __future__ import annotations

from ..config import SiteConfig
from ..filters import UrlQueryFilter
from ..models import ScrapedRecord
from .base import CrawlerCore, with_rate_limit
from .registry import register

ADECCO_SITE = SiteConfig(
    name="adecco",
    base_url="https://www.adecco.no/jobb",
    container=(
        "div.job-item",
        "article.job-card",
        "div.job-listing",
        'div[class*="job"]',
        'article[class*="job"]',
        'div[class*="vacancy"]',
    ),
    title=("h2.job-title", "h3.job-title", "a.job-title", "h2", "h3", 'a[class*="title"]'),
    company=(
        "div.job-company",
        "span.company-name",
        'div[class*="company"]',
        'span[class*="employer"]',
    ),
    location=(
        "div.job-location",
        "span.location",
        'div[class*="location"]',
        'div[class*="city"]',
        'div[class*="place"]',
    ),
    link=("a.job-link", 'a[href*="/jobb/"]', 'a[href*="job"]', 'a[href*="stilling"]'),
    description=(
        "div.job-description",
        "p.job-summary",
        'div[class*="description"]',
        'p[class*="summary"]',
    ),
)


@register
class AdeccoCrawler:
    """adecco.no; filters go into the URL as ?q=..&location=.."""

    kind = "adecco"

    def __init__(self, core: CrawlerCore, *, retries: int = 2, rate_limit_seconds: float | None = None) -> None:
        self._core = core
        self._retries = int(retries)
        self._site = with_rate_limit(ADECCO_SITE, rate_limit_seconds)
        self._filter = UrlQueryFilter()

    async def scrape(self) -> list[ScrapedRecord]:
        return await self._core.run(self._site, source=self.kind, retries=self._retries)

    async def scrape_with_filters(
        self, keywords: str | None = None, location: str | None = None
    ) -> list[ScrapedRecord]:
        url = self._filter.build_url(self._site.base_url, keywords, location)
        return await self._core.run(self._site.with_url(url), source=self.kind, retries=self._retries)
