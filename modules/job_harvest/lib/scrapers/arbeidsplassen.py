from __future__ import annotations

from ..config import SiteConfig
from ..filters import FormSubmissionFilter
from ..models import ScrapedRecord
from .base import CrawlerCore, with_rate_limit
from .registry import register

ARBEIDSPLASSEN_SITE = SiteConfig(
    name="arbeidsplassen",
    base_url="https://arbeidsplassen.nav.no/stillinger",
    container=(
        'article[class*="job-card"]',
        'div[class*="job-card"]',
        'article[class*="job"]',
        'div[class*="job-listing"]',
        "article",
        'div[data-testid*="job"]',
    ),
    title=(
        'h2[class*="title"]',
        'h3[class*="title"]',
        "h2",
        "h3",
        'a[class*="title"]',
        'a[href*="stilling"]',
    ),
    company=(
        'div[class*="company"]',
        'span[class*="company"]',
        'div[class*="employer"]',
        'span[class*="employer"]',
    ),
    location=(
        'div[class*="location"]',
        'span[class*="location"]',
        'div[class*="place"]',
        'span[class*="place"]',
    ),
    link=('a[href*="stilling"]', 'a[href*="/job"]', 'a[class*="job-link"]', "a[href]"),
    description=(
        'div[class*="description"]',
        'p[class*="description"]',
        'div[class*="summary"]',
        "p",
    ),
)


@register
class ArbeidsplassenCrawler:
    """arbeidsplassen.nav.no (NAV); filters are typed into the site's search form."""

    kind = "arbeidsplassen"

    def __init__(self, core: CrawlerCore, *, retries: int = 2, rate_limit_seconds: float | None = None) -> None:
        self._core = core
        self._retries = int(retries)
        self._site = with_rate_limit(ARBEIDSPLASSEN_SITE, rate_limit_seconds)
        self._form = FormSubmissionFilter()

    async def scrape(self) -> list[ScrapedRecord]:
        return await self._core.run(self._site, source=self.kind, retries=self._retries)

    async def scrape_with_filters(
        self, keywords: str | None = None, location: str | None = None
    ) -> list[ScrapedRecord]:
        if not (keywords or location):
            return await self.scrape()
        return await self._core.run(
            self._site,
            source=self.kind,
            retries=self._retries,
            prepare=self._form.preparer(keywords, location),
        )
