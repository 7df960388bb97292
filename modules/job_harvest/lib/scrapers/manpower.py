from __future__ import annotations

from ..config import SiteConfig
from ..filters import FormSubmissionFilter
from ..models import ScrapedRecord
from .base import CrawlerCore, with_rate_limit
from .registry import register

MANPOWER_SITE = SiteConfig(
    name="manpower",
    base_url="https://www.manpower.no/karriere/stillinger",
    container=(
        "div.job-listing",
        "article.job-card",
        'div[class*="job"]',
        'div[class*="position"]',
        'div[class*="vacancy"]',
        "article",
        'div[data-testid*="job"]',
    ),
    title=(
        "h3.job-title",
        "h2.job-title",
        "h3",
        "h2",
        'a[class*="title"]',
        'a[href*="stilling"]',
        "h4",
    ),
    company=(
        "div.company-name",
        'span[class*="company"]',
        'div[class*="employer"]',
        'span[class*="employer"]',
    ),
    location=(
        "div.location",
        'span[class*="location"]',
        'div[class*="place"]',
        'div[class*="city"]',
        'span[class*="city"]',
    ),
    link=(
        "a.job-link",
        'a[href*="stilling"]',
        'a[href*="job"]',
        'a[href*="/karriere/"]',
        'a[href*="/job"]',
    ),
    description=("div.job-description", 'p[class*="description"]', 'div[class*="summary"]', "p"),
)


@register
class ManpowerCrawler:
    """manpower.no; filters are typed into the site's search form."""

    kind = "manpower"

    def __init__(self, core: CrawlerCore, *, retries: int = 2, rate_limit_seconds: float | None = None) -> None:
        self._core = core
        self._retries = int(retries)
        self._site = with_rate_limit(MANPOWER_SITE, rate_limit_seconds)
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
