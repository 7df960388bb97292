from __future__ import annotations

import logging

from ..config import SiteConfig
from ..filters import UrlQueryFilter
from ..models import ScrapedRecord
from .base import CrawlerCore, with_rate_limit
from .registry import register

LOG = logging.getLogger(__name__)

BROWSE_URL = "https://www.finn.no/job/fulltime/browse.html"
SEARCH_URL = "https://www.finn.no/job/fulltime/search.html"

FINN_SITE = SiteConfig(
    name="finn.no",
    base_url=BROWSE_URL,
    container=(
        'article[data-testid="ad-item"]',
        "article.ads__unit",
        'article[class*="ads__unit"]',
        "article.ads-unit",
    ),
    title=(
        "a.ads__unit__link h2",
        'a[class*="ads__unit__link"] h2',
        "h2 a",
        'a[class*="title"]',
    ),
    company=(
        'div[class*="ads__unit__content__subtitle"]',
        'div[class*="company"]',
        'span[class*="company"]',
    ),
    location=(
        'div[class*="ads__unit__content__subtitle"]',
        'div[class*="location"]',
        'span[class*="location"]',
    ),
    link=(
        "a.ads__unit__link",
        'a[href*="/job/fulltime/ad.html"]',
        'a[href*="/job/fulltime/ad/"]',
        'a[data-testid="ad-item-link"]',
    ),
    description=(
        'div[class*="ads__unit__content__details"]',
        'div[class*="description"]',
        'p[class*="summary"]',
    ),
)

# finn.no municipality codes for the location= parameter.
LOCATION_CODES = {
    "oslo": "0.20061",
    "bergen": "0.20012",
    "trondheim": "0.20016",
    "stavanger": "0.20014",
    "drammen": "0.20020",
    "tromsø": "0.20018",
    "kristiansand": "0.20015",
    "ålesund": "0.20013",
}


@register
class FinnCrawler:
    """
    finn.no full-time jobs.

    Filtered runs walk a fallback chain until one yields records:
      1. browse.html?q=..&location=..      (retries: `retries`)
      2. search.html with the same params  (1 retry)
      3. browse.html with keywords only, when a location code was used (1 retry)
    """

    kind = "finn.no"

    def __init__(self, core: CrawlerCore, *, retries: int = 2, rate_limit_seconds: float | None = None) -> None:
        self._core = core
        self._retries = int(retries)
        self._site = with_rate_limit(FINN_SITE, rate_limit_seconds)
        self._filter = UrlQueryFilter(location_codes=LOCATION_CODES)

    async def scrape(self) -> list[ScrapedRecord]:
        return await self._core.run(self._site, source=self.kind, retries=self._retries)

    async def scrape_with_filters(
        self, keywords: str | None = None, location: str | None = None
    ) -> list[ScrapedRecord]:
        if not (keywords or location):
            return await self.scrape()

        attempts: list[tuple[str, str, int]] = [
            ("browse", self._filter.build_url(BROWSE_URL, keywords, location), self._retries),
            ("search", self._filter.build_url(SEARCH_URL, keywords, location), 1),
        ]
        if keywords and self._filter.has_location_code(location):
            attempts.append(("browse without location", self._filter.build_url(BROWSE_URL, keywords), 1))

        for label, url, retries in attempts:
            LOG.info("finn.no: trying %s URL %s", label, url)
            records = await self._core.run(self._site.with_url(url), source=self.kind, retries=retries)
            if records:
                return records
            LOG.info("finn.no: %s URL returned no records", label)
        return []
