from __future__ import annotations

import asyncio
from collections.abc import Mapping
from typing import Any

from ..errors import ScraperError
from ..models import ScrapedRecord
from ..sanitize import clean_records
from .base import CrawlerCore
from .registry import register


@register
class StubCrawler:
    """
    A zero-network crawler used for tests and dry-runs.

    params:
      - items: list[{title, url, company?, location?, description?, requirements?, published_date?}]
      - delay_seconds: float   # simulated latency, useful to exercise source timeouts
      - fail: str              # raise ScraperError with this message after the delay

    Items go through the same validation/sanitization as real listings.
    """

    kind = "stub"

    def __init__(
        self,
        core: CrawlerCore | None = None,
        *,
        items: list[Mapping[str, Any]] | None = None,
        delay_seconds: float = 0.0,
        fail: str | None = None,
        source: str | None = None,
    ) -> None:
        self._items = [dict(i) for i in (items or []) if isinstance(i, Mapping)]
        self._delay = float(delay_seconds or 0)
        self._fail = fail
        self._source = source or self.kind

    async def scrape(self) -> list[ScrapedRecord]:
        return await self._produce(self._items)

    async def scrape_with_filters(
        self, keywords: str | None = None, location: str | None = None
    ) -> list[ScrapedRecord]:
        kw = (keywords or "").strip().lower()
        loc = (location or "").strip().lower()
        selected = [
            item
            for item in self._items
            if (not kw or kw in f"{item.get('title', '')} {item.get('description', '')}".lower())
            and (not loc or loc in str(item.get("location", "")).lower())
        ]
        return await self._produce(selected)

    async def _produce(self, items: list[dict[str, Any]]) -> list[ScrapedRecord]:
        if self._delay:
            await asyncio.sleep(self._delay)
        if self._fail:
            raise ScraperError(self._fail)
        return clean_records(items, source=self._source)
