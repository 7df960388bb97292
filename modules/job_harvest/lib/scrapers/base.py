from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import replace
from typing import Any, Protocol, runtime_checkable

from .. import logging_bridge
from ..config import SiteConfig
from ..extractor import PageExtractor, PagePreparer
from ..models import ScrapedRecord
from ..retry import RetryPolicy, is_retryable_error, run_with_retry
from ..sanitize import clean_records

LOG = logging.getLogger(__name__)


def with_rate_limit(site: SiteConfig, rate_limit_seconds: float | None) -> SiteConfig:
    if rate_limit_seconds is None:
        return site
    return replace(site, rate_limit_seconds=float(rate_limit_seconds))


@runtime_checkable
class SiteCrawler(Protocol):
    """
    Capability every source crawler provides.

    Contract:
      - kind is a stable registry key, also stamped on records ("finn.no", ...).
      - scrape()/scrape_with_filters() return validated, sanitized records and
        never raise for site failures; after retries they return [].
      - No persistence, notification or global state.
    """

    kind: str

    async def scrape(self) -> list[ScrapedRecord]: ...

    async def scrape_with_filters(
        self, keywords: str | None = None, location: str | None = None
    ) -> list[ScrapedRecord]: ...


class CrawlerCore:
    """
    Shared extraction -> validation -> sanitization pipeline with retry.
    Crawlers hold one and delegate to run(); they do not inherit from it.
    """

    def __init__(
        self,
        extractor: PageExtractor,
        *,
        sleep: Callable[[float], Awaitable[Any]] | None = None,
    ) -> None:
        self._extractor = extractor
        self._sleep = sleep

    async def run(
        self,
        site: SiteConfig,
        *,
        source: str,
        retries: int,
        prepare: PagePreparer | None = None,
    ) -> list[ScrapedRecord]:
        async def _attempt() -> list[ScrapedRecord]:
            raw = await self._extractor.extract(site, prepare=prepare)
            return clean_records(raw, source=source)

        try:
            records = await run_with_retry(_attempt, RetryPolicy(retries=retries), sleep=self._sleep)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            wording = "All retries failed" if is_retryable_error(e) else "Non-retryable failure"
            LOG.error("%s for %s (%d attempt(s)): %r", wording, source, retries + 1, e)
            logging_bridge.error(
                {
                    "component": "job_harvest.scraper",
                    "op": "scrape",
                    "source": source,
                    "url": site.base_url,
                    "attempts": retries + 1,
                    "retryable": is_retryable_error(e),
                    "error": repr(e),
                }
            )
            return []
        LOG.info("%s: %d valid records from %s", source, len(records), site.base_url)
        return records
