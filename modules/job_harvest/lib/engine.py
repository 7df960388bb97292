"""
Cycle engine: fan out all crawlers, dedupe, persist, notify.

Features:
  - Concurrent per-source scrapes on one event loop, each bounded by its own timeout
  - Per-source failure containment (a failed source contributes zero records)
  - Cross-source fuzzy dedup before persistence
  - Idempotent upsert by URL; only newly created IDs are passed to the notifier
  - Dependency injection for testability (`get_crawler`, `store`, `notifier`, `runtime`)
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable, Mapping, Sequence
from typing import Protocol

from . import logging_bridge
from .browser import BrowserRuntime
from .config import DEFAULT_TIMEOUT_SEC, Settings, SourceSpec
from .db import JobStore
from .dedupe import dedupe
from .extractor import PageExtractor
from .models import CycleSummary, ScrapedRecord, ScrapeResult, UpsertResult
from .notify import ActivityLogNotifier, Notifier
from .scrapers.base import CrawlerCore, SiteCrawler
from .utils import elapsed_ms


class JobRepository(Protocol):
    def upsert_job_by_url(self, record: ScrapedRecord) -> UpsertResult: ...


CrawlerFactory = Callable[[SourceSpec, CrawlerCore], SiteCrawler]


# =============================================================================
# DEFAULT CRAWLER FACTORY (PRODUCTION)
# =============================================================================
def _default_get_crawler(spec: SourceSpec, core: CrawlerCore) -> SiteCrawler:
    from .scrapers.registry import create

    return create(spec, core)


# =============================================================================
# ONE SOURCE
# =============================================================================
async def _run_source(
    source: str,
    crawler: SiteCrawler,
    *,
    keywords: str | None,
    location: str | None,
    timeout: float,
) -> ScrapeResult:
    """Never raises: timeouts and crawler errors become a failed ScrapeResult."""
    t0 = time.perf_counter_ns()
    try:
        if keywords or location:
            pending = crawler.scrape_with_filters(keywords, location)
        else:
            pending = crawler.scrape()
        records = await asyncio.wait_for(pending, timeout=timeout)
    except asyncio.TimeoutError:
        logging_bridge.error(
            {
                "component": "job_harvest.engine",
                "op": "source_timeout",
                "source": source,
                "timeout_sec": timeout,
            }
        )
        return ScrapeResult(
            source=source,
            errors=[f"timed out after {timeout:g}s"],
            timed_out=True,
            duration_ms=elapsed_ms(t0, time.perf_counter_ns()),
        )
    except Exception as e:
        logging_bridge.error(
            {
                "component": "job_harvest.engine",
                "op": "source_run",
                "source": source,
                "error": repr(e),
            }
        )
        return ScrapeResult(source=source, errors=[repr(e)], duration_ms=elapsed_ms(t0, time.perf_counter_ns()))

    return ScrapeResult(
        source=source,
        items=[r.with_source(source) for r in records],
        duration_ms=elapsed_ms(t0, time.perf_counter_ns()),
    )


# =============================================================================
# ONE CYCLE
# =============================================================================
async def run_cycle(
    crawlers: Mapping[str, SiteCrawler] | Sequence[SiteCrawler],
    store: JobRepository,
    notifier: Notifier | None,
    *,
    keywords: str | None = None,
    location: str | None = None,
    source_timeouts: Mapping[str, float] | None = None,
    default_timeout_sec: float = DEFAULT_TIMEOUT_SEC,
) -> CycleSummary:
    """
    Fan out -> fan in -> dedupe -> upsert -> notify.

    `crawlers` is either {source_label: crawler} or a sequence (labels = crawler.kind).
    Dedup starts only after every source has settled; notification only after
    every upsert has been attempted. Upsert and notify failures are logged and
    never undo persisted rows.
    """
    start_ns = time.perf_counter_ns()
    if isinstance(crawlers, Mapping):
        labelled = list(crawlers.items())
    else:
        labelled = [(c.kind, c) for c in crawlers]
    timeouts = dict(source_timeouts or {})

    # -------------------------------------------------------------------------
    # FAN OUT / FAN IN
    # -------------------------------------------------------------------------
    results: list[ScrapeResult] = await asyncio.gather(
        *(
            _run_source(
                label,
                crawler,
                keywords=keywords,
                location=location,
                timeout=float(timeouts.get(label, default_timeout_sec)),
            )
            for label, crawler in labelled
        )
    )

    scraped: list[ScrapedRecord] = []
    summary = CycleSummary(keywords=keywords, location=location)
    durations_ms: dict[str, int] = {}
    for res in results:
        summary.by_source[res.source] = len(res.items)
        durations_ms[res.source] = res.duration_ms
        if res.failed:
            summary.failed_sources.append(res.source)
        scraped.extend(res.items)
    summary.total_scraped = len(scraped)

    # -------------------------------------------------------------------------
    # DEDUPE + PERSIST
    # -------------------------------------------------------------------------
    unique = dedupe(scraped)
    summary.total_unique = len(unique)

    for record in unique:
        try:
            outcome = await asyncio.to_thread(store.upsert_job_by_url, record)
        except Exception as e:
            logging_bridge.error(
                {
                    "component": "job_harvest.engine",
                    "op": "upsert",
                    "source": record.source,
                    "url": record.url,
                    "error": repr(e),
                }
            )
            continue
        summary.saved_count += 1
        if outcome.is_new:
            summary.new_ids.append(outcome.id)

    # -------------------------------------------------------------------------
    # NOTIFY (best effort, after all upserts)
    # -------------------------------------------------------------------------
    if summary.new_ids and notifier is not None:
        try:
            await notifier.notify_about_new_records(list(summary.new_ids))
        except Exception as e:
            logging_bridge.error(
                {
                    "component": "job_harvest.engine",
                    "op": "notify",
                    "new_count": summary.new_count,
                    "error": repr(e),
                }
            )

    summary.duration_ms = elapsed_ms(start_ns, time.perf_counter_ns())

    # -------------------------------------------------------------------------
    # SUMMARY LOG (always emitted)
    # -------------------------------------------------------------------------
    logging_bridge.activity(
        {
            "component": "job_harvest.engine",
            "op": "summary",
            "keywords": keywords,
            "location": location,
            "found_by_source": summary.by_source,
            "failed_sources": summary.failed_sources,
            "total_scraped": summary.total_scraped,
            "total_unique": summary.total_unique,
            "saved_count": summary.saved_count,
            "new_count": summary.new_count,
            "durations_ms": durations_ms,
            "total_ms": summary.duration_ms,
        }
    )
    return summary


# =============================================================================
# SETTINGS-DRIVEN ENTRY
# =============================================================================
async def run_once(
    settings: Settings,
    *,
    keywords: str | None = None,
    location: str | None = None,
    runtime: BrowserRuntime | None = None,
    get_crawler: CrawlerFactory | None = None,
    store: JobRepository | None = None,
    notifier: Notifier | None = None,
) -> CycleSummary:
    """
    Build crawlers/store/notifier from `settings` and run one cycle.

    The browser runtime is borrowed, never closed here; the caller owns its lifetime.
    """
    specs = settings.selected_sources()

    if settings.skip_network:
        logging_bridge.activity(
            {
                "component": "job_harvest.engine",
                "op": "skipped_cycle",
                "reason": "skip_network",
                "sources": [s.source for s in specs],
            }
        )
        return CycleSummary(keywords=keywords, location=location)

    owns_runtime = runtime is None
    runtime = runtime or BrowserRuntime(headless=settings.headless)
    await runtime.drop_if_disconnected()
    core = CrawlerCore(PageExtractor(runtime, diagnostics=settings.diagnostics))
    factory = get_crawler or _default_get_crawler
    crawlers = {spec.source: factory(spec, core) for spec in specs}

    if store is None:
        store = await asyncio.to_thread(JobStore, settings.sqlite_path)
    if notifier is None and settings.notifications_enabled:
        notifier = ActivityLogNotifier()

    try:
        return await run_cycle(
            crawlers,
            store,
            notifier,
            keywords=keywords,
            location=location,
            source_timeouts=settings.source_timeouts,
            default_timeout_sec=settings.default_timeout_sec,
        )
    finally:
        if owns_runtime:
            await runtime.force_close()
