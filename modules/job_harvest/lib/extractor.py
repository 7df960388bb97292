"""
Rendered-page extraction shared by every crawler.

Per attempt: navigate -> await dynamic content -> (optional page preparation,
e.g. a search form) -> wait for containers -> parse the rendered HTML with
BeautifulSoup -> raw listing dicts. Validation and sanitization happen in the
crawler core, not here.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any
from urllib.parse import urljoin

from bs4 import BeautifulSoup
from bs4.element import Tag

from . import logging_bridge
from .browser import BrowserRuntime
from .config import SiteConfig
from .errors import NavigationError

LOG = logging.getLogger(__name__)

_PARSER = "html5lib"

CONTENT_PROBE_SELECTOR = 'article, [data-testid*="ad"], [class*="ad"], [class*="job"], [class*="listing"]'

FALLBACK_CONTAINER_SELECTORS: tuple[str, ...] = (
    "article",
    'div[class*="job"]',
    'div[class*="ad"]',
    'div[class*="listing"]',
    '[data-testid*="job"]',
    "div.ads-unit",
    ".job-item",
    ".job-card",
)

FALLBACK_FIELD_SELECTORS: dict[str, tuple[str, ...]] = {
    "title": ("h1", "h2", "h3", "h4", '[class*="title"]', 'a[href*="job"]', 'a[href*="stilling"]'),
    "company": ('[class*="company"]', '[class*="employer"]'),
    "location": ('[class*="location"]', '[class*="place"]'),
    "link": ('a[href*="stilling"]', 'a[href*="job"]', "a[href]"),
    "description": ('[class*="description"]', '[class*="summary"]', "p"),
}

JOB_KEYWORDS = ("stilling", "jobb", "søk", "annonse")
BLOCK_KEYWORDS = ("captcha", "bot", "blocked")

PagePreparer = Callable[[Any], Awaitable[Any]]


@dataclass(frozen=True)
class ExtractorTimings:
    navigation_timeout_ms: int = 45_000
    fallback_timeout_ms: int = 30_000
    dynamic_content_delay: float = 5.0
    empty_probe_extra_delay: float = 3.0
    selector_timeout_ms: int = 8_000


# ---- Pure HTML helpers ------------------------------------------------------


def _select(root: Tag, selector: str) -> list[Tag]:
    try:
        return root.select(selector)
    except Exception:
        LOG.debug("Unsupported selector %r", selector, exc_info=True)
        return []


def locate_containers(soup: BeautifulSoup, site: SiteConfig) -> tuple[str | None, list[Tag]]:
    """First selector in [site..., generic fallbacks...] with at least one match wins."""
    for selector in (*site.container, *FALLBACK_CONTAINER_SELECTORS):
        found = _select(soup, selector)
        if found:
            return selector, found
    return None, []


def _first_text(element: Tag, selectors: tuple[str, ...]) -> str:
    for selector in selectors:
        for node in _select(element, selector):
            text = node.get_text(" ", strip=True)
            if text:
                return text
    return ""


def _first_href(element: Tag, selectors: tuple[str, ...]) -> str:
    for selector in selectors:
        for node in _select(element, selector):
            href = (node.get("href") or "").strip()
            if href and not href.startswith(("#", "javascript:", "mailto:")):
                return href
    if element.name == "a":
        return (element.get("href") or "").strip()
    return ""


def resolve_link(href: str, base_url: str) -> str:
    if not href:
        return ""
    if href.startswith(("http://", "https://")):
        return href
    return urljoin(base_url, href)


def extract_fields(element: Tag, site: SiteConfig) -> dict[str, str] | None:
    """One raw listing from one container; None without a title and a link."""
    title = _first_text(element, site.title + FALLBACK_FIELD_SELECTORS["title"])
    href = _first_href(element, site.link + FALLBACK_FIELD_SELECTORS["link"])
    if not title or not href:
        return None
    return {
        "title": title,
        "company": _first_text(element, site.company + FALLBACK_FIELD_SELECTORS["company"]),
        "location": _first_text(element, site.location + FALLBACK_FIELD_SELECTORS["location"]),
        "url": resolve_link(href, site.base_url),
        "description": _first_text(element, site.description + FALLBACK_FIELD_SELECTORS["description"]),
    }


def parse_listings(html: str, site: SiteConfig) -> list[dict[str, str]]:
    soup = BeautifulSoup(html or "", _PARSER)
    selector, containers = locate_containers(soup, site)
    if selector is None:
        LOG.warning("%s: no job containers matched", site.name)
        return []
    LOG.info("%s: found %d containers with selector %r", site.name, len(containers), selector)
    out = []
    for element in containers:
        listing = extract_fields(element, site)
        if listing is not None:
            out.append(listing)
    return out


def page_diagnostics(html: str, title: str = "") -> dict[str, Any]:
    soup = BeautifulSoup(html or "", "html.parser")
    text = soup.get_text(" ", strip=True).lower()
    return {
        "page_title": title,
        "content_length": len(html or ""),
        "article_count": len(soup.find_all("article")),
        "has_job_keywords": any(k in text for k in JOB_KEYWORDS),
        "is_blocked": any(k in text for k in BLOCK_KEYWORDS),
    }


# ---- Browser-driven extraction ----------------------------------------------


class PageExtractor:
    def __init__(
        self,
        runtime: BrowserRuntime,
        *,
        timings: ExtractorTimings | None = None,
        diagnostics: bool = True,
    ) -> None:
        self._runtime = runtime
        self._timings = timings or ExtractorTimings()
        self._diagnostics = diagnostics

    async def extract(self, site: SiteConfig, *, prepare: PagePreparer | None = None) -> list[dict[str, str]]:
        """
        Run one extraction attempt against site.base_url.
        Raises NavigationError when the page cannot be loaded; an empty page is not an error.
        """
        async with self._runtime.page() as page:
            LOG.info("Scraping %s: %s", site.name, site.base_url)
            await self.navigate(page, site.base_url, site.name)
            await self.await_dynamic_content(page, site.name)
            if prepare is not None:
                await prepare(page)
            await self.wait_for_containers(page, site)
            html = await page.content()
            listings = parse_listings(html, site)
            if not listings and self._diagnostics:
                await self._report_empty(page, site, html)
        LOG.info("%s: extracted %d raw listings", site.name, len(listings))
        if site.rate_limit_seconds > 0:
            await asyncio.sleep(site.rate_limit_seconds)
        return listings

    async def navigate(self, page: Any, url: str, name: str) -> None:
        t = self._timings
        try:
            await page.goto(url, wait_until="networkidle", timeout=t.navigation_timeout_ms)
            return
        except Exception as e:
            LOG.warning("%s: networkidle load failed (%s); retrying with 'load'", name, e)
        try:
            await page.goto(url, wait_until="load", timeout=t.fallback_timeout_ms)
        except Exception as e:
            raise NavigationError(name, url, e) from e
        LOG.info("%s: page loaded with fallback strategy", name)

    async def await_dynamic_content(self, page: Any, name: str) -> None:
        t = self._timings
        await asyncio.sleep(t.dynamic_content_delay)
        try:
            found = await page.query_selector_all(CONTENT_PROBE_SELECTOR)
        except Exception:
            LOG.debug("%s: content probe failed", name, exc_info=True)
            return
        if not found:
            LOG.info("%s: no content yet, waiting %.1fs more", name, t.empty_probe_extra_delay)
            await asyncio.sleep(t.empty_probe_extra_delay)

    async def wait_for_containers(self, page: Any, site: SiteConfig) -> bool:
        selector = ", ".join((*site.container, *FALLBACK_CONTAINER_SELECTORS))
        try:
            await page.wait_for_selector(selector, state="attached", timeout=self._timings.selector_timeout_ms)
            return True
        except Exception:
            LOG.warning("%s: no job container appeared, continuing with current DOM", site.name)
            return False

    async def _report_empty(self, page: Any, site: SiteConfig, html: str) -> None:
        try:
            title = await page.title()
        except Exception:
            LOG.debug("%s: could not read page title", site.name, exc_info=True)
            title = ""
        report = page_diagnostics(html, title)
        LOG.warning("%s: zero listings extracted; page diagnostics %s", site.name, report)
        logging_bridge.activity(
            {
                "component": "job_harvest.extractor",
                "op": "empty_page",
                "source": site.name,
                "url": site.base_url,
                **report,
            }
        )
