"""
Keyword/location filter strategies.

UrlQueryFilter   - encode the filters into the listing URL.
FormSubmissionFilter - type the filters into the site's own search form.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import parse_qsl, quote, urlencode, urlsplit, urlunsplit

from .extractor import PagePreparer

LOG = logging.getLogger(__name__)

SEARCH_INPUT_SELECTORS: tuple[str, ...] = (
    'input[type="search"]',
    'input[name*="search"]',
    'input[id*="search"]',
    'input[placeholder*="søk"]',
    'input[placeholder*="search"]',
    'input[placeholder*="nøkkelord"]',
    'input[class*="search"]',
)

LOCATION_INPUT_SELECTORS: tuple[str, ...] = (
    'input[name*="location"]',
    'input[id*="location"]',
    'input[placeholder*="sted"]',
    'input[placeholder*="location"]',
    'input[placeholder*="kommune"]',
    'select[name*="location"]',
    'select[id*="location"]',
)

SUBMIT_SELECTORS: tuple[str, ...] = (
    'button[type="submit"]',
    'button[class*="search"]',
    'button[id*="search"]',
    'button[class*="søk"]',
    'input[type="submit"]',
    'button:has-text("Søk")',
    'button:has-text("Search")',
)


@dataclass(frozen=True)
class UrlQueryFilter:
    keyword_param: str = "q"
    location_param: str = "location"
    location_codes: Mapping[str, str] = field(default_factory=dict)

    def location_code(self, location: str | None) -> str | None:
        """Code of the first known place whose name occurs in the location text."""
        if not location:
            return None
        text = location.strip().lower()
        for place, code in self.location_codes.items():
            if place in text:
                return code
        return None

    def location_value(self, location: str | None) -> str | None:
        """Mapped code when the table knows the place, else the trimmed text."""
        if not location or not location.strip():
            return None
        return self.location_code(location) or location.strip()

    def has_location_code(self, location: str | None) -> bool:
        return self.location_code(location) is not None

    def build_url(self, base_url: str, keywords: str | None = None, location: str | None = None) -> str:
        parts = urlsplit(base_url)
        query = parse_qsl(parts.query, keep_blank_values=True)
        if keywords and keywords.strip():
            query.append((self.keyword_param, keywords.strip()))
        loc = self.location_value(location)
        if loc:
            query.append((self.location_param, loc))
        return urlunsplit(parts._replace(query=urlencode(query, quote_via=quote)))


@dataclass(frozen=True)
class FormSubmissionFilter:
    search_inputs: tuple[str, ...] = SEARCH_INPUT_SELECTORS
    location_inputs: tuple[str, ...] = LOCATION_INPUT_SELECTORS
    submit_controls: tuple[str, ...] = SUBMIT_SELECTORS
    input_timeout_ms: int = 5_000
    typing_delay_ms: int = 100
    settle_delay: float = 2.0
    results_delay: float = 5.0

    def preparer(self, keywords: str | None, location: str | None) -> PagePreparer:
        async def _prepare(page: Any) -> bool:
            return await self.submit(page, keywords, location)

        return _prepare

    async def submit(self, page: Any, keywords: str | None, location: str | None) -> bool:
        """
        Fill and submit the search form. Returns True when something was submitted.
        Any failure is logged and the page is left as-is for extraction.
        """
        try:
            return await self._submit(page, keywords, location)
        except Exception as e:
            LOG.warning("Could not fill search form, scraping page as-is: %s", e)
            return False

    async def _submit(self, page: Any, keywords: str | None, location: str | None) -> bool:
        search = None
        filled = False

        if keywords and keywords.strip():
            found = await _first_control(page, self.search_inputs, wait_ms=self.input_timeout_ms)
            if found is None:
                LOG.warning("No search input found on page")
            else:
                _, search = found
                await search.type(keywords.strip(), delay=self.typing_delay_ms)
                filled = True
                await asyncio.sleep(self.settle_delay)

        if location and location.strip():
            found = await _first_control(page, self.location_inputs, wait_ms=0)
            if found is None:
                LOG.info("No location input found on page")
            else:
                selector, control = found
                if selector.startswith("select"):
                    await control.select_option(label=location.strip())
                else:
                    await control.type(location.strip(), delay=self.typing_delay_ms)
                filled = True
                await asyncio.sleep(self.settle_delay)

        if not filled:
            return False

        found = await _first_control(page, self.submit_controls, wait_ms=0)
        if found is not None:
            await found[1].click()
        elif search is not None:
            LOG.info("No submit control found; pressing Enter")
            await search.press("Enter")
        else:
            LOG.warning("No submit control and no search input to press Enter in")
            return False
        await asyncio.sleep(self.results_delay)
        return True


async def _first_control(page: Any, selectors: tuple[str, ...], *, wait_ms: int) -> tuple[str, Any] | None:
    for selector in selectors:
        try:
            if wait_ms:
                await page.wait_for_selector(selector, state="attached", timeout=wait_ms)
            handle = await page.query_selector(selector)
        except Exception as e:
            LOG.debug("Selector %r not usable: %s", selector, e)
            continue
        if handle is not None:
            LOG.debug("Using form control %r", selector)
            return selector, handle
    return None
