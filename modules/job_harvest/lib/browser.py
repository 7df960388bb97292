from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any

LOG = logging.getLogger(__name__)

CHROMIUM_ARGS: tuple[str, ...] = (
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-blink-features=AutomationControlled",
    "--disable-dev-shm-usage",
    "--no-first-run",
    "--no-default-browser-check",
    "--disable-extensions",
    "--disable-default-apps",
    "--disable-gpu",
    "--disable-software-rasterizer",
)

DESKTOP_VIEWPORT = {"width": 1920, "height": 1080}
DESKTOP_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

STEALTH_INIT_SCRIPT = """
Object.defineProperty(navigator, 'webdriver', { get: () => undefined });
window.chrome = window.chrome || {};
window.chrome.runtime = window.chrome.runtime || {};
"""

# (headless) -> (browser, driver); driver.stop() is awaited on force_close.
Launcher = Callable[[bool], Awaitable[tuple[Any, Any]]]


async def launch_chromium(headless: bool) -> tuple[Any, Any]:
    from playwright.async_api import async_playwright

    driver = await async_playwright().start()
    try:
        browser = await driver.chromium.launch(headless=headless, args=list(CHROMIUM_ARGS))
    except Exception:
        await driver.stop()
        raise
    return browser, driver


class BrowserRuntime:
    """
    One shared headless Chromium per process.

    acquire()/release() are reference counted; release() never closes the
    browser, so it stays warm between cycles. force_close() is the only
    teardown path and should not be called while a cycle is in flight.
    """

    def __init__(self, *, headless: bool = True, launcher: Launcher | None = None) -> None:
        self._headless = headless
        self._launcher = launcher or launch_chromium
        self._lock = asyncio.Lock()
        self._browser: Any = None
        self._driver: Any = None
        self._refs = 0

    @property
    def ref_count(self) -> int:
        return self._refs

    @property
    def is_open(self) -> bool:
        return self._browser is not None

    async def acquire(self) -> Any:
        async with self._lock:
            if self._browser is None:
                LOG.info("Launching Chromium (headless=%s)", self._headless)
                self._browser, self._driver = await self._launcher(self._headless)
                self._refs = 0
            self._refs += 1
            return self._browser

    async def release(self) -> None:
        self._refs = max(0, self._refs - 1)
        if self._refs == 0:
            LOG.debug("Browser idle; keeping it open for reuse")

    async def drop_if_disconnected(self) -> bool:
        """Forget a crashed browser so the next acquire() launches a fresh one."""
        browser = self._browser
        if browser is None or browser.is_connected():
            return False
        LOG.warning("Browser disconnected; it will be relaunched on next use")
        await self.force_close()
        return True

    async def force_close(self) -> None:
        async with self._lock:
            browser, driver = self._browser, self._driver
            self._browser = None
            self._driver = None
            self._refs = 0
        if browser is not None:
            try:
                await browser.close()
                LOG.info("Browser closed")
            except Exception:
                LOG.exception("Error closing browser")
        if driver is not None:
            try:
                await driver.stop()
            except Exception:
                LOG.exception("Error stopping Playwright driver")

    async def new_page(self, browser: Any) -> Any:
        context = await browser.new_context(
            viewport=DESKTOP_VIEWPORT,
            user_agent=DESKTOP_USER_AGENT,
            locale="nb-NO",
        )
        try:
            await context.add_init_script(STEALTH_INIT_SCRIPT)
            return await context.new_page()
        except BaseException:
            await _close_quietly(context, "context")
            raise

    @asynccontextmanager
    async def page(self) -> AsyncIterator[Any]:
        """acquire -> open page -> yield -> close page (always) -> release"""
        browser = await self.acquire()
        page = None
        try:
            page = await self.new_page(browser)
            yield page
        finally:
            if page is not None:
                await close_page(page)
            await self.release()


async def _close_quietly(handle: Any, what: str) -> None:
    try:
        await handle.close()
    except Exception as e:
        if "closed" in str(e).lower():
            LOG.debug("%s already closed: %s", what.capitalize(), e)
        else:
            LOG.error("Error closing %s: %s", what, e)


async def close_page(page: Any) -> None:
    """Close the page, then its context, even when the page close fails."""
    try:
        if not page.is_closed():
            await _close_quietly(page, "page")
    finally:
        await _close_quietly(page.context, "context")
