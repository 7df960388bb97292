# tests/conftest.py
import os
import sqlite3
import tempfile

import pytest
from bs4 import BeautifulSoup
from freezegun import freeze_time

from modules.job_harvest import main as harvest_main
from modules.job_harvest.lib.extractor import ExtractorTimings
from modules.job_harvest.lib.models import ScrapedRecord, UpsertResult


# ---------------------------------------------------------------------
# Live tests are opt-in: use --live or RUN_LIVE_TESTS=1
# ---------------------------------------------------------------------
def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--live",
        action="store_true",
        default=False,
        help="Run tests marked as 'live' (real browser against real job sites).",
    )


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line(
        "markers",
        "live: marks tests that launch a real browser against external sites (skipped by default).",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    run_live = config.getoption("--live") or os.getenv("RUN_LIVE_TESTS") == "1"
    if run_live:
        return
    skip_live = pytest.mark.skip(reason="live tests disabled (use --live or RUN_LIVE_TESTS=1)")
    for item in items:
        if "live" in item.keywords:
            item.add_marker(skip_live)


# ---------------------------------------------------------------------
# Test-wide env defaults (autouse, function-scoped)
# ---------------------------------------------------------------------
@pytest.fixture(autouse=True)
def _env_defaults(monkeypatch):
    # Write logs to a throwaway dir so real logs stay clean (per test)
    tmp_logs = tempfile.mkdtemp(prefix="jh-pytest-logs-")
    monkeypatch.setenv("LOG_DIR", tmp_logs)
    monkeypatch.setenv("ACTIVITY_LOG_PREFIX", "activity-test")
    monkeypatch.setenv("ERROR_LOG_PREFIX", "error-test")
    for name in (
        "CONFIG_PATH",
        "JOB_HARVEST_DB_PATH",
        "JOB_HARVEST_SOURCES",
        "JOB_HARVEST_DIAGNOSTICS",
        "JOB_HARVEST_HEADLESS",
        "ENABLE_JOB_NOTIFICATIONS",
    ):
        monkeypatch.delenv(name, raising=False)
    harvest_main.clear_cache()
    yield
    harvest_main.clear_cache()


@pytest.fixture
def frozen_utc():
    with freeze_time("2025-01-01T00:00:00Z"):
        yield


# ---------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------
@pytest.fixture
def make_record():
    def _make(**overrides):
        fields = {
            "title": "Backend Developer",
            "company": "Acme AS",
            "location": "Oslo",
            "url": "https://www.finn.no/job/fulltime/ad.html?finnkode=1",
            "description": "",
            "requirements": (),
            "published_date": None,
            "source": "finn.no",
        }
        fields.update(overrides)
        return ScrapedRecord(**fields)

    return _make


# ---------------------------------------------------------------------
# Fake Playwright objects (only the surface the pipeline touches)
# ---------------------------------------------------------------------
class FakeElement:
    def __init__(self, on_submit=None):
        self.typed = []
        self.pressed = []
        self.selected = []
        self.clicks = 0
        self._on_submit = on_submit

    async def type(self, text, delay=0):
        self.typed.append(text)

    async def press(self, key):
        self.pressed.append(key)
        if key == "Enter" and self._on_submit:
            self._on_submit()

    async def click(self):
        self.clicks += 1
        if self._on_submit:
            self._on_submit()

    async def select_option(self, label=None):
        self.selected.append(label)


class FakePage:
    def __init__(self, html="<html><body></body></html>", *, goto_failures=0, title="Ledige stillinger", controls=None):
        self.html = html
        self.goto_failures = goto_failures
        self.goto_calls = []
        self.title_text = title
        self.controls = dict(controls or {})
        self.closed = False
        self.context = None
        self.content_error = None

    def _matches(self, selector):
        try:
            return BeautifulSoup(self.html, "html.parser").select(selector)
        except Exception:
            return []

    async def goto(self, url, wait_until=None, timeout=None):
        self.goto_calls.append((url, wait_until, timeout))
        if self.goto_failures > 0:
            self.goto_failures -= 1
            raise TimeoutError(f"Navigation timeout of {timeout} ms exceeded")

    async def query_selector_all(self, selector):
        return self._matches(selector)

    async def query_selector(self, selector):
        return self.controls.get(selector)

    async def wait_for_selector(self, selector, state="visible", timeout=None):
        if selector in self.controls:
            return self.controls[selector]
        if self._matches(selector):
            return True
        raise TimeoutError(f"Timeout {timeout}ms exceeded waiting for {selector!r}")

    async def content(self):
        if self.content_error is not None:
            raise self.content_error
        return self.html

    async def title(self):
        return self.title_text

    def is_closed(self):
        return self.closed

    async def close(self):
        self.closed = True


class FakeContext:
    def __init__(self, browser, options):
        self.browser = browser
        self.options = options
        self.init_scripts = []
        self.closed = False

    async def add_init_script(self, script):
        self.init_scripts.append(script)

    async def new_page(self):
        page = self.browser.page_factory()
        page.context = self
        self.browser.pages.append(page)
        return page

    async def close(self):
        self.closed = True


class FakeBrowser:
    def __init__(self, page_factory):
        self.page_factory = page_factory
        self.contexts = []
        self.pages = []
        self.closed = False
        self.connected = True

    def is_connected(self):
        return self.connected and not self.closed

    async def new_context(self, **options):
        ctx = FakeContext(self, options)
        self.contexts.append(ctx)
        return ctx

    async def close(self):
        self.closed = True


class FakeDriver:
    def __init__(self):
        self.stopped = False

    async def stop(self):
        self.stopped = True


class FakeLauncher:
    """Injectable BrowserRuntime launcher; set .page_factory to control new pages."""

    def __init__(self):
        self.calls = []
        self.launched = []
        self.page_factory = FakePage
        self.error = None

    async def __call__(self, headless):
        self.calls.append(headless)
        if self.error is not None:
            raise self.error
        browser = FakeBrowser(lambda: self.page_factory())
        driver = FakeDriver()
        self.launched.append((browser, driver))
        return browser, driver


@pytest.fixture
def fake_page_cls():
    return FakePage


@pytest.fixture
def fake_element_cls():
    return FakeElement


@pytest.fixture
def fake_launcher():
    return FakeLauncher()


@pytest.fixture
def fast_timings():
    return ExtractorTimings(
        dynamic_content_delay=0,
        empty_probe_extra_delay=0,
        selector_timeout_ms=10,
    )


@pytest.fixture
def no_sleep():
    """Async sleep replacement that records requested delays."""
    delays = []

    async def _sleep(seconds):
        delays.append(seconds)

    _sleep.delays = delays
    return _sleep


# ---------------------------------------------------------------------
# Persistence / notification doubles
# ---------------------------------------------------------------------
class MemoryStore:
    def __init__(self, fail_urls=()):
        self.rows = {}
        self.calls = []
        self.fail_urls = set(fail_urls)

    def upsert_job_by_url(self, record):
        self.calls.append(record.url)
        if record.url in self.fail_urls:
            raise sqlite3.OperationalError("database is locked")
        if record.url in self.rows:
            job_id, _ = self.rows[record.url]
            self.rows[record.url] = (job_id, record)
            return UpsertResult(id=job_id, is_new=False)
        job_id = f"job-{len(self.rows) + 1}"
        self.rows[record.url] = (job_id, record)
        return UpsertResult(id=job_id, is_new=True)


class RecordingNotifier:
    def __init__(self, store=None, error=None):
        self.calls = []
        self.rows_at_call = []
        self._store = store
        self._error = error

    async def notify_about_new_records(self, new_record_ids):
        self.calls.append(list(new_record_ids))
        if self._store is not None:
            self.rows_at_call.append(len(self._store.rows))
        if self._error is not None:
            raise self._error


@pytest.fixture
def memory_store():
    return MemoryStore()


@pytest.fixture
def memory_store_cls():
    return MemoryStore


@pytest.fixture
def notifier_cls():
    return RecordingNotifier
