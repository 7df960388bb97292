# tests/test_extractor.py
import json

import pytest

from modules.job_harvest.lib.browser import BrowserRuntime
from modules.job_harvest.lib.config import SiteConfig
from modules.job_harvest.lib.errors import NavigationError
from modules.job_harvest.lib.extractor import PageExtractor, page_diagnostics, parse_listings, resolve_link
from service import logging_utils

SITE = SiteConfig(
    name="example",
    base_url="https://jobs.example.no/list",
    container=("div.job",),
    title=("h2",),
    link=("a",),
    rate_limit_seconds=0,
)

LISTING_HTML = """
<html><body>
  <div class="job">
    <h2>Backend Developer</h2>
    <span class="company">Acme AS</span>
    <span class="location">Oslo</span>
    <a href="/job/1">Les mer</a>
    <p>Vi søker en erfaren utvikler.</p>
  </div>
  <div class="job">
    <h2>Frontend Developer</h2>
    <a href="https://jobs.example.no/job/2">Les mer</a>
  </div>
  <div class="job">
    <h2>Orphan title without link</h2>
  </div>
</body></html>
"""


# ---- Pure parsing -----------------------------------------------------------


def test_parse_listings_uses_site_selectors_and_fallback_fields():
    listings = parse_listings(LISTING_HTML, SITE)

    assert len(listings) == 2
    first = listings[0]
    assert first["title"] == "Backend Developer"
    assert first["company"] == "Acme AS"
    assert first["location"] == "Oslo"
    assert first["url"] == "https://jobs.example.no/job/1"
    assert first["description"] == "Vi søker en erfaren utvikler."
    assert listings[1]["url"] == "https://jobs.example.no/job/2"
    assert listings[1]["company"] == ""


def test_parse_listings_falls_back_to_generic_containers():
    html = '<html><body><article><h3>Sykepleier</h3><a href="stilling/9">Se</a></article></body></html>'
    site = SiteConfig(name="example", base_url="https://jobs.example.no/list", container=("div.nope",), link=("a",))

    listings = parse_listings(html, site)

    assert listings == [
        {
            "title": "Sykepleier",
            "company": "",
            "location": "",
            "url": "https://jobs.example.no/stilling/9",
            "description": "",
        }
    ]


def test_parse_listings_without_containers_is_empty():
    assert parse_listings("<html><body><p>Ingen treff</p></body></html>", SITE) == []
    assert parse_listings("", SITE) == []


def test_resolve_link():
    assert resolve_link("https://a.no/x", "https://b.no/") == "https://a.no/x"
    assert resolve_link("/job/1", "https://www.finn.no/job/fulltime/browse.html?q=x") == "https://www.finn.no/job/1"
    assert resolve_link("", "https://b.no/") == ""


def test_page_diagnostics():
    html = "<html><body><article>Ledig stilling</article><p>Please solve the captcha</p></body></html>"
    report = page_diagnostics(html, "Finn")
    assert report == {
        "page_title": "Finn",
        "content_length": len(html),
        "article_count": 1,
        "has_job_keywords": True,
        "is_blocked": True,
    }

    clean = page_diagnostics("<p>Hello world</p>")
    assert clean["has_job_keywords"] is False
    assert clean["is_blocked"] is False


# ---- Browser-driven extraction (fake Playwright) ----------------------------


def _extractor(fake_launcher, fast_timings, page_factory, diagnostics=True):
    fake_launcher.page_factory = page_factory
    runtime = BrowserRuntime(launcher=fake_launcher)
    return runtime, PageExtractor(runtime, timings=fast_timings, diagnostics=diagnostics)


def _only_page(fake_launcher):
    browser, _ = fake_launcher.launched[0]
    assert len(browser.pages) == 1
    return browser.pages[0]


@pytest.mark.asyncio
async def test_extract_returns_raw_listings_and_closes_page(fake_launcher, fast_timings, fake_page_cls):
    runtime, extractor = _extractor(fake_launcher, fast_timings, lambda: fake_page_cls(LISTING_HTML))

    listings = await extractor.extract(SITE)

    assert [item["title"] for item in listings] == ["Backend Developer", "Frontend Developer"]
    page = _only_page(fake_launcher)
    assert page.goto_calls == [("https://jobs.example.no/list", "networkidle", 45_000)]
    assert page.closed and page.context.closed
    assert runtime.ref_count == 0
    assert runtime.is_open


@pytest.mark.asyncio
async def test_extract_falls_back_to_load_strategy(fake_launcher, fast_timings, fake_page_cls):
    _, extractor = _extractor(fake_launcher, fast_timings, lambda: fake_page_cls(LISTING_HTML, goto_failures=1))

    listings = await extractor.extract(SITE)

    assert len(listings) == 2
    page = _only_page(fake_launcher)
    assert [call[1:] for call in page.goto_calls] == [("networkidle", 45_000), ("load", 30_000)]


@pytest.mark.asyncio
async def test_extract_raises_navigation_error_when_both_loads_fail(fake_launcher, fast_timings, fake_page_cls):
    runtime, extractor = _extractor(fake_launcher, fast_timings, lambda: fake_page_cls(LISTING_HTML, goto_failures=2))

    with pytest.raises(NavigationError) as excinfo:
        await extractor.extract(SITE)

    assert excinfo.value.url == SITE.base_url
    page = _only_page(fake_launcher)
    assert page.closed
    assert runtime.ref_count == 0


@pytest.mark.asyncio
async def test_page_is_closed_when_reading_content_fails(fake_launcher, fast_timings, fake_page_cls):
    def factory():
        page = fake_page_cls(LISTING_HTML)
        page.content_error = RuntimeError("Target closed")
        return page

    _, extractor = _extractor(fake_launcher, fast_timings, factory)

    with pytest.raises(RuntimeError):
        await extractor.extract(SITE)
    assert _only_page(fake_launcher).closed


@pytest.mark.asyncio
async def test_prepare_hook_runs_before_parsing(fake_launcher, fast_timings, fake_page_cls):
    _, extractor = _extractor(fake_launcher, fast_timings, lambda: fake_page_cls("<html><body></body></html>"))
    seen = []

    async def prepare(page):
        seen.append(page)
        page.html = LISTING_HTML

    listings = await extractor.extract(SITE, prepare=prepare)

    assert seen == [_only_page(fake_launcher)]
    assert len(listings) == 2


@pytest.mark.asyncio
async def test_empty_page_is_not_an_error_and_writes_diagnostics(fake_launcher, fast_timings, fake_page_cls):
    blocked = "<html><body><p>Are you a bot? Complete the captcha.</p></body></html>"
    _, extractor = _extractor(fake_launcher, fast_timings, lambda: fake_page_cls(blocked, title="Just a moment"))

    assert await extractor.extract(SITE) == []

    with open(logging_utils.get_activity_log_path(), encoding="utf-8") as f:
        records = [json.loads(line) for line in f if line.strip()]
    empty = [r for r in records if r.get("op") == "empty_page"]
    assert len(empty) == 1
    assert empty[0]["source"] == "example"
    assert empty[0]["page_title"] == "Just a moment"
    assert empty[0]["is_blocked"] is True
