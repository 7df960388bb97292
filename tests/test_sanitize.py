# tests/test_sanitize.py
from datetime import datetime, timezone

from modules.job_harvest.lib.models import UNSPECIFIED_COMPANY
from modules.job_harvest.lib.sanitize import (
    MAX_DESCRIPTION,
    MAX_REQUIREMENTS,
    MAX_TITLE,
    clean_records,
    is_valid_url,
    sanitize_record,
    strip_tracking_params,
    validate_record,
)


def test_validate_record_title_and_url_rules():
    assert validate_record({"title": "  Dev  ", "url": "https://www.finn.no/job/1"}) is True
    assert validate_record({"title": "Hi", "url": "https://www.finn.no/job/1"}) is False
    assert validate_record({"title": None, "url": "https://www.finn.no/job/1"}) is False
    assert validate_record({"title": "Developer"}) is False


def test_is_valid_url():
    assert is_valid_url("https://www.finn.no/job/1")
    assert is_valid_url("http://adecco.no/jobb")
    assert not is_valid_url("ftp://example.com/file")
    assert not is_valid_url("/job/fulltime/ad.html")
    assert not is_valid_url("https://localhost/abc")
    assert not is_valid_url("x.no/job")
    assert not is_valid_url(None)


def test_strip_tracking_params_keeps_other_query():
    url = "https://www.finn.no/job/ad.html?finnkode=5&utm_source=mail&fbclid=abc&ref=x"
    assert strip_tracking_params(url) == "https://www.finn.no/job/ad.html?finnkode=5"
    assert strip_tracking_params("https://www.finn.no/job/1") == "https://www.finn.no/job/1"
    assert strip_tracking_params("https://x.no/j?gclid=1") == "https://x.no/j"


def test_strip_tracking_params_leaves_untracked_urls_byte_identical():
    for url in (
        "https://www.finn.no/job/ad.html?12345",
        "https://www.adecco.no/jobs?q=senior%20dev&page=2",
        "https://x.no/j?a=1&a=2&empty=",
    ):
        assert strip_tracking_params(f"  {url} ") == url


def test_strip_tracking_params_keeps_remaining_pairs_raw():
    url = "https://www.finn.no/job?q=senior%20dev&utm_medium=x&12345"
    assert strip_tracking_params(url) == "https://www.finn.no/job?q=senior%20dev&12345"


def test_sanitize_trims_and_truncates():
    raw = {
        "title": "  " + "T" * 250 + "  ",
        "url": " https://www.finn.no/job/1?utm_campaign=x ",
        "company": "  ",
        "location": " Oslo ",
        "description": "d" * 6000,
    }
    rec = sanitize_record(raw, source="finn.no")

    assert rec.title == "T" * MAX_TITLE
    assert rec.url == "https://www.finn.no/job/1"
    assert rec.company == UNSPECIFIED_COMPANY
    assert rec.location == "Oslo"
    assert len(rec.description) == MAX_DESCRIPTION
    assert rec.source == "finn.no"


def test_requirements_are_capped_and_blank_entries_dropped():
    reqs = ["", "  "] + [f"Skill {i}" for i in range(30)]
    rec = sanitize_record(
        {"title": "Developer", "url": "https://www.finn.no/job/1", "requirements": reqs},
        source="finn.no",
    )
    assert len(rec.requirements) == MAX_REQUIREMENTS
    assert rec.requirements[0] == "Skill 0"


def test_published_date_is_parsed_as_aware_datetime():
    rec = sanitize_record(
        {"title": "Developer", "url": "https://www.finn.no/job/1", "published_date": "2025-01-02T10:00:00Z"},
        source="finn.no",
    )
    assert rec.published_date == datetime(2025, 1, 2, 10, 0, tzinfo=timezone.utc)

    rec = sanitize_record(
        {"title": "Developer", "url": "https://www.finn.no/job/1", "published_date": "i går"},
        source="finn.no",
    )
    assert rec.published_date is None


def test_clean_records_drops_invalid_silently():
    raws = [
        {"title": "Backend Developer", "url": "https://www.finn.no/job/1"},
        {"title": "ab", "url": "https://www.finn.no/job/2"},
        {"title": "No link"},
        {"title": "Relative", "url": "/job/3"},
    ]
    out = clean_records(raws, source="manpower")
    assert [r.url for r in out] == ["https://www.finn.no/job/1"]
    assert out[0].source == "manpower"
