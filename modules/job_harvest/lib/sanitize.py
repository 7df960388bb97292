from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from datetime import datetime, timezone
from typing import Any
from urllib.parse import unquote_plus, urlsplit, urlunsplit

from .models import UNSPECIFIED_COMPANY, ScrapedRecord
from .utils import clip

LOG = logging.getLogger(__name__)

MAX_TITLE = 200
MAX_COMPANY = 100
MAX_LOCATION = 100
MAX_DESCRIPTION = 5000
MAX_REQUIREMENT = 200
MAX_REQUIREMENTS = 20

MIN_TITLE = 3
MIN_URL = 10

TRACKING_PARAMS = frozenset(
    {
        "utm_source",
        "utm_medium",
        "utm_campaign",
        "utm_term",
        "utm_content",
        "ref",
        "fbclid",
        "gclid",
    }
)


# ---- Validation -------------------------------------------------------------


def is_valid_url(url: Any) -> bool:
    """Absolute http(s) URL whose hostname has at least one dot."""
    if not isinstance(url, str) or len(url.strip()) < MIN_URL:
        return False
    try:
        parts = urlsplit(url.strip())
    except ValueError:
        return False
    host = parts.hostname or ""
    return parts.scheme in {"http", "https"} and "." in host.strip(".")


def validate_record(raw: Mapping[str, Any]) -> bool:
    """
    A raw listing survives only with a title of >= 3 chars (after trim)
    and a valid absolute URL.
    """
    title = raw.get("title")
    if not isinstance(title, str) or len(title.strip()) < MIN_TITLE:
        return False
    return is_valid_url(raw.get("url"))


# ---- Sanitization -----------------------------------------------------------


def strip_tracking_params(url: str) -> str:
    """Drop known tracking pairs; every other byte of the URL is left as-is."""
    url = url.strip()
    parts = urlsplit(url)
    if not parts.query:
        return url
    pairs = parts.query.split("&")
    kept = [p for p in pairs if unquote_plus(p.split("=", 1)[0]).lower() not in TRACKING_PARAMS]
    if len(kept) == len(pairs):
        return url
    return urlunsplit(parts._replace(query="&".join(kept)))


def _requirements(value: Any) -> tuple[str, ...]:
    if not value or isinstance(value, str):
        return ()
    out = []
    for item in value:
        text = clip(item, MAX_REQUIREMENT)
        if text:
            out.append(text)
        if len(out) == MAX_REQUIREMENTS:
            break
    return tuple(out)


def _published(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str) and value.strip():
        try:
            dt = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    return dt if dt.tzinfo is not None else dt.replace(tzinfo=timezone.utc)


def sanitize_record(raw: Mapping[str, Any], *, source: str) -> ScrapedRecord:
    """Trim and bound every field; call only on records that passed validate_record()."""
    return ScrapedRecord(
        title=clip(raw.get("title"), MAX_TITLE),
        url=strip_tracking_params(str(raw.get("url"))),
        company=clip(raw.get("company"), MAX_COMPANY) or UNSPECIFIED_COMPANY,
        location=clip(raw.get("location"), MAX_LOCATION),
        description=clip(raw.get("description"), MAX_DESCRIPTION),
        requirements=_requirements(raw.get("requirements")),
        published_date=_published(raw.get("published_date")),
        source=source,
    )


def clean_records(raws: Iterable[Mapping[str, Any]], *, source: str) -> list[ScrapedRecord]:
    """Validate then sanitize; rejected listings are dropped silently (debug count only)."""
    kept: list[ScrapedRecord] = []
    dropped = 0
    for raw in raws:
        if validate_record(raw):
            kept.append(sanitize_record(raw, source=source))
        else:
            dropped += 1
    if dropped:
        LOG.debug("%s: dropped %d invalid listing(s), kept %d", source, dropped, len(kept))
    return kept
