"""
Cross-source deduplication for one cycle.

Two records are equivalent when any of these hold:
  1. identical URLs
  2. same domain (www. stripped) and title similarity > 0.85
  3. normalized title and company both non-empty and equal
  4. title similarity > 0.90 and company similarity > 0.90

Grouping is a single left-to-right pass. Each unprocessed record anchors a
group and is compared against later unprocessed records only (no transitive
matching through other members). The best member of each group is kept.
"""

from __future__ import annotations

import logging
import re
import unicodedata
from collections.abc import Iterable, Sequence
from urllib.parse import urlsplit

from .models import ScrapedRecord

LOG = logging.getLogger(__name__)

DOMAIN_TITLE_THRESHOLD = 0.85
FUZZY_THRESHOLD = 0.90
RICH_DESCRIPTION_CHARS = 100

# Higher wins; unknown sources rank 0.
SOURCE_PRIORITY: dict[str, int] = {
    "finn.no": 3,
    "manpower": 2,
    "adecco": 1,
}

_FOLD = str.maketrans({"å": "a", "æ": "ae", "ø": "o", "Å": "a", "Æ": "ae", "Ø": "o"})
_PUNCT_RE = re.compile(r"[^\w\s]")
_WS_RE = re.compile(r"\s+")


# ---- Text helpers -----------------------------------------------------------


def normalize_text(text: str | None) -> str:
    """lowercase, fold diacritics, strip punctuation, collapse whitespace"""
    if not text:
        return ""
    s = text.translate(_FOLD).lower()
    s = unicodedata.normalize("NFKD", s)
    s = "".join(ch for ch in s if not unicodedata.combining(ch))
    s = _PUNCT_RE.sub("", s).replace("_", "")
    return _WS_RE.sub(" ", s).strip()


def extract_domain(url: str | None) -> str:
    if not url:
        return ""
    try:
        host = urlsplit(url.strip()).hostname or ""
    except ValueError:
        return ""
    host = host.lower()
    return host[4:] if host.startswith("www.") else host


def levenshtein(a: str, b: str) -> int:
    if a == b:
        return 0
    if len(a) < len(b):
        a, b = b, a
    if not b:
        return len(a)
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            current.append(
                min(
                    previous[j] + 1,
                    current[j - 1] + 1,
                    previous[j - 1] + (ca != cb),
                )
            )
        previous = current
    return previous[-1]


def similarity(a: str | None, b: str | None) -> float:
    """1 - distance/max_len on normalized text; identical (incl. both empty) -> 1.0"""
    na, nb = normalize_text(a), normalize_text(b)
    if na == nb:
        return 1.0
    longest = max(len(na), len(nb))
    return 1.0 - levenshtein(na, nb) / longest


def record_key(record: ScrapedRecord) -> str:
    return f"{normalize_text(record.title)}|{normalize_text(record.company)}"


# ---- Equivalence ------------------------------------------------------------


def are_equivalent(a: ScrapedRecord, b: ScrapedRecord) -> bool:
    if a.url == b.url:
        return True

    title_sim: float | None = None
    domain = extract_domain(a.url)
    if domain and domain == extract_domain(b.url):
        title_sim = similarity(a.title, b.title)
        if title_sim > DOMAIN_TITLE_THRESHOLD:
            return True

    ta, tb = normalize_text(a.title), normalize_text(b.title)
    ca, cb = normalize_text(a.company), normalize_text(b.company)
    if ta and ca and ta == tb and ca == cb:
        return True

    if not (ca and cb):
        return False
    if title_sim is None:
        title_sim = similarity(a.title, b.title)
    return title_sim > FUZZY_THRESHOLD and similarity(a.company, b.company) > FUZZY_THRESHOLD


# ---- Winner selection -------------------------------------------------------


def _score_against(candidate: ScrapedRecord, best: ScrapedRecord) -> int:
    score = 0
    if len(candidate.url) > len(best.url):
        score += 10
    if len(candidate.description) > RICH_DESCRIPTION_CHARS >= len(best.description):
        score += 5
    if candidate.requirements and not best.requirements:
        score += 3
    if candidate.published_date is not None and (
        best.published_date is None or candidate.published_date > best.published_date
    ):
        score += 2
    if SOURCE_PRIORITY.get(candidate.source, 0) > SOURCE_PRIORITY.get(best.source, 0):
        score += 1
    return score


def pick_best(group: Sequence[ScrapedRecord]) -> ScrapedRecord:
    """Ties (score 0) keep the current best, so first-seen wins by default."""
    best = group[0]
    for candidate in group[1:]:
        if _score_against(candidate, best) > 0:
            best = candidate
    return best


# ---- Public API -------------------------------------------------------------


def group_records(records: Iterable[ScrapedRecord]) -> list[list[ScrapedRecord]]:
    items = [r for r in records if r.url and r.url.strip()]
    processed = [False] * len(items)
    groups: list[list[ScrapedRecord]] = []
    for i, anchor in enumerate(items):
        if processed[i]:
            continue
        processed[i] = True
        group = [anchor]
        for j in range(i + 1, len(items)):
            if not processed[j] and are_equivalent(anchor, items[j]):
                processed[j] = True
                group.append(items[j])
        groups.append(group)
    return groups


def dedupe(records: Iterable[ScrapedRecord]) -> list[ScrapedRecord]:
    records = list(records)
    groups = group_records(records)
    unique = [pick_best(g) for g in groups]
    merged = sum(len(g) - 1 for g in groups)
    if merged:
        LOG.info("Deduplicated %d records into %d (merged %d)", len(records), len(unique), merged)
    return unique
