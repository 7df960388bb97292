from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any

UNSPECIFIED_COMPANY = "Ikke spesifisert"


@dataclass(frozen=True)
class ScrapedRecord:
    """
    A single job listing as produced by a crawler (validated + sanitized, pre-dedupe).
    Persistence keys on `url`; `source` is the crawler key (e.g. "finn.no").
    """

    title: str
    url: str
    company: str = UNSPECIFIED_COMPANY
    location: str = ""
    description: str = ""
    requirements: tuple[str, ...] = ()
    published_date: datetime | None = None
    source: str = ""

    def with_source(self, source: str) -> ScrapedRecord:
        if self.source == source:
            return self
        return replace(self, source=source)


@dataclass
class ScrapeResult:
    """
    Outcome of one source within a cycle.
    - items: records that survived validation (NOT deduplicated yet).
    - errors: non-fatal issues surfaced by the fan-out wrapper.
    """

    source: str
    items: list[ScrapedRecord] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    timed_out: bool = False
    duration_ms: int = 0

    @property
    def failed(self) -> bool:
        return bool(self.errors)


@dataclass(frozen=True)
class UpsertResult:
    id: str
    is_new: bool


@dataclass
class CycleSummary:
    total_scraped: int = 0
    total_unique: int = 0
    saved_count: int = 0
    new_ids: list[str] = field(default_factory=list)
    by_source: dict[str, int] = field(default_factory=dict)
    failed_sources: list[str] = field(default_factory=list)
    duration_ms: int = 0
    keywords: str | None = None
    location: str | None = None

    @property
    def new_count(self) -> int:
        return len(self.new_ids)

    def as_dict(self) -> dict[str, Any]:
        return {
            "total_scraped": self.total_scraped,
            "total_unique": self.total_unique,
            "saved_count": self.saved_count,
            "new_count": self.new_count,
            "new_ids": list(self.new_ids),
            "by_source": dict(self.by_source),
            "failed_sources": list(self.failed_sources),
            "duration_ms": self.duration_ms,
            "keywords": self.keywords,
            "location": self.location,
        }
