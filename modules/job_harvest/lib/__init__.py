# modules/job_harvest/lib/__init__.py
from __future__ import annotations

# Re-export commonly-used types for convenience
from .config import ConfigError, Settings, SiteConfig, SourceSpec
from .engine import run_cycle, run_once
from .models import CycleSummary, ScrapedRecord, ScrapeResult, UpsertResult

__all__ = [
    "ConfigError",
    "CycleSummary",
    "ScrapeResult",
    "ScrapedRecord",
    "Settings",
    "SiteConfig",
    "SourceSpec",
    "UpsertResult",
    "run_cycle",
    "run_once",
]
