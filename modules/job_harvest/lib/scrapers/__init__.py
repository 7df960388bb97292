# job_harvest/lib/scrapers/__init__.py
from __future__ import annotations

# Importing the crawler modules registers them.
from . import adecco, arbeidsplassen, finn, karriere, manpower, stub  # noqa: F401
from .base import CrawlerCore, SiteCrawler
from .registry import all_kinds, create, get, register

__all__ = ["CrawlerCore", "SiteCrawler", "all_kinds", "create", "get", "register"]
