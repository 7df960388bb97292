from __future__ import annotations


class ScraperError(Exception):
    """Base exception for crawler failures."""


class NavigationError(ScraperError):
    """Both the primary and the fallback page load failed."""

    def __init__(self, source: str, url: str, cause: BaseException | None = None) -> None:
        self.source = source
        self.url = url
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"{source}: failed to load {url}{detail}")


class UnknownCrawlerError(KeyError):
    """No crawler is registered under the requested kind."""
