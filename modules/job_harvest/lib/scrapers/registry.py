from __future__ import annotations

from typing import Any

from ..config import ConfigError, SourceSpec
from ..errors import UnknownCrawlerError
from .base import CrawlerCore, SiteCrawler

# Global in-process registry: kind -> crawler class
_REGISTRY: dict[str, type] = {}


def register(cls: type) -> type:
    """
    Class decorator registering a crawler class under cls.kind.
    Re-registering the same class is allowed; a different class is rejected.
    """
    kind = getattr(cls, "kind", "") or ""
    if not isinstance(kind, str) or not kind.strip():
        raise ValueError(f"Cannot register crawler {cls!r}: missing/empty 'kind'.")
    key = kind.strip().lower()
    if key in _REGISTRY and _REGISTRY[key] is not cls:
        raise ValueError(f"Crawler kind {key!r} already registered to {_REGISTRY[key]!r}.")
    _REGISTRY[key] = cls
    return cls


def get(kind: str) -> type:
    key = (kind or "").strip().lower()
    if key not in _REGISTRY:
        raise UnknownCrawlerError(f"No crawler registered for kind {kind!r}.")
    return _REGISTRY[key]


def all_kinds() -> dict[str, type]:
    return dict(_REGISTRY)


def create(spec: SourceSpec, core: CrawlerCore) -> SiteCrawler:
    """Instantiate the crawler for `spec`, passing spec.params as keyword arguments."""
    cls = get(spec.kind)
    params: dict[str, Any] = dict(spec.params or {})
    try:
        return cls(core, **params)
    except TypeError as e:
        raise ConfigError(f"Invalid params for source {spec.source!r} ({spec.kind}): {e}") from e
