from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from typing import Any

from .utils import getenv_str, truthy


# -----------------------------
# Exceptions
# -----------------------------
class ConfigError(ValueError):
    """Raised when provided kwargs/env cannot form a valid Settings."""


# -----------------------------
# Models
# -----------------------------
@dataclass(frozen=True)
class SiteConfig:
    """
    Static description of one job site.

    Every selector field is an ordered tuple of candidates; the first candidate
    that matches wins. Filtered runs derive a copy via `with_url()` and never
    mutate the crawler's own instance.
    """

    name: str
    base_url: str
    container: tuple[str, ...]
    title: tuple[str, ...] = ()
    company: tuple[str, ...] = ()
    location: tuple[str, ...] = ()
    link: tuple[str, ...] = ()
    description: tuple[str, ...] = ()
    rate_limit_seconds: float = 2.0

    def with_url(self, url: str) -> SiteConfig:
        return replace(self, base_url=url)


@dataclass(frozen=True)
class SourceSpec:
    """
    One logical crawler invocation.
    - kind: registered crawler family (e.g. "finn.no", "manpower", "stub")
    - source: label stamped on records and used in logs (defaults to kind)
    - params: keyword arguments passed to the crawler constructor
    """

    kind: str
    source: str
    params: dict[str, Any] = field(default_factory=dict)


DEFAULT_SOURCES: tuple[str, ...] = ("finn.no", "manpower", "adecco", "arbeidsplassen", "karriere")

# Per-query budgets in seconds for one full source scrape.
DEFAULT_SOURCE_TIMEOUTS: dict[str, float] = {
    "finn.no": 35.0,
    "manpower": 45.0,
    "adecco": 60.0,
    "arbeidsplassen": 45.0,
    "karriere": 45.0,
}
DEFAULT_TIMEOUT_SEC = 45.0
DEFAULT_CACHE_TTL_SEC = 20 * 60
DEFAULT_SQLITE_PATH = "/app/local/state/job_harvest.db"


@dataclass
class Settings:
    """
    Canonical configuration for a 'job_harvest' cycle.

    Source selection, in priority order:
      1. sources_path: JSON file holding [{"kind", "source", "params"}, ...]
      2. sources kwarg: list of kinds or of {"kind", "source", "params"} objects
      3. JOB_HARVEST_SOURCES env: comma-separated kinds
      4. all five production crawlers
    """

    sources: list[SourceSpec] = field(default_factory=list)
    sources_path: str | None = None

    sqlite_path: str = DEFAULT_SQLITE_PATH
    source_timeouts: dict[str, float] = field(default_factory=lambda: dict(DEFAULT_SOURCE_TIMEOUTS))
    default_timeout_sec: float = DEFAULT_TIMEOUT_SEC
    cache_ttl_sec: float = DEFAULT_CACHE_TTL_SEC

    skip_network: bool = False
    diagnostics: bool = True
    headless: bool = True
    notifications_enabled: bool = True

    # ------------- convenience -------------
    def selected_sources(self) -> list[SourceSpec]:
        if self.sources_path:
            return _load_sources_file(self.sources_path)
        return list(self.sources)

    def timeout_for(self, source: str) -> float:
        return float(self.source_timeouts.get(source, self.default_timeout_sec))

    # ------------- constructors -------------
    @classmethod
    def from_env_and_kwargs(cls, kwargs: Mapping[str, Any] | None) -> Settings:
        """
        Build Settings from kwargs with env fallbacks and validation.

        Expected kwargs (all optional):

            sqlite_path: str            # env JOB_HARVEST_DB_PATH
            sources: list | str         # env JOB_HARVEST_SOURCES
            sources_path: str
            source_timeouts: {source: seconds}
            default_timeout_sec: float = 45
            cache_ttl_sec: float = 1200
            skip_network: bool = false
            diagnostics: bool = true    # env JOB_HARVEST_DIAGNOSTICS
            headless: bool = true       # env JOB_HARVEST_HEADLESS
            notifications_enabled: bool # env ENABLE_JOB_NOTIFICATIONS
        """
        kw = dict(kwargs or {})

        sources_path = kw.get("sources_path")
        if sources_path is not None:
            sources_path = str(sources_path).strip() or None

        raw_sources = kw.get("sources")
        if raw_sources is None:
            raw_sources = getenv_str("JOB_HARVEST_SOURCES")
        sources = _parse_sources(raw_sources) if raw_sources else [SourceSpec(k, k) for k in DEFAULT_SOURCES]

        timeouts = dict(DEFAULT_SOURCE_TIMEOUTS)
        overrides = kw.get("source_timeouts") or {}
        if not isinstance(overrides, Mapping):
            raise ConfigError("'source_timeouts' must be an object of {source: seconds}.")
        try:
            timeouts.update({str(k): float(v) for k, v in overrides.items()})
            default_timeout = float(kw.get("default_timeout_sec") or DEFAULT_TIMEOUT_SEC)
            cache_ttl = float(kw.get("cache_ttl_sec", DEFAULT_CACHE_TTL_SEC))
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid numeric setting: {e}") from e

        settings = cls(
            sources=sources,
            sources_path=sources_path,
            sqlite_path=str(kw.get("sqlite_path") or getenv_str("JOB_HARVEST_DB_PATH") or DEFAULT_SQLITE_PATH),
            source_timeouts=timeouts,
            default_timeout_sec=default_timeout,
            cache_ttl_sec=cache_ttl,
            skip_network=truthy(kw.get("skip_network")),
            diagnostics=_flag(kw, "diagnostics", "JOB_HARVEST_DIAGNOSTICS", True),
            headless=_flag(kw, "headless", "JOB_HARVEST_HEADLESS", True),
            notifications_enabled=_flag(kw, "notifications_enabled", "ENABLE_JOB_NOTIFICATIONS", True),
        )
        _validate_settings(settings)
        return settings


# -----------------------------
# Helpers
# -----------------------------
def _flag(kw: Mapping[str, Any], key: str, env: str, default: bool) -> bool:
    if kw.get(key) is not None:
        return truthy(kw[key])
    raw = getenv_str(env)
    if raw is None or not raw.strip():
        return default
    return truthy(raw)


def _parse_sources(value: Any) -> list[SourceSpec]:
    """
    Accepts "finn.no,adecco", ["finn.no", "adecco"] or
    [{"kind": "...", "source": "...", "params": {...}}, ...]
    """
    if isinstance(value, str):
        value = [part for part in (p.strip() for p in value.split(",")) if part]
    if not isinstance(value, list):
        raise ConfigError("Expected a list of sources.")
    out: list[SourceSpec] = []
    for i, item in enumerate(value):
        if isinstance(item, str):
            if not item.strip():
                raise ConfigError(f"Source[{i}] cannot be empty.")
            out.append(SourceSpec(kind=item.strip(), source=item.strip()))
            continue
        if not isinstance(item, dict):
            raise ConfigError(f"Source[{i}] must be a string or an object.")
        kind = item.get("kind")
        if not kind:
            raise ConfigError(f"Source[{i}] requires 'kind'.")
        params = item.get("params") or {}
        if not isinstance(params, dict):
            raise ConfigError(f"Source[{i}].params must be an object.")
        out.append(SourceSpec(kind=str(kind), source=str(item.get("source") or kind), params=dict(params)))
    return out


def _load_sources_file(path: str) -> list[SourceSpec]:
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError as e:
        raise ConfigError(f"job_harvest sources file not found: {path}") from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"job_harvest sources file is invalid JSON: {path}") from e
    selected = _parse_sources(data)
    if not selected:
        raise ConfigError(f"No sources found in {path}")
    return selected


def _validate_settings(s: Settings) -> None:
    if not s.sqlite_path.strip():
        raise ConfigError("'sqlite_path' cannot be empty.")
    if s.default_timeout_sec <= 0:
        raise ConfigError("'default_timeout_sec' must be > 0.")
    if s.cache_ttl_sec < 0:
        raise ConfigError("'cache_ttl_sec' must be >= 0.")
    for source, seconds in s.source_timeouts.items():
        if seconds <= 0:
            raise ConfigError(f"Timeout for '{source}' must be > 0.")

    selected = s.selected_sources()
    if not selected:
        raise ConfigError("No selected sources to run.")
    labels = [sc.source for sc in selected]
    dupes = sorted({x for x in labels if labels.count(x) > 1})
    if dupes:
        raise ConfigError(f"Duplicate source labels: {', '.join(dupes)}")
