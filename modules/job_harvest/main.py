from __future__ import annotations

import json
import time
from typing import Any

from .lib.browser import BrowserRuntime
from .lib.config import Settings
from .lib.engine import run_once as _run_engine
from .lib.logging_bridge import activity as log_activity

# One warm browser per process, shared by scheduled and on-demand cycles.
_RUNTIME: BrowserRuntime | None = None

# (keywords, location, config fingerprint) -> (expires_at monotonic, summary dict)
_CACHE: dict[tuple[str, str, str], tuple[float, dict[str, Any]]] = {}


def get_runtime(headless: bool = True) -> BrowserRuntime:
    global _RUNTIME
    if _RUNTIME is None:
        _RUNTIME = BrowserRuntime(headless=headless)
    return _RUNTIME


async def shutdown() -> None:
    """Close the shared browser. Call only when no cycle is running."""
    global _RUNTIME
    runtime, _RUNTIME = _RUNTIME, None
    if runtime is not None:
        await runtime.force_close()


def clear_cache() -> None:
    _CACHE.clear()


def _config_fingerprint(settings: Settings) -> str:
    return json.dumps(
        {
            "sqlite_path": settings.sqlite_path,
            "sources": [[s.kind, s.source, s.params] for s in settings.selected_sources()],
            "skip_network": settings.skip_network,
        },
        sort_keys=True,
        default=str,
    )


async def run(**kwargs: Any) -> dict[str, Any]:
    """
    Entry point for the 'job_harvest' module (used by the scheduler).

    Accepts kwargs:
      keywords: str | None
      location: str | None
      + every Settings kwarg (sqlite_path, sources, sources_path, source_timeouts,
        skip_network, diagnostics, headless, notifications_enabled, ...)

    Returns the cycle summary as a dict.
    """
    keywords = kwargs.pop("keywords", None) or None
    location = kwargs.pop("location", None) or None
    settings = Settings.from_env_and_kwargs(kwargs)

    log_activity(
        {
            "component": "job_harvest.main",
            "op": "start",
            "keywords": keywords,
            "location": location,
            "sources": [s.source for s in settings.selected_sources()],
            "flags": {
                "skip_network": settings.skip_network,
                "diagnostics": settings.diagnostics,
                "notifications_enabled": settings.notifications_enabled,
            },
        }
    )

    summary = await _run_engine(
        settings,
        keywords=keywords,
        location=location,
        runtime=get_runtime(settings.headless),
    )
    return summary.as_dict()


async def run_on_demand_cycle(
    keywords: str | None = None,
    location: str | None = None,
    *,
    force: bool = False,
    **kwargs: Any,
) -> dict[str, Any]:
    """
    One cycle for an API caller. Results are cached per (keywords, location)
    and store/source configuration for cache_ttl_sec (20 minutes by default);
    force=True bypasses the cache.

    Returns at least {"total_unique", "saved_count", "duration_ms", "cached"}.
    """
    settings = Settings.from_env_and_kwargs(kwargs)
    key = (
        (keywords or "").strip().lower(),
        (location or "").strip().lower(),
        _config_fingerprint(settings),
    )

    hit = _CACHE.get(key)
    if hit is not None and not force and hit[0] > time.monotonic():
        log_activity({"component": "job_harvest.main", "op": "cache_hit", "keywords": keywords, "location": location})
        return {**hit[1], "cached": True}

    result = await run(keywords=keywords, location=location, **kwargs)
    result["cached"] = False
    if settings.cache_ttl_sec > 0:
        _CACHE[key] = (time.monotonic() + settings.cache_ttl_sec, dict(result))
    return result
