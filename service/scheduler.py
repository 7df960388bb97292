# service/scheduler.py
from __future__ import annotations

import asyncio
import importlib
import logging
import os
import time as _time
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Any

import pytz
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from .logging_utils import write_activity_log

LOG = logging.getLogger(__name__)

JOB_ID = "job_harvest.cycle"
DEFAULT_MODULE = "modules.job_harvest"
DEFAULT_INTERVAL_HOURS = 6.0

# (keywords=..., location=..., **module_kwargs) -> summary dict
CycleFunc = Callable[..., Awaitable[Any]]


# ---- Public controller ------------------------------------------------------


class CycleScheduler:
    """
    Runs the harvest cycle immediately on start() and then every `interval_hours`.

    Wraps APScheduler's AsyncIOScheduler, so start() must be called while an
    asyncio event loop is running (or with `event_loop` given). stop() prevents
    future cycles but lets an in-flight cycle finish.
    """

    def __init__(
        self,
        cycle: CycleFunc | None = None,
        *,
        module: str = DEFAULT_MODULE,
        module_kwargs: dict[str, Any] | None = None,
        timezone: Any = None,
        event_loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self._cycle = cycle
        self._module = module
        self._module_kwargs = dict(module_kwargs or {})
        self._tz = timezone or resolve_timezone({})
        self._event_loop = event_loop
        self._scheduler: AsyncIOScheduler | None = None
        self._inflight: asyncio.Future | None = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def configure(self, *, module_kwargs: dict[str, Any] | None = None, timezone: Any = None) -> None:
        """Replace module kwargs / timezone; takes effect on the next start()."""
        if module_kwargs is not None:
            self._module_kwargs = dict(module_kwargs)
        if timezone is not None:
            self._tz = timezone

    def start(
        self,
        interval_hours: float = DEFAULT_INTERVAL_HOURS,
        keywords: str | None = None,
        location: str | None = None,
    ) -> bool:
        """Returns False (and changes nothing) when already running."""
        if self._running:
            LOG.info("Scheduled harvesting already running; start() ignored")
            return False

        seconds = _interval_seconds(interval_hours)
        options: dict[str, Any] = {
            "timezone": self._tz,
            "job_defaults": {"coalesce": True, "max_instances": 1},
        }
        if self._event_loop is not None:
            options["event_loop"] = self._event_loop
        scheduler = AsyncIOScheduler(**options)
        scheduler.add_job(
            self._run_job,
            trigger=IntervalTrigger(seconds=seconds, timezone=self._tz),
            id=JOB_ID,
            kwargs={"keywords": keywords, "location": location},
            next_run_time=datetime.now(self._tz),
            replace_existing=True,
        )
        scheduler.start()
        self._scheduler = scheduler
        self._running = True
        LOG.info(
            "Scheduled harvesting started (every %ss, keywords=%r, location=%r)",
            seconds,
            keywords,
            location,
        )
        return True

    def stop(self) -> bool:
        """Returns False when nothing was running."""
        if not self._running:
            return False
        scheduler, self._scheduler = self._scheduler, None
        self._running = False
        if scheduler is not None:
            scheduler.remove_all_jobs()
            if scheduler.running:
                scheduler.shutdown(wait=False)
        LOG.info("Scheduled harvesting stopped")
        return True

    def status(self) -> dict[str, Any]:
        count = len(self._scheduler.get_jobs()) if self._scheduler is not None else 0
        return {"running": self._running, "active_timer_count": count}

    def next_run_time(self) -> datetime | None:
        if self._scheduler is None:
            return None
        job = self._scheduler.get_job(JOB_ID)
        return getattr(job, "next_run_time", None) if job else None

    # ---- internals ----

    async def _run_job(self, keywords: str | None = None, location: str | None = None) -> None:
        started = _time.monotonic()
        LOG.info("Job[%s] starting (keywords=%r, location=%r)", JOB_ID, keywords, location)
        cycle = self._cycle or _resolve_callable(self._module)
        task = asyncio.ensure_future(cycle(keywords=keywords, location=location, **self._module_kwargs))
        self._inflight = task
        try:
            # Shielded so shutting the scheduler down does not abort the cycle.
            result = await asyncio.shield(task)
        except asyncio.CancelledError:
            LOG.info("Job[%s] detached by stop(); in-flight cycle keeps running", JOB_ID)
            task.add_done_callback(_log_detached)
            raise
        except Exception:
            LOG.exception("Job[%s] raised an exception.", JOB_ID)
            _write_activity(status="error", duration_s=_time.monotonic() - started)
            return
        duration = _time.monotonic() - started
        LOG.info("Job[%s] finished in %.3fs", JOB_ID, duration)
        _write_activity(status="ok", duration_s=duration, result=result)


# ---- Module API (process-wide default instance) ----------------------------

_DEFAULT: CycleScheduler | None = None


def get_scheduler() -> CycleScheduler:
    global _DEFAULT
    if _DEFAULT is None:
        _DEFAULT = CycleScheduler()
    return _DEFAULT


def start(
    interval_hours: float = DEFAULT_INTERVAL_HOURS,
    keywords: str | None = None,
    location: str | None = None,
) -> bool:
    return get_scheduler().start(interval_hours, keywords, location)


def stop() -> bool:
    return get_scheduler().stop()


def status() -> dict[str, Any]:
    return get_scheduler().status()


# ---- Helpers ----------------------------------------------------------------


def _interval_seconds(interval_hours: Any) -> int:
    try:
        hours = float(interval_hours)
    except (TypeError, ValueError) as err:
        raise ValueError(f"interval_hours must be a number, got {interval_hours!r}") from err
    seconds = int(round(hours * 3600))
    if seconds <= 0:
        raise ValueError("interval_hours must be greater than 0")
    return seconds


def _resolve_callable(module: str) -> CycleFunc:
    """'modules.job_harvest' -> modules.job_harvest.main.run"""
    mod = importlib.import_module(f"{module}.main")
    fn = getattr(mod, "run", None)
    if fn is None or not callable(fn):
        raise AttributeError(f"{module}.main has no callable 'run'")
    return fn


def resolve_timezone(cfg: dict[str, Any]):
    """
    APScheduler 3.x expects a pytz timezone. Resolution order:
    config['timezone'], env TZ, then UTC.
    """
    tz_name = cfg.get("timezone") or os.getenv("TZ") or "UTC"
    try:
        return pytz.timezone(tz_name)
    except pytz.UnknownTimeZoneError:
        LOG.warning("Falling back to UTC timezone (invalid tz '%s')", tz_name)
        return pytz.UTC


def _log_detached(task: asyncio.Future) -> None:
    if task.cancelled():
        return
    err = task.exception()
    if err is not None:
        LOG.error("Detached cycle failed: %r", err)
    else:
        LOG.info("Detached cycle finished")


def _write_activity(status: str, duration_s: float, result: Any = None) -> None:
    """Best-effort JSONL activity logging; non-fatal on errors."""
    fields: dict[str, Any] = {
        "job_id": JOB_ID,
        "status": status,
        "duration_ms": int(duration_s * 1000),
    }
    if isinstance(result, dict):
        for key in ("total_unique", "saved_count", "new_count", "failed_sources"):
            if key in result:
                fields[key] = result[key]
    try:
        write_activity_log(
            {
                "ts": datetime.now().isoformat(),
                "source": "scheduler",
                "event": "job_run",
                "fields": fields,
            }
        )
    except (OSError, TypeError, ValueError):
        LOG.debug("write_activity_log failed for job[%s]", JOB_ID, exc_info=True)
