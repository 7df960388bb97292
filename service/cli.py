# service/cli.py
"""
User-facing command-line entrypoints for the container.

Subcommands
-----------
serve
    - Starts the recurring harvest (service.scheduler) on an asyncio loop
    - Runs until SIGINT/SIGTERM, then stops the scheduler and closes the browser

run [--keywords K] [--location L] [--sources a,b] [--force] [--kwargs k=v ...]
    - Executes one on-demand cycle and prints the summary as JSON

list-sources
    - Prints registered crawler kinds and their per-source timeouts

validate-config
    - Loads/validates config and returns nonzero on error
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import signal
import sys
import time
import uuid
from collections.abc import Iterable
from datetime import datetime
from typing import Any

from modules.job_harvest import main as _harvest
from modules.job_harvest.lib.config import ConfigError as _SettingsError
from modules.job_harvest.lib.config import Settings
from modules.job_harvest.lib.scrapers import all_kinds
from service import config_schema as _config_schema
from service import logging_utils as L
from service import scheduler as _scheduler

LOG = logging.getLogger("service.cli")


# -------------------------- Utility / glue code ------------------------------
def _parse_kv_pairs(pairs: Iterable[str]) -> dict[str, Any]:
    """
    Parse key=value strings into a dict.
    - Values that look like JSON (true/false/null/number/object/array) are parsed.
    - Otherwise keep as raw strings.
    """
    out: dict[str, Any] = {}
    for raw in pairs:
        if "=" not in raw:
            raise argparse.ArgumentTypeError(f"--kwargs item must be key=value (got {raw!r})")
        k, v = (part.strip() for part in raw.split("=", 1))
        if not k:
            raise argparse.ArgumentTypeError(f"Invalid key in --kwargs item {raw!r}")
        try:
            out[k] = json.loads(v)
        except json.JSONDecodeError:
            out[k] = v
    return out


def _print_table(rows: Iterable[tuple[str, str]], headers: tuple[str, str]) -> None:
    rows = list(rows)
    w0 = max([len(headers[0]), *(len(r[0]) for r in rows)])
    w1 = max([len(headers[1]), *(len(r[1]) for r in rows)])
    sep = f"+-{'-' * w0}-+-{'-' * w1}-+"
    print(sep)
    print(f"| {headers[0].ljust(w0)} | {headers[1].ljust(w1)} |")
    print(sep)
    for c0, c1 in rows:
        print(f"| {c0.ljust(w0)} | {c1.ljust(w1)} |")
    print(sep)


def _now_iso() -> str:
    return datetime.now().astimezone().isoformat()


def _module_kwargs(cfg: dict[str, Any], extra: dict[str, Any] | None = None) -> dict[str, Any]:
    kwargs = dict(cfg.get("job_harvest") or {})
    kwargs.update(extra or {})
    return kwargs


# ------------------------------ Subcommands ----------------------------------
def cmd_validate_config(args: argparse.Namespace) -> int:
    try:
        cfg = _config_schema.load_config(args.config)
        Settings.from_env_and_kwargs(_module_kwargs(cfg))
    except (_config_schema.ConfigError, _SettingsError) as e:
        LOG.error("Configuration validation failed: %s", e)
        print(f"ERROR: configuration invalid: {e}", file=sys.stderr)
        return 1
    print("OK: configuration is valid.")
    return 0


def cmd_list_sources(args: argparse.Namespace) -> int:
    try:
        cfg = _config_schema.load_config(args.config)
        settings = Settings.from_env_and_kwargs(_module_kwargs(cfg))
    except (_config_schema.ConfigError, _SettingsError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1
    selected = {s.source for s in settings.selected_sources()}
    rows = []
    for kind, cls in sorted(all_kinds().items()):
        mark = "*" if kind in selected else " "
        rows.append((f"{mark} {kind}", f"{cls.__name__} timeout={settings.timeout_for(kind):g}s"))
    _print_table(rows, headers=("SOURCE", "DETAILS"))
    return 0


def cmd_run(args: argparse.Namespace) -> int:
    run_id = uuid.uuid4().hex
    start_time = time.monotonic()
    try:
        cfg = _config_schema.load_config(args.config)
        extra = _parse_kv_pairs(args.kwargs or [])
    except (_config_schema.ConfigError, argparse.ArgumentTypeError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1
    if args.sources:
        extra["sources"] = args.sources
    kwargs = _module_kwargs(cfg, extra)
    LOG.debug("On-demand run %s with kwargs=%s", run_id, kwargs)

    try:
        summary = asyncio.run(_run_once(args.keywords, args.location, args.force, kwargs))
    except KeyboardInterrupt:
        return 130
    except Exception as e:
        duration_ms = int((time.monotonic() - start_time) * 1000)
        print(f"FAILURE: {e}", file=sys.stderr)
        L.write_error_log(
            {
                "ts": _now_iso(),
                "where": "cli.run",
                "run_id": run_id,
                "kwargs": kwargs,
                "error": repr(e),
                "duration_ms": duration_ms,
            }
        )
        return 1

    L.write_activity_log(
        {
            "ts": _now_iso(),
            "event": "cli_run",
            "run_id": run_id,
            "trigger_type": "adhoc",
            "keywords": args.keywords,
            "location": args.location,
            "duration_ms": int((time.monotonic() - start_time) * 1000),
            "total_unique": summary.get("total_unique"),
            "saved_count": summary.get("saved_count"),
        }
    )
    print(json.dumps(summary, ensure_ascii=False, indent=2, default=str))
    return 0


async def _run_once(keywords: str | None, location: str | None, force: bool, kwargs: dict[str, Any]) -> dict:
    try:
        return await _harvest.run_on_demand_cycle(keywords, location, force=force, **kwargs)
    finally:
        await _harvest.shutdown()


def cmd_serve(args: argparse.Namespace) -> int:
    """
    Run the recurring harvest until a termination signal is received.
    """
    try:
        cfg = _config_schema.load_config(args.config)
        Settings.from_env_and_kwargs(_module_kwargs(cfg))
    except (_config_schema.ConfigError, _SettingsError) as e:
        LOG.error("Refusing to start: %s", e)
        return 1

    L.write_activity_log({"ts": _now_iso(), "event": "serve_start"})
    try:
        asyncio.run(_serve(cfg))
    except KeyboardInterrupt:
        return 130
    except Exception as e:
        LOG.exception("Fatal error in serve: %s", e)
        return 1
    L.write_activity_log({"ts": _now_iso(), "event": "serve_stop"})
    return 0


async def _serve(cfg: dict[str, Any]) -> None:
    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            signal.signal(sig, lambda *_: loop.call_soon_threadsafe(stop_event.set))

    sched_cfg = cfg["scheduler"]
    controller = _scheduler.get_scheduler()
    controller.configure(
        module_kwargs=_module_kwargs(cfg),
        timezone=_scheduler.resolve_timezone(cfg),
    )
    if sched_cfg.get("autostart", True):
        controller.start(
            interval_hours=sched_cfg["interval_hours"],
            keywords=sched_cfg.get("keywords"),
            location=sched_cfg.get("location"),
        )
    else:
        LOG.info("Scheduler autostart disabled; idling until signalled")

    try:
        await stop_event.wait()
        LOG.info("Shutdown signal received")
    finally:
        controller.stop()
        await _harvest.shutdown()


# ------------------------------- Argparse ------------------------------------
def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="python -m service.cli",
        description="Job harvest service command-line tools",
    )
    p.add_argument(
        "--config",
        help="Path to config file (fallbacks to CONFIG_PATH env or built-in defaults).",
    )
    sub = p.add_subparsers(dest="cmd", required=True)

    sp = sub.add_parser("serve", help="Run the recurring harvest until SIGINT/SIGTERM.")
    sp.set_defaults(func=cmd_serve)

    sp = sub.add_parser("run", help="Run one harvest cycle now and print its summary.")
    sp.add_argument("--keywords", help="Search keywords passed to every source.")
    sp.add_argument("--location", help="Location filter (e.g. Oslo).")
    sp.add_argument("--sources", help="Comma-separated crawler kinds (default: all).")
    sp.add_argument("--force", action="store_true", help="Bypass the on-demand result cache.")
    sp.add_argument(
        "--kwargs",
        metavar="k=v",
        nargs="*",
        help="Extra module settings (JSON values supported).",
    )
    sp.set_defaults(func=cmd_run)

    sp = sub.add_parser("list-sources", help="Print registered crawlers and their timeouts.")
    sp.set_defaults(func=cmd_list_sources)

    sp = sub.add_parser("validate-config", help="Verify configuration correctness.")
    sp.set_defaults(func=cmd_validate_config)

    return p


# --------------------------------- Main --------------------------------------
def main(argv: Iterable[str] | None = None) -> int:
    L.configure_logging()
    parser = _build_parser()
    args = parser.parse_args(args=list(argv) if argv is not None else None)
    return args.func(args)


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
