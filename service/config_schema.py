# service/config_schema.py
from __future__ import annotations

import copy
import json
import logging
import os
from typing import Any

import yaml

logger = logging.getLogger(__name__)


class ConfigError(ValueError):
    """Raised when the config is invalid."""


_DEFAULT_CONFIG: dict[str, Any] = {
    "timezone": None,
    "scheduler": {
        "interval_hours": 6,
        "keywords": None,
        "location": None,
        "autostart": True,
    },
    "job_harvest": {},
}

_SCHEDULER_KEYS = {"interval_hours", "keywords", "location", "autostart"}


def load_config(path: str | None = None) -> dict[str, Any]:
    """
    Load the service configuration (JSON or YAML).

    Resolution order:
      1) Explicit `path` argument (if provided)
      2) os.environ['CONFIG_PATH'] (if set)
      3) Built-in defaults (6h interval, no filters, all sources)

    Missing sections are filled from the defaults; the result is validated.
    """
    resolved_path = path or os.environ.get("CONFIG_PATH")
    if not resolved_path:
        logger.info("CONFIG_PATH not provided; using default config.")
        cfg = copy.deepcopy(_DEFAULT_CONFIG)
        validate(cfg)
        return cfg

    raw = _read_any(resolved_path)
    cfg = _apply_defaults(raw)
    validate(cfg)
    return cfg


def validate(cfg: dict[str, Any]) -> None:
    """
    Validate the configuration. Raise ConfigError on any problem.
    No prints, no sys.exit().
    """
    if not isinstance(cfg, dict):
        raise ConfigError("Config must be a dict.")

    tz = cfg.get("timezone")
    if tz is not None and not isinstance(tz, str):
        raise ConfigError("'timezone' must be a string if provided.")

    sched = cfg.get("scheduler")
    if not isinstance(sched, dict):
        raise ConfigError("'scheduler' must be an object.")
    unknown = set(sched) - _SCHEDULER_KEYS
    if unknown:
        raise ConfigError(f"'scheduler' has unknown field(s): {sorted(unknown)}")

    hours = sched.get("interval_hours")
    if isinstance(hours, bool) or not isinstance(hours, (int, float)) or hours <= 0:
        raise ConfigError("'scheduler.interval_hours' must be a number > 0.")
    for key in ("keywords", "location"):
        val = sched.get(key)
        if val is not None and not isinstance(val, str):
            raise ConfigError(f"'scheduler.{key}' must be a string or null.")
    if not isinstance(sched.get("autostart"), bool):
        raise ConfigError("'scheduler.autostart' must be a boolean.")

    module_kwargs = cfg.get("job_harvest")
    if not isinstance(module_kwargs, dict):
        raise ConfigError("'job_harvest' must be an object of module kwargs.")
    timeouts = module_kwargs.get("source_timeouts")
    if timeouts is not None:
        if not isinstance(timeouts, dict):
            raise ConfigError("'job_harvest.source_timeouts' must be an object.")
        for source, seconds in timeouts.items():
            if isinstance(seconds, bool) or not isinstance(seconds, (int, float)) or seconds <= 0:
                raise ConfigError(f"'job_harvest.source_timeouts.{source}' must be a number > 0.")
    sources = module_kwargs.get("sources")
    if sources is not None and not isinstance(sources, (list, str)):
        raise ConfigError("'job_harvest.sources' must be a list or a comma-separated string.")


# ---- Internal helpers --------------------------------------------------------


def _apply_defaults(raw: dict[str, Any]) -> dict[str, Any]:
    cfg = copy.deepcopy(_DEFAULT_CONFIG)
    for key, value in raw.items():
        if key == "scheduler" and isinstance(value, dict):
            cfg["scheduler"].update(value)
        else:
            cfg[key] = value
    return cfg


def _read_any(path: str) -> dict[str, Any]:
    """
    Read JSON or YAML by extension; unknown extensions try JSON then YAML.
    """
    try:
        with open(path, encoding="utf-8") as f:
            text = f.read()
    except FileNotFoundError as e:
        raise ConfigError(f"Config file not found: {path}") from e

    ext = os.path.splitext(path)[1].lower()
    try:
        if ext == ".json":
            data = json.loads(text)
        elif ext in (".yaml", ".yml"):
            data = yaml.safe_load(text)
        else:
            try:
                data = json.loads(text)
            except json.JSONDecodeError:
                data = yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigError(f"Could not parse config file {path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config root must be an object: {path}")
    logger.debug("Loaded config from %s", path)
    return data
