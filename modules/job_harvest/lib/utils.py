from __future__ import annotations

import os
from datetime import datetime, timezone
from typing import Any


def truthy(v: Any) -> bool:
    """
    Normalize common truthy inputs from env/kwargs.
    Accepts bools, numbers, or strings like: '1', 'true', 'yes', 'on'.
    """
    if isinstance(v, bool):
        return v
    if v is None:
        return False
    if isinstance(v, (int, float)):
        return v != 0
    return str(v).strip().lower() in {"1", "true", "yes", "on", "y", "t"}


def now_iso() -> str:
    """
    UTC ISO-8601 timestamp with 'Z' suffix.
    """
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def getenv_str(name: str, default: str | None = None) -> str | None:
    val = os.getenv(name)
    return val if val is not None else default


def clip(value: Any, limit: int) -> str:
    """Stringify, strip and cut to at most `limit` characters. None -> ''."""
    if value is None:
        return ""
    return str(value).strip()[:limit]


def elapsed_ms(started_ns: int, now_ns: int) -> int:
    return int((now_ns - started_ns) // 1_000_000)
