# service/logging_utils.py
from __future__ import annotations

import contextlib
import datetime as _dt
import json
import logging
import os
import socket
from collections.abc import Iterable
from typing import Any

# ---- Configuration (env-driven, read per write so tests can redirect) --------
#
#   LOG_DIR                 base directory for JSONL files (default /app/local/logs)
#   ACTIVITY_LOG_PREFIX     file prefix for activity records (default "activity")
#   ERROR_LOG_PREFIX        file prefix for error records (default "error")
#   ACTIVITY_LOG_MAX_BYTES  size rotation threshold; <=0 disables it
#   LOG_LEVEL               stdlib logging level used by configure_logging()

_REDACTED = "***REDACTED***"

# Case-insensitive substrings; any key containing one is scrubbed.
_DEFAULT_REDACT_KEYS = frozenset(
    {
        "password",
        "token",
        "apikey",
        "api_key",
        "secret",
        "authorization",
        "cookie",
        "set-cookie",
        "proxy_auth",
    }
)

_HOSTNAME = socket.gethostname()
_PID = os.getpid()


# ---- Public API --------------------------------------------------------------


def configure_logging(level: str | None = None) -> None:
    """
    Install a basic stdlib handler unless the root logger already has one.
    Level comes from `level`, then LOG_LEVEL, then INFO.
    """
    root = logging.getLogger()
    if root.handlers:
        return
    name = (level or os.getenv("LOG_LEVEL") or "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, name, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def write_activity_log(record: dict[str, Any]) -> None:
    """
    Append one structured activity record to today's activity JSONL file.

    Never mutates `record`. May raise on unrecoverable I/O or serialization
    errors; callers decide whether to fall back.
    """
    _write_jsonl(_path_for_today(_activity_prefix()), record)


def write_error_log(record: dict[str, Any]) -> None:
    """Append one structured error record, parallel to the activity log."""
    _write_jsonl(_path_for_today(_error_prefix()), record)


def get_activity_log_path() -> str:
    return _path_for_today(_activity_prefix())


def get_error_log_path() -> str:
    return _path_for_today(_error_prefix())


def redact(record: dict[str, Any], keys: Iterable[str] | None = None) -> dict[str, Any]:
    """Deep copy of `record` with secret-looking keys scrubbed."""
    return _redact_deep(record, tuple(keys) if keys else _DEFAULT_REDACT_KEYS)


# ---- Internal helpers --------------------------------------------------------


def _log_dir() -> str:
    return os.getenv("LOG_DIR", "/app/local/logs")


def _activity_prefix() -> str:
    return os.getenv("ACTIVITY_LOG_PREFIX", "activity")


def _error_prefix() -> str:
    return os.getenv("ERROR_LOG_PREFIX", "error")


def _max_bytes() -> int:
    try:
        return int(os.getenv("ACTIVITY_LOG_MAX_BYTES", "0"))
    except ValueError:
        return 0


def _path_for_today(prefix: str) -> str:
    return os.path.join(_log_dir(), f"{prefix}-{_dt.date.today().isoformat()}.jsonl")


def _rotate_if_oversized(path: str) -> None:
    limit = _max_bytes()
    if limit <= 0:
        return
    try:
        size = os.path.getsize(path)
    except FileNotFoundError:
        return
    if size < limit:
        return
    stamp = _dt.datetime.now().strftime("%Y%m%d-%H%M%S")
    with contextlib.suppress(FileNotFoundError):
        os.replace(path, f"{path}.{stamp}")


def _scrub_bearer(value: str) -> str:
    if "bearer " not in value.lower():
        return value
    scheme, _, rest = value.partition(" ")
    return f"{scheme} {_REDACTED}" if rest else _REDACTED


def _redact_deep(value: Any, patterns: Iterable[str]) -> Any:
    if isinstance(value, dict):
        out: dict[Any, Any] = {}
        for k, v in value.items():
            if isinstance(k, str) and any(p in k.lower() for p in patterns):
                out[k] = _REDACTED
            else:
                out[k] = _redact_deep(v, patterns)
        return out
    if isinstance(value, (list, tuple)):
        return [_redact_deep(v, patterns) for v in value]
    if isinstance(value, str):
        return _scrub_bearer(value)
    return value


def _encode(record: dict[str, Any]) -> bytes:
    payload = dict(_redact_deep(record, _DEFAULT_REDACT_KEYS))
    meta = payload.get("_meta")
    payload["_meta"] = {**(meta if isinstance(meta, dict) else {}), "host": _HOSTNAME, "pid": _PID}
    # default=str keeps datetimes and other scalars loggable.
    line = json.dumps(payload, ensure_ascii=False, separators=(",", ":"), default=str)
    return (line + "\n").encode("utf-8")


def _append(path: str, data: bytes) -> None:
    fd = os.open(path, os.O_CREAT | os.O_APPEND | os.O_WRONLY, 0o644)
    try:
        os.write(fd, data)
    finally:
        os.close(fd)


def _write_jsonl(path: str, record: dict[str, Any]) -> None:
    """
    Serialize first, then rotate (optional) and append a single line with
    O_APPEND. One retry on OSError after re-creating the directory.
    """
    data = _encode(record)
    os.makedirs(os.path.dirname(path), exist_ok=True)
    _rotate_if_oversized(path)
    try:
        _append(path, data)
    except OSError:
        os.makedirs(os.path.dirname(path), exist_ok=True)
        _append(path, data)
