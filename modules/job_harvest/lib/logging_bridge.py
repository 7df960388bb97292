from __future__ import annotations

import logging
from typing import Any

from service import logging_utils

# Top-level keys scrubbed before anything leaves the module.
_REDACT_KEYS = {
    "password",
    "token",
    "apikey",
    "api_key",
    "secret",
    "authorization",
    "cookie",
    "proxy",
}


def _redact_record(record: dict[str, Any]) -> dict[str, Any]:
    out = dict(record)
    for k in list(out):
        lk = str(k).lower()
        if lk in _REDACT_KEYS or lk.endswith("_secret") or lk.endswith("_token"):
            out[k] = "***REDACTED***"
    return out


def activity(record: dict[str, Any]) -> None:
    """
    Write an activity record through service.logging_utils.
    Falls back to stdlib logging if the JSONL sink fails.
    """
    payload = _redact_record(record)
    try:
        logging_utils.write_activity_log(payload)
    except (OSError, TypeError, ValueError):
        logging.getLogger("job_harvest.activity").info(payload, exc_info=True)


def error(record: dict[str, Any]) -> None:
    """
    Write an error record through service.logging_utils.
    Falls back to stdlib logging if the JSONL sink fails.
    """
    payload = _redact_record(record)
    try:
        logging_utils.write_error_log(payload)
    except (OSError, TypeError, ValueError):
        logging.getLogger("job_harvest.error").error(payload, exc_info=True)
