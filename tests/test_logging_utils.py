# tests/test_logging_utils.py
import glob
import json
import logging
import os

from modules.job_harvest.lib import logging_bridge
from service import logging_utils


def _read(path):
    with open(path, encoding="utf-8") as f:
        return [json.loads(line) for line in f if line.strip()]


def test_activity_record_is_redacted_and_tagged():
    record = {
        "event": "sample",
        "password": "hunter2",
        "nested": {"api_key": "k-123", "ok": 1},
        "auth_header": "Bearer abc.def",
    }

    logging_utils.write_activity_log(record)

    (line,) = _read(logging_utils.get_activity_log_path())
    assert line["event"] == "sample"
    assert line["password"] == "***REDACTED***"
    assert line["nested"] == {"api_key": "***REDACTED***", "ok": 1}
    assert line["auth_header"] == "Bearer ***REDACTED***"
    assert line["_meta"]["pid"] == os.getpid()
    # caller's dict is untouched
    assert record["password"] == "hunter2"


def test_error_log_is_separate_file():
    logging_utils.write_error_log({"where": "test", "error": "boom"})

    assert os.path.basename(logging_utils.get_error_log_path()).startswith("error-test-")
    assert _read(logging_utils.get_error_log_path())[0]["error"] == "boom"
    assert not os.path.exists(logging_utils.get_activity_log_path())


def test_size_rotation(monkeypatch):
    monkeypatch.setenv("ACTIVITY_LOG_MAX_BYTES", "10")

    logging_utils.write_activity_log({"event": "first"})
    logging_utils.write_activity_log({"event": "second"})

    path = logging_utils.get_activity_log_path()
    assert [r["event"] for r in _read(path)] == ["second"]
    assert len(glob.glob(path + ".*")) == 1


def test_redact_helper_accepts_custom_keys():
    out = logging_utils.redact({"Session": "s", "user": "u"}, keys=["session"])
    assert out == {"Session": "***REDACTED***", "user": "u"}


def test_bridge_redacts_and_writes():
    logging_bridge.activity({"component": "job_harvest.test", "op": "x", "proxy": "http://u:p@host"})

    (line,) = _read(logging_utils.get_activity_log_path())
    assert line["proxy"] == "***REDACTED***"
    assert line["component"] == "job_harvest.test"


def test_bridge_falls_back_to_stdlib_logging(monkeypatch, caplog):
    def broken(record):
        raise OSError("disk full")

    monkeypatch.setattr(logging_utils, "write_error_log", broken)
    caplog.set_level(logging.ERROR, logger="job_harvest.error")

    logging_bridge.error({"component": "job_harvest.test", "op": "fallback"})

    assert any(r.name == "job_harvest.error" for r in caplog.records)
