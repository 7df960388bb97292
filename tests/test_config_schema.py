# tests/test_config_schema.py
import json

import pytest

from modules.job_harvest.lib.config import DEFAULT_SOURCES, ConfigError, Settings, SourceSpec
from service import config_schema


def test_defaults_without_config_path():
    cfg = config_schema.load_config()
    assert cfg["scheduler"] == {"interval_hours": 6, "keywords": None, "location": None, "autostart": True}
    assert cfg["job_harvest"] == {}


def test_load_yaml_merges_scheduler_defaults(tmp_path, monkeypatch):
    p = tmp_path / "config.yaml"
    p.write_text(
        "timezone: Europe/Oslo\n"
        "scheduler:\n"
        "  interval_hours: 2\n"
        "  keywords: utvikler\n"
        "job_harvest:\n"
        "  sources: [finn.no, adecco]\n"
        "  source_timeouts:\n"
        "    adecco: 90\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("CONFIG_PATH", str(p))

    cfg = config_schema.load_config()

    assert cfg["timezone"] == "Europe/Oslo"
    assert cfg["scheduler"]["interval_hours"] == 2
    assert cfg["scheduler"]["keywords"] == "utvikler"
    assert cfg["scheduler"]["autostart"] is True
    assert cfg["job_harvest"]["sources"] == ["finn.no", "adecco"]


def test_load_json_by_explicit_path(tmp_path):
    p = tmp_path / "config.json"
    p.write_text(json.dumps({"scheduler": {"interval_hours": 0.5, "autostart": False}}), encoding="utf-8")

    cfg = config_schema.load_config(str(p))

    assert cfg["scheduler"]["interval_hours"] == 0.5
    assert cfg["scheduler"]["autostart"] is False


@pytest.mark.parametrize(
    "scheduler",
    [
        {"interval_hours": 0},
        {"interval_hours": -1},
        {"interval_hours": True},
        {"interval_hours": "6"},
        {"autostart": "yes"},
        {"keywords": 5},
        {"cron": "0 * * * *"},
    ],
)
def test_invalid_scheduler_values(tmp_path, scheduler):
    p = tmp_path / "bad.json"
    p.write_text(json.dumps({"scheduler": scheduler}), encoding="utf-8")
    with pytest.raises(config_schema.ConfigError):
        config_schema.load_config(str(p))


def test_invalid_module_section(tmp_path):
    p = tmp_path / "bad.json"
    p.write_text(json.dumps({"job_harvest": {"source_timeouts": {"finn.no": 0}}}), encoding="utf-8")
    with pytest.raises(config_schema.ConfigError):
        config_schema.load_config(str(p))


def test_missing_or_unparseable_file(tmp_path):
    with pytest.raises(config_schema.ConfigError):
        config_schema.load_config(str(tmp_path / "missing.yaml"))

    p = tmp_path / "broken.yaml"
    p.write_text("scheduler: [unclosed\n", encoding="utf-8")
    with pytest.raises(config_schema.ConfigError):
        config_schema.load_config(str(p))


# ---- Module Settings ----------------------------------------------------------


def test_settings_defaults():
    s = Settings.from_env_and_kwargs({})
    assert [spec.source for spec in s.selected_sources()] == list(DEFAULT_SOURCES)
    assert s.timeout_for("finn.no") == 35
    assert s.timeout_for("adecco") == 60
    assert s.timeout_for("unknown") == 45
    assert s.cache_ttl_sec == 1200
    assert s.headless is True
    assert s.notifications_enabled is True


def test_settings_env_fallbacks(monkeypatch):
    monkeypatch.setenv("JOB_HARVEST_DB_PATH", "/tmp/env.db")
    monkeypatch.setenv("JOB_HARVEST_SOURCES", "finn.no, karriere")
    monkeypatch.setenv("ENABLE_JOB_NOTIFICATIONS", "false")
    monkeypatch.setenv("JOB_HARVEST_HEADLESS", "0")

    s = Settings.from_env_and_kwargs(None)

    assert s.sqlite_path == "/tmp/env.db"
    assert [spec.kind for spec in s.selected_sources()] == ["finn.no", "karriere"]
    assert s.notifications_enabled is False
    assert s.headless is False


def test_settings_kwargs_beat_env(monkeypatch):
    monkeypatch.setenv("JOB_HARVEST_SOURCES", "finn.no")
    monkeypatch.setenv("ENABLE_JOB_NOTIFICATIONS", "false")

    s = Settings.from_env_and_kwargs(
        {
            "sources": [{"kind": "stub", "source": "alpha", "params": {"items": []}}],
            "notifications_enabled": True,
            "source_timeouts": {"alpha": 5},
        }
    )

    assert s.selected_sources() == [SourceSpec(kind="stub", source="alpha", params={"items": []})]
    assert s.notifications_enabled is True
    assert s.timeout_for("alpha") == 5


def test_settings_sources_file(tmp_path):
    p = tmp_path / "sources.json"
    p.write_text(json.dumps([{"kind": "finn.no"}, {"kind": "stub", "source": "dry"}]), encoding="utf-8")

    s = Settings.from_env_and_kwargs({"sources_path": str(p)})

    assert [(x.kind, x.source) for x in s.selected_sources()] == [("finn.no", "finn.no"), ("stub", "dry")]


@pytest.mark.parametrize(
    "kwargs",
    [
        {"sources": ["finn.no", "finn.no"]},
        {"sources": [{"source": "no-kind"}]},
        {"sources": [42]},
        {"source_timeouts": {"finn.no": -1}},
        {"source_timeouts": ["finn.no"]},
        {"default_timeout_sec": "soon"},
        {"cache_ttl_sec": -5},
        {"sources_path": "/nonexistent/sources.json"},
    ],
)
def test_settings_rejects_invalid(kwargs):
    with pytest.raises(ConfigError):
        Settings.from_env_and_kwargs(kwargs)
