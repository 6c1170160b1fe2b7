# tests/test_config.py
from __future__ import annotations

import json

import pytest

from courierboard.utils import config
from courierboard.utils.config import ConfigError, backend_settings, debounce_ms, load_settings, realtime_enabled


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch, tmp_path):
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))
    for name in (config.ENV_URL, config.ENV_KEY, config.ENV_DEBOUNCE, config.ENV_REALTIME):
        monkeypatch.delenv(name, raising=False)


def test_defaults_without_settings_file():
    s = load_settings()
    assert s["autosave"]["debounce_ms"] == 1500
    assert debounce_ms(s) == 1500
    with pytest.raises(ConfigError):
        backend_settings(s)


def test_settings_file_merges_over_defaults(tmp_path):
    path = tmp_path / "courierboard" / "settings.json"
    config.save_settings({"backend": {"url": "https://x.supabase.co/", "anon_key": "k"}}, path)

    s = load_settings(path)
    b = backend_settings(s)
    assert b.url == "https://x.supabase.co"
    assert b.anon_key == "k"
    assert s["autosave"]["debounce_ms"] == 1500


def test_environment_wins_over_file(monkeypatch, tmp_path):
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"backend": {"url": "https://file", "anon_key": "file-key"}}))
    monkeypatch.setenv(config.ENV_URL, "https://env.supabase.co")
    monkeypatch.setenv(config.ENV_DEBOUNCE, "400")

    s = load_settings(path)
    b = backend_settings(s)
    assert b.url == "https://env.supabase.co"
    assert b.anon_key == "file-key"
    assert debounce_ms(s) == 400


def test_unreadable_settings_fall_back_to_defaults(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text("{not json")
    assert load_settings(path)["autosave"]["debounce_ms"] == 1500


@pytest.mark.parametrize("raw", ["soon", "-5"])
def test_bad_debounce_is_rejected(monkeypatch, raw):
    monkeypatch.setenv(config.ENV_DEBOUNCE, raw)
    with pytest.raises(ConfigError):
        debounce_ms({})



def test_realtime_is_on_by_default():
    assert realtime_enabled({}) is True
    assert realtime_enabled(load_settings()) is True


def test_realtime_can_be_turned_off(monkeypatch):
    assert realtime_enabled({"realtime": {"enabled": False}}) is False
    monkeypatch.setenv(config.ENV_REALTIME, "off")
    assert realtime_enabled({"realtime": {"enabled": True}}) is False
    monkeypatch.setenv(config.ENV_REALTIME, "1")
    assert realtime_enabled({"realtime": {"enabled": False}}) is True


def test_saved_geometry_survives_a_reload(tmp_path):
    path = tmp_path / "settings.json"
    s = load_settings(path)
    s["main_window"].update(width=1400, height=900, is_maximized=True)
    config.save_settings(s, path)

    again = load_settings(path)
    assert again["main_window"] == {"width": 1400, "height": 900, "is_maximized": True}
