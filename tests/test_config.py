"""Tests for config/config_loader.py."""

from pathlib import Path

import pytest
import yaml

from config.config_loader import AppConfig, ResumptionConfig, default_settings_path, load_config
from roundkeeper.models import ResponsePolicy, ScreenMode


@pytest.fixture
def minimal_settings(tmp_path: Path) -> Path:
    """Write a minimal valid settings.yaml to a temp path."""
    settings = {
        "resumption": {
            "trigger_clear_delay_ms": 250,
            "search_timeout_sec": 15,
            "empty_unknown_counts_as_responded": True,
        },
        "flow": {"screen_mode": "overview"},
    }
    path = tmp_path / "settings.yaml"
    path.write_text(yaml.dump(settings), encoding="utf-8")
    return path


def test_load_config_returns_app_config(minimal_settings):
    assert isinstance(load_config(minimal_settings), AppConfig)


def test_load_config_resumption(minimal_settings):
    config = load_config(minimal_settings)
    assert config.resumption.trigger_clear_delay_sec == pytest.approx(0.25)
    assert config.resumption.search_timeout_sec == 15.0
    assert config.resumption.empty_unknown_counts_as_responded is True
    assert config.resumption.response_policy() == ResponsePolicy(empty_unknown_counts_as_responded=True)


def test_load_config_flow(minimal_settings):
    assert load_config(minimal_settings).flow.screen_mode == ScreenMode.OVERVIEW


def test_load_config_missing_sections_use_defaults(tmp_path: Path):
    path = tmp_path / "settings.yaml"
    path.write_text("", encoding="utf-8")
    config = load_config(path)
    assert config.resumption == ResumptionConfig()
    assert config.flow.screen_mode == ScreenMode.THREAD


def test_load_config_missing_file(tmp_path: Path):
    with pytest.raises(FileNotFoundError, match="Settings file not found"):
        load_config(tmp_path / "nope.yaml")


def test_load_config_rejects_non_positive_delay(tmp_path: Path):
    path = tmp_path / "settings.yaml"
    path.write_text(yaml.dump({"resumption": {"trigger_clear_delay_ms": 0}}), encoding="utf-8")
    with pytest.raises(ValueError, match="trigger_clear_delay_ms"):
        load_config(path)


def test_load_config_rejects_unknown_screen_mode(tmp_path: Path):
    path = tmp_path / "settings.yaml"
    path.write_text(yaml.dump({"flow": {"screen_mode": "sideways"}}), encoding="utf-8")
    with pytest.raises(ValueError):
        load_config(path)


def test_bundled_settings_load(monkeypatch):
    monkeypatch.delenv("ROUNDKEEPER_SETTINGS", raising=False)
    config = load_config()
    assert config.resumption.trigger_clear_delay_sec == pytest.approx(0.1)
    assert config.resumption.search_timeout_sec == 10.0
    assert config.resumption.empty_unknown_counts_as_responded is False


def test_settings_env_override(monkeypatch, minimal_settings):
    monkeypatch.setenv("ROUNDKEEPER_SETTINGS", str(minimal_settings))
    assert default_settings_path() == minimal_settings
    assert load_config().flow.screen_mode == ScreenMode.OVERVIEW
