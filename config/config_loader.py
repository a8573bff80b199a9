"""Load settings.yaml into typed dataclasses."""

import logging
import os
from dataclasses import dataclass
from pathlib import Path

import yaml

from roundkeeper.models import ResponsePolicy, ScreenMode

logger = logging.getLogger(__name__)

_SETTINGS_PATH = Path(__file__).parent / "settings.yaml"

SETTINGS_ENV = "ROUNDKEEPER_SETTINGS"


@dataclass
class ResumptionConfig:
    trigger_clear_delay_sec: float = 0.1
    search_timeout_sec: float = 10.0
    empty_unknown_counts_as_responded: bool = False

    def response_policy(self) -> ResponsePolicy:
        return ResponsePolicy(empty_unknown_counts_as_responded=self.empty_unknown_counts_as_responded)


@dataclass
class FlowConfig:
    screen_mode: ScreenMode = ScreenMode.THREAD


@dataclass
class AppConfig:
    resumption: ResumptionConfig
    flow: FlowConfig


def default_settings_path() -> Path:
    """ROUNDKEEPER_SETTINGS if set, else the bundled settings.yaml."""
    override = os.environ.get(SETTINGS_ENV, "").strip()
    return Path(override) if override else _SETTINGS_PATH


def load_config(settings_path: Path | None = None) -> AppConfig:
    """Load and validate configuration from settings.yaml.

    Raises FileNotFoundError if the settings file is missing and ValueError
    if a value has the wrong shape. Missing sections fall back to defaults.
    """
    settings_path = settings_path if settings_path is not None else default_settings_path()
    if not settings_path.exists():
        raise FileNotFoundError(f"Settings file not found: {settings_path}")

    with settings_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    resumption_raw = raw.get("resumption", {}) or {}
    delay_ms = float(resumption_raw.get("trigger_clear_delay_ms", 100))
    if delay_ms <= 0:
        raise ValueError(f"trigger_clear_delay_ms must be positive, got {delay_ms}")
    resumption = ResumptionConfig(
        trigger_clear_delay_sec=delay_ms / 1000.0,
        search_timeout_sec=float(resumption_raw.get("search_timeout_sec", 10)),
        empty_unknown_counts_as_responded=bool(
            resumption_raw.get("empty_unknown_counts_as_responded", False)
        ),
    )

    flow_raw = raw.get("flow", {}) or {}
    flow = FlowConfig(screen_mode=ScreenMode(flow_raw.get("screen_mode", ScreenMode.THREAD.value)))

    logger.debug(
        "Loaded settings from %s: clear delay %.3fs, search timeout %.1fs",
        settings_path, resumption.trigger_clear_delay_sec, resumption.search_timeout_sec,
    )
    return AppConfig(resumption=resumption, flow=flow)
