"""Utilities for loading engine configuration files."""

from __future__ import annotations

import copy
import os
from pathlib import Path
from typing import Any, Dict, Mapping

import yaml

DEFAULT_SETTINGS_PATH = Path(__file__).resolve().parents[1] / "config" / "settings.yaml"
SETTINGS_ENV = "AUTOSCRIPT_SETTINGS"
ARTIFACT_ROOT_ENV = "AUTOSCRIPT_ARTIFACT_ROOT"

DEFAULT_SETTINGS: Dict[str, Any] = {
    "browser": {
        "headless": True,
        "slow_mo": 0,
        "viewport": {"width": 1280, "height": 720},
        "user_agent": (
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
        ),
        "launch_args": [
            "--disable-gpu",
            "--disable-dev-shm-usage",
            "--no-sandbox",
            "--disable-setuid-sandbox",
        ],
    },
    "timeouts": {
        "navigation_ms": 30000,
        "selector_ms": 10000,
        "wait_default_ms": 1000,
        "wait_extra_ms": 5000,
    },
    "stability": {
        "network_idle_ms": 500,
        "network_max_wait_ms": 4000,
        "animation_cap_ms": 2000,
    },
    "execution": {
        "inter_step_delay_ms": 750,
        "scroll_settle_ms": 500,
    },
    "storage": {
        "artifact_root": "artifacts",
        "screenshot_sinks": ["datastore", "filesystem", "inline"],
    },
    "logging": {
        "level": "INFO",
        "log_dir": None,
    },
}


def merge_settings(base: Mapping[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    """Recursively merge ``override`` on top of ``base`` without mutating either."""

    merged: Dict[str, Any] = copy.deepcopy(dict(base))
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            merged[key] = merge_settings(current, value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def load_settings(path: Path | None = None) -> Dict[str, Any]:
    """Return parsed settings YAML merged over the built-in defaults.

    An explicit ``path`` (or ``AUTOSCRIPT_SETTINGS``) must exist. When neither is
    given and the bundled settings file is absent, the defaults are returned.
    """

    env_path = os.environ.get(SETTINGS_ENV)
    explicit = path or (Path(env_path) if env_path else None)
    file_path = explicit or DEFAULT_SETTINGS_PATH
    data: Dict[str, Any] = {}
    if file_path.exists():
        with file_path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    elif explicit is not None:
        raise FileNotFoundError(f"Missing settings file at {file_path}")
    if not isinstance(data, Mapping):
        raise ValueError(f"Settings file {file_path} must contain a mapping")
    settings = merge_settings(DEFAULT_SETTINGS, data)
    artifact_root = os.environ.get(ARTIFACT_ROOT_ENV)
    if artifact_root:
        settings["storage"]["artifact_root"] = artifact_root
    return settings
