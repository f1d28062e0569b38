"""Configuration management for apctray."""

import copy
import logging
import os
from pathlib import Path
from typing import Any

import yaml

from .nis.client import DEFAULT_APCACCESS_PATHS

logger = logging.getLogger(__name__)

MIN_POLLING_INTERVAL = 2
MAX_POLLING_INTERVAL = 3600

DEFAULT_CONFIG: dict[str, Any] = {
    "nis": {
        "host": "127.0.0.1",
        "port": 3551,
        "timeout": 3.0,
        "transport": "auto",  # auto | framed | stream
        "apcaccess_paths": list(DEFAULT_APCACCESS_PATHS),
    },
    "app": {
        "polling_interval": 10,
        "data_dir": "~/.apctray",
    },
    "alerts": {
        "enabled": True,
        # 127V / 60Hz grid
        "voltage_low": 105.0,
        "voltage_high": 140.0,
        "frequency_low": 58.0,
        "frequency_high": 62.0,
    },
    "battery": {
        "ups_nominal_watts": 600.0,
        "nominal_voltage": 24.0,
        "nominal_ah": 7.0,
        "assumed_power_factor": 0.65,
        "inverter_efficiency": 0.85,
        "smoothing_alpha": 0.3,
    },
    "telegram": {
        "enabled": False,
        "bot_token": None,
        "chat_id": None,
        "daily_log_hour": 8,
        "timeout": 10,
    },
    "metrics": {
        "enabled": True,
        "max_samples": 2880,
        "save_interval": 300,
        "file": "metrics.json",
    },
    "logging": {
        "level": "INFO",
        "file": None,
        "max_size": "10MB",
        "backup_count": 5,
    },
}


def load_config(config_path: str | None = None) -> dict[str, Any]:
    """Load configuration from file and environment."""
    if config_path is None:
        config_path = os.environ.get("APCTRAY_CONFIG")
        if config_path is None:
            for candidate in ["config.yaml", "config.local.yaml"]:
                if Path(candidate).exists():
                    config_path = candidate
                    break
            else:
                config_path = "config.yaml"  # Default even if doesn't exist

    config_file = Path(config_path)
    user_config = {}

    if config_file.exists():
        with open(config_file) as f:
            user_config = yaml.safe_load(f) or {}

    config = _deep_merge(copy.deepcopy(DEFAULT_CONFIG), user_config)
    _apply_env_overrides(config)
    return normalize_config(config)


def save_config(config: dict[str, Any], config_path: str = "config.yaml") -> None:
    """Save configuration to YAML file."""
    with open(config_path, "w") as f:
        yaml.dump(config, f, default_flow_style=False, indent=2)


def _deep_merge(base: dict, override: dict) -> dict:
    """Deep merge two dictionaries."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _apply_env_overrides(config: dict[str, Any]) -> None:
    host = os.environ.get("APCCTRL_HOST")
    if host:
        config["nis"]["host"] = host

    port = os.environ.get("APCCTRL_PORT")
    if port:
        try:
            config["nis"]["port"] = int(port)
        except ValueError:
            logger.warning(f"Ignoring invalid APCCTRL_PORT: {port!r}")


def _clamp(value: Any, low: float, high: float, default: float) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    return max(low, min(high, number))


def normalize_config(config: dict[str, Any]) -> dict[str, Any]:
    """Clamp numeric settings into their valid ranges, in place."""
    app = config["app"]
    app["polling_interval"] = _clamp(
        app.get("polling_interval"), MIN_POLLING_INTERVAL, MAX_POLLING_INTERVAL, 10
    )

    nis = config["nis"]
    nis["transport"] = str(nis.get("transport") or "auto").lower()
    nis["timeout"] = _clamp(nis.get("timeout"), 0.1, 60.0, 3.0)

    battery = config["battery"]
    battery["ups_nominal_watts"] = _clamp(battery.get("ups_nominal_watts"), 50, float("inf"), 600.0)
    battery["nominal_voltage"] = _clamp(battery.get("nominal_voltage"), 6, float("inf"), 24.0)
    battery["nominal_ah"] = _clamp(battery.get("nominal_ah"), 1, float("inf"), 7.0)
    battery["assumed_power_factor"] = _clamp(battery.get("assumed_power_factor"), 0.4, 1.0, 0.65)
    battery["inverter_efficiency"] = _clamp(battery.get("inverter_efficiency"), 0.1, 1.0, 0.85)
    battery["smoothing_alpha"] = _clamp(battery.get("smoothing_alpha"), 0.01, 1.0, 0.3)

    alerts = config["alerts"]
    defaults = DEFAULT_CONFIG["alerts"]
    for low_key, high_key in (("voltage_low", "voltage_high"), ("frequency_low", "frequency_high")):
        try:
            low = float(alerts[low_key])
            high = float(alerts[high_key])
        except (KeyError, TypeError, ValueError):
            low, high = float("nan"), float("nan")
        if not low < high:
            logger.warning(
                f"Invalid alert range {low_key}={alerts.get(low_key)} {high_key}={alerts.get(high_key)}, "
                "using defaults"
            )
            low, high = defaults[low_key], defaults[high_key]
        alerts[low_key] = low
        alerts[high_key] = high

    telegram = config["telegram"]
    telegram["daily_log_hour"] = int(_clamp(telegram.get("daily_log_hour"), 0, 23, 8))

    return config


def data_dir(config: dict[str, Any]) -> Path:
    """Application data directory (state and metrics files)."""
    return Path(str(config["app"].get("data_dir") or "~/.apctray")).expanduser()
