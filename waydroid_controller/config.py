"""Config loading/saving and validation.

The controller reads a single JSON file; every key is optional and falls
back to the defaults declared on the dataclasses in ``models``.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

import dacite

from .exceptions import (
    ConfigLoadError,
    ConfigSaveError,
    ConfigValidationError,
    record_error,
)
from .models import ControllerConfig, config_to_dict, load_config_from_dict

logger = logging.getLogger(__name__)

# Configuration file locations
CONFIG_DIR = Path.home() / ".config" / "waydroid-controller"
CONFIG_PATH = CONFIG_DIR / "config.json"

_DELAY_FIELDS = (
    "start_timeout_seconds",
    "post_start_app_list_delay_seconds",
    "remove_settle_seconds",
    "factory_reset_cooldown_seconds",
)


def get_config_dir() -> Path:
    """Get the configuration directory path."""
    return CONFIG_DIR


def get_config_path() -> Path:
    """Get the configuration file path."""
    return CONFIG_PATH


def validate_config(config: ControllerConfig) -> None:
    """Check values dacite cannot check by type alone.

    Raises:
        ConfigValidationError: If a value is out of range.
    """
    settings = config.settings
    for name in _DELAY_FIELDS:
        value = getattr(settings, name)
        if value < 0:
            raise ConfigValidationError(
                "Delay must not be negative",
                field=f"settings.{name}",
                value=value,
                expected=">= 0",
            )

    if settings.worker_threads < 1:
        raise ConfigValidationError(
            "At least one worker thread is required",
            field="settings.worker_threads",
            value=settings.worker_threads,
            expected=">= 1",
        )

    if not settings.ready_marker.strip():
        raise ConfigValidationError(
            "Ready marker must not be empty",
            field="settings.ready_marker",
        )


def load_config(path: Path | None = None) -> ControllerConfig:
    """
    Load controller configuration.

    Loads from ~/.config/waydroid-controller/config.json (or ``path``) if it
    exists, otherwise returns a default ControllerConfig.

    Args:
        path: Optional explicit config file path.

    Returns:
        ControllerConfig instance.

    Raises:
        ConfigLoadError: If the config file exists but cannot be parsed.
        ConfigValidationError: If the config has invalid structure or values.
    """
    config_path = path or CONFIG_PATH

    if not config_path.exists():
        logger.debug("No config found at %s, using defaults", config_path)
        return ControllerConfig()

    try:
        with open(config_path, encoding="utf-8") as f:
            data = json.load(f)
        logger.debug("Loaded config from %s", config_path)
    except json.JSONDecodeError as e:
        logger.error("Invalid JSON in config file: %s", e)
        record_error(e)
        raise ConfigLoadError(
            f"Invalid JSON in config file at line {e.lineno}",
            file_path=str(config_path),
            context={"line": e.lineno, "column": e.colno},
            cause=e,
        ) from e
    except OSError as e:
        logger.error("Failed to read config file: %s", e)
        record_error(e)
        raise ConfigLoadError(
            "Failed to read config file",
            file_path=str(config_path),
            cause=e,
        ) from e

    try:
        config = load_config_from_dict(data)
    except dacite.DaciteError as e:
        logger.error("Invalid config structure: %s", e)
        record_error(e)
        raise ConfigValidationError(
            f"Invalid config structure: {e}",
            context={"file_path": str(config_path)},
            cause=e,
        ) from e

    validate_config(config)
    return config


def save_config(config: ControllerConfig, path: Path | None = None) -> None:
    """
    Save controller configuration.

    Args:
        config: ControllerConfig instance to save.
        path: Optional explicit config file path.

    Raises:
        ConfigSaveError: If the config cannot be written.
    """
    config_path = path or CONFIG_PATH

    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, "w", encoding="utf-8") as f:
            json.dump(config_to_dict(config), f, indent=2)
        logger.debug("Saved config to %s", config_path)
    except OSError as e:
        logger.error("Failed to save config: %s", e)
        record_error(e)
        raise ConfigSaveError(
            "Failed to write config file",
            file_path=str(config_path),
            cause=e,
        ) from e
