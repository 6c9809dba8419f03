"""
telemdash - Settings
=====================

Runtime configuration shared read-only by the event producers, with JSON
persistence:

    {
      "exit_key": "q",
      "tick_interval": 0.25,
      "last_saved": "2024-05-01T12:00:00"
    }
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, replace
from datetime import datetime

logger = logging.getLogger(__name__)

SETTINGS_FILE = "telemdash_settings.json"


@dataclass(frozen=True)
class Config:
    exit_key: str = "q"
    tick_interval: float = 0.25

    def __post_init__(self):
        if not isinstance(self.exit_key, str) or not self.exit_key:
            raise ValueError(f"exit_key must be a non-empty string, got {self.exit_key!r}")
        if not isinstance(self.tick_interval, (int, float)) or self.tick_interval <= 0:
            raise ValueError(f"tick_interval must be positive, got {self.tick_interval!r}")


def load_config(path: str = SETTINGS_FILE) -> Config:
    """Load settings from JSON, falling back to defaults on any invalid value."""
    config = Config()
    if not os.path.exists(path):
        return config
    try:
        with open(path, "r") as f:
            settings = json.load(f)
    except json.JSONDecodeError as e:
        logger.error(f"Invalid JSON in settings: {e}")
        return config
    except OSError as e:
        logger.error(f"Failed to load settings: {e}")
        return config
    if not isinstance(settings, dict):
        logger.error(f"Settings in {path} must be a JSON object")
        return config

    for field_name in ("exit_key", "tick_interval"):
        if field_name not in settings:
            continue
        try:
            config = replace(config, **{field_name: settings[field_name]})
        except ValueError as e:
            logger.error(f"Ignoring setting {field_name}: {e}")
    logger.info(f"Settings loaded from {path}")
    return config


def save_config(config: Config, path: str = SETTINGS_FILE) -> None:
    settings = {
        "exit_key": config.exit_key,
        "tick_interval": config.tick_interval,
        "last_saved": datetime.now().isoformat(),
    }
    with open(path, "w") as f:
        json.dump(settings, f, indent=2)
    logger.info(f"Settings saved to {path}")
