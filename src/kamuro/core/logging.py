"""
Logging configuration.

We use a YAML logging config (`src/kamuro/config/logging.yaml`) and then apply
runtime overrides from settings (e.g., `KAMURO_LOG_LEVEL`).
"""

from __future__ import annotations

import logging.config

from kamuro.config.settings import get_logging_config, get_settings


def configure_logging() -> None:
    """Configure the Python logging system based on packaged YAML config + settings."""
    settings = get_settings()
    # Copy so the cached config is never mutated across calls.
    config = dict(get_logging_config())
    config["root"] = dict(config.get("root", {}))
    config["handlers"] = {
        name: dict(handler) if isinstance(handler, dict) else handler
        for name, handler in config.get("handlers", {}).items()
    }

    level = settings.app.log_level.upper()
    config["root"]["level"] = level
    for handler in config["handlers"].values():
        if isinstance(handler, dict) and "level" in handler:
            handler["level"] = level

    logging.config.dictConfig(config)
