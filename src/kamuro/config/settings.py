# src/kamuro/config/settings.py
"""
Application settings (Pydantic).

Settings are loaded from `src/kamuro/config/defaults.yaml`, then optionally overridden by:
- an external YAML file via `KAMURO_CONFIG_PATH`
- a small whitelist of environment variables (e.g., `KAMURO_LOG_LEVEL`)

Design rule:
- Physical constants and map framing knobs live in YAML, not hard-coded in business logic.
"""

from __future__ import annotations

import os
from functools import lru_cache
from importlib import resources
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

from kamuro.core.env import load_dotenv_if_present
from kamuro.domain.models import Coordinate


def _read_package_yaml(filename: str) -> dict[str, Any]:
    """Read a YAML file packaged inside `kamuro.config`."""
    text = resources.files("kamuro.config").joinpath(filename).read_text(encoding="utf-8")
    data = yaml.safe_load(text) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Invalid YAML root object for {filename}; expected a mapping.")
    return data


def _read_yaml_file(path: str | Path) -> dict[str, Any]:
    """Read a YAML file from disk and return its mapping root."""
    data = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Invalid YAML root object for {path}; expected a mapping.")
    return data


class AppSettings(BaseModel):
    name: str = "Kamuro"
    log_level: str = "INFO"


class AcousticsSettings(BaseModel):
    base_sound_speed_mps: float = 331.5
    sound_speed_per_celsius: float = 0.6


class ViewportSettings(BaseModel):
    default_center: Coordinate = Field(
        default_factory=lambda: Coordinate(latitude=35.6812, longitude=139.7671)
    )
    picking_span_deg: float = Field(0.05, gt=0)
    search_result_span_deg: float = Field(0.01, gt=0)
    meters_per_degree: float = Field(111_000, gt=0)
    result_margin: float = Field(2.5, gt=0)
    min_span_deg: float = Field(0.001, gt=0)


class LocationSettings(BaseModel):
    enabled: bool = True
    accuracy_m: float = Field(100, gt=0)
    permission_denied_message: str = "Location access is not permitted"
    ip_lookup_url: str = "https://ipapi.co/json/"
    poll_interval_seconds: float = Field(30, gt=0)
    http_timeout_seconds: float = Field(6, gt=0)


class SearchSettings(BaseModel):
    base_url: str = "https://nominatim.openstreetmap.org/search"
    limit: int = Field(10, ge=1, le=50)
    timeout_seconds: float = Field(10, gt=0)
    user_agent: str = "kamuro/0.1.0 (+https://local)"
    accept_language: str | None = None


class DispatchSettings(BaseModel):
    queue_maxsize: int = Field(256, ge=1)


class Settings(BaseModel):
    app: AppSettings = Field(default_factory=AppSettings)
    acoustics: AcousticsSettings = Field(default_factory=AcousticsSettings)
    viewport: ViewportSettings = Field(default_factory=ViewportSettings)
    location: LocationSettings = Field(default_factory=LocationSettings)
    search: SearchSettings = Field(default_factory=SearchSettings)
    dispatch: DispatchSettings = Field(default_factory=DispatchSettings)


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    """Overlay selected environment variables onto raw settings payload.

    Note: We keep this whitelist small; anything else belongs in a YAML file.
    """
    load_dotenv_if_present()
    data = dict(data)

    log_level = os.getenv("KAMURO_LOG_LEVEL")
    if log_level:
        data.setdefault("app", {})["log_level"] = log_level

    search_url = os.getenv("KAMURO_SEARCH_BASE_URL")
    if search_url:
        data.setdefault("search", {})["base_url"] = search_url

    user_agent = os.getenv("KAMURO_SEARCH_USER_AGENT")
    if user_agent:
        data.setdefault("search", {})["user_agent"] = user_agent

    return data


@lru_cache
def get_settings() -> Settings:
    """Load and validate settings (cached)."""
    load_dotenv_if_present()
    config_path = os.getenv("KAMURO_CONFIG_PATH")
    raw = _read_yaml_file(config_path) if config_path else _read_package_yaml("defaults.yaml")
    raw = _apply_env_overrides(raw)
    return Settings.model_validate(raw)


@lru_cache
def get_logging_config() -> dict[str, Any]:
    """Load logging configuration (cached)."""
    return _read_package_yaml("logging.yaml")
