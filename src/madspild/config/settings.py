# src/madspild/config/settings.py
"""
Application settings (Pydantic).

Settings are loaded from `src/madspild/config/defaults.yaml`, then optionally overridden by:
- environment variables (e.g., `SALLING_API_KEY`, `MADSPILD_LOG_LEVEL`)
- an external YAML file via `MADSPILD_CONFIG_PATH`

Design rule:
- Tuning knobs (radius caps, buffer factor, quick filters) live in YAML, not in business logic.
"""

from __future__ import annotations

import os
from functools import lru_cache
from importlib import resources
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

from madspild.core.env import load_dotenv_if_present
from madspild.domain.models import GeoPoint, QuickFilter


def _read_package_yaml(filename: str) -> dict[str, Any]:
    """Read a YAML file packaged inside `madspild.config`."""
    text = resources.files("madspild.config").joinpath(filename).read_text(encoding="utf-8")
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
    name: str = "Madspild"
    http_timeout_seconds: float = 15
    log_level: str = "INFO"
    user_agent: str = "madspild/0.1.0 (+https://local)"


class SearchSettings(BaseModel):
    default_center: GeoPoint = Field(default_factory=lambda: GeoPoint(lat=55.6761, lon=12.5683))
    initial_radius_km: float = Field(10, gt=0)
    location_radius_km: float = Field(5, gt=0)
    viewport_buffer_factor: float = Field(1.2, ge=1)
    max_radius_km: float = Field(25, gt=0)
    min_radius_km: float = Field(1, gt=0)


class FoodWasteSettings(BaseModel):
    base_url: str = "https://api.sallinggroup.com/v1/food-waste/"
    # When set, the client calls the same-origin proxy and never sends the credential.
    proxy_url: str | None = None
    api_key: str | None = None


class GeocoderSettings(BaseModel):
    base_url: str = "https://nominatim.openstreetmap.org/search"
    country: str = "Denmark"


class GeolocationSettings(BaseModel):
    fallback_position: GeoPoint | None = None


class FilterSettings(BaseModel):
    quick_filters: list[QuickFilter] = Field(default_factory=list)
    quick_filters_shown: int = Field(10, ge=0)


class Settings(BaseModel):
    app: AppSettings = Field(default_factory=AppSettings)
    search: SearchSettings = Field(default_factory=SearchSettings)
    food_waste: FoodWasteSettings = Field(default_factory=FoodWasteSettings)
    geocoder: GeocoderSettings = Field(default_factory=GeocoderSettings)
    geolocation: GeolocationSettings = Field(default_factory=GeolocationSettings)
    filters: FilterSettings = Field(default_factory=FilterSettings)


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    """Overlay selected environment variables onto raw settings payload.

    Note: We intentionally keep this whitelist small to avoid exposing unsafe overrides.
    """
    load_dotenv_if_present()
    data = dict(data)

    log_level = os.getenv("MADSPILD_LOG_LEVEL")
    if log_level:
        data.setdefault("app", {})["log_level"] = log_level

    api_key = os.getenv("SALLING_API_KEY") or os.getenv("VITE_SALLING_API_KEY")
    if api_key:
        data.setdefault("food_waste", {})["api_key"] = api_key

    base_url = os.getenv("MADSPILD_FOOD_WASTE_BASE_URL")
    if base_url:
        data.setdefault("food_waste", {})["base_url"] = base_url

    proxy_url = os.getenv("MADSPILD_FOOD_WASTE_PROXY_URL")
    if proxy_url:
        data.setdefault("food_waste", {})["proxy_url"] = proxy_url

    return data


@lru_cache
def get_settings() -> Settings:
    """Load and validate settings (cached)."""
    load_dotenv_if_present()
    config_path = os.getenv("MADSPILD_CONFIG_PATH")
    raw = _read_yaml_file(config_path) if config_path else _read_package_yaml("defaults.yaml")
    raw = _apply_env_overrides(raw)
    return Settings.model_validate(raw)


@lru_cache
def get_logging_config() -> dict[str, Any]:
    """Load logging configuration (cached)."""
    return _read_package_yaml("logging.yaml")
