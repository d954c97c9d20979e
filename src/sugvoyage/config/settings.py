# src/sugvoyage/config/settings.py
"""
Application settings (Pydantic).

Settings are loaded from `src/sugvoyage/config/defaults.yaml`, then optionally overridden by:
- an external YAML file via `SUGVOYAGE_CONFIG_PATH` (replaces the packaged defaults)
- a small whitelist of environment variables (e.g., `SUGVOYAGE_COOLDOWN_SECONDS`)

Design rule:
- Cooldowns, intervals and radii live in YAML, not as literals at each call site.
"""

from __future__ import annotations

import os
from functools import lru_cache
from importlib import resources
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, model_validator

from sugvoyage.core.env import load_dotenv_if_present


def _read_package_yaml(filename: str) -> dict[str, Any]:
    """Read a YAML file packaged inside `sugvoyage.config`."""
    text = resources.files("sugvoyage.config").joinpath(filename).read_text(encoding="utf-8")
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
    name: str = "SugVoyage"
    timezone: str = "Asia/Manila"
    log_level: str = "INFO"


DEFAULT_FETCH_TIMEOUT_SECONDS = 3.0


class CatalogSettings(BaseModel):
    path: str = "data/catalogs/spots.json"
    api_url: str = "http://localhost:3000/api/spots"
    refresh_seconds: float = Field(60, ge=0)
    # None: DEFAULT_FETCH_TIMEOUT_SECONDS, shortened to fit the cooldown.
    fetch_timeout_seconds: float | None = Field(None, gt=0)


class ProximitySettings(BaseModel):
    default_radius_m: float = Field(1000, ge=0)
    cooldown_seconds: float = Field(5, gt=0)
    poll_interval_seconds: float = Field(5, gt=0)
    max_spots_in_payload: int = Field(5, ge=1)
    grid_cell_size_m: float = Field(1200, gt=0)


class RecommendationSettings(BaseModel):
    fallback_enabled: bool = False
    fallback_limit: int = Field(10, ge=1)


class Settings(BaseModel):
    app: AppSettings = Field(default_factory=AppSettings)
    catalog: CatalogSettings = Field(default_factory=CatalogSettings)
    proximity: ProximitySettings = Field(default_factory=ProximitySettings)
    recommendations: RecommendationSettings = Field(default_factory=RecommendationSettings)

    @model_validator(mode="after")
    def _fetch_fits_in_cooldown(self) -> "Settings":
        cooldown = self.proximity.cooldown_seconds
        if self.catalog.fetch_timeout_seconds is None:
            self.catalog.fetch_timeout_seconds = min(DEFAULT_FETCH_TIMEOUT_SECONDS, cooldown)
        elif self.catalog.fetch_timeout_seconds > cooldown:
            raise ValueError(
                "catalog.fetch_timeout_seconds must not exceed proximity.cooldown_seconds"
            )
        return self


# env var -> (section, key)
_ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "SUGVOYAGE_LOG_LEVEL": ("app", "log_level"),
    "SUGVOYAGE_CATALOG_PATH": ("catalog", "path"),
    "SUGVOYAGE_CATALOG_URL": ("catalog", "api_url"),
    "SUGVOYAGE_CATALOG_TIMEOUT_SECONDS": ("catalog", "fetch_timeout_seconds"),
    "SUGVOYAGE_COOLDOWN_SECONDS": ("proximity", "cooldown_seconds"),
    "SUGVOYAGE_POLL_INTERVAL_SECONDS": ("proximity", "poll_interval_seconds"),
}


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    """Overlay whitelisted environment variables onto the raw settings payload."""
    load_dotenv_if_present()
    data = dict(data)
    for env_name, (section, key) in _ENV_OVERRIDES.items():
        value = os.getenv(env_name)
        if value:
            data[section] = {**(data.get(section) or {}), key: value}
    return data


@lru_cache
def get_settings() -> Settings:
    """Load and validate settings (cached)."""
    load_dotenv_if_present()
    config_path = os.getenv("SUGVOYAGE_CONFIG_PATH")
    raw = _read_yaml_file(config_path) if config_path else _read_package_yaml("defaults.yaml")
    raw = _apply_env_overrides(raw)
    return Settings.model_validate(raw)


@lru_cache
def get_logging_config() -> dict[str, Any]:
    """Load logging configuration (cached)."""
    return _read_package_yaml("logging.yaml")
