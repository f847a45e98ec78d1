"""Configuration loading.

Settings are loaded in priority order (highest first):
  1. Constructor arguments
  2. Environment variables  (OFFLINEKIT__PRECACHE__ORIGIN=https://example.com)
  3. offlinekit.yaml        (searched in cwd, then the user config dir)
  4. Hardcoded defaults

The config file is optional; all fields have sensible defaults.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Literal

import platformdirs
from pydantic import BaseModel, ConfigDict, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

_DEFAULT_DATA_DIR = platformdirs.user_data_dir("offlinekit")
_DEFAULT_DB_PATH = os.path.join(_DEFAULT_DATA_DIR, "cache.db")
_DEFAULT_STORE_PATH = os.path.join(_DEFAULT_DATA_DIR, "entries.db")

# Resources the page needs to render with no network at all.
_DEFAULT_MANIFEST = [
    "/",
    "/index.html",
    "/css/style.css",
    "/js/main.js",
    "/js/app/editor.js",
    "/js/lib/actions.js",
]

THIRTY_DAYS = 30 * 24 * 60 * 60


def _find_config_file() -> str | None:
    """Return the path of the first offlinekit.yaml found, or None."""
    candidates = [
        Path("offlinekit.yaml"),
        Path(platformdirs.user_config_dir("offlinekit")) / "offlinekit.yaml",
    ]
    for path in candidates:
        if path.exists():
            return str(path)
    return None


class CacheSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    db_path: str = _DEFAULT_DB_PATH


class EntryStoreSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    db_path: str = _DEFAULT_STORE_PATH
    name: str = "editor"
    version: int = 1


class PrecacheSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    origin: str = "http://localhost:8080"
    cache_name: str = "precache-v1"
    manifest: list[str] = list(_DEFAULT_MANIFEST)
    fallback_cache_name: str = "offline-fallback"
    fallback_url: str = "/offline.html"

    @field_validator("origin")
    @classmethod
    def validate_origin(cls, v: str) -> str:
        v = v.strip().rstrip("/")
        if not v.startswith(("http://", "https://")):
            raise ValueError("origin must use http or https scheme")
        return v


class RouteSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    page_cache_name: str = "page-cache"
    page_max_age_seconds: int | None = THIRTY_DAYS
    asset_cache_name: str = "asset-cache"
    asset_max_age_seconds: int | None = None
    asset_destinations: list[str] = ["style", "script", "worker"]
    # 0 is what an opaque cross-origin response reports
    cacheable_statuses: list[int] = [0, 200]


class FetcherSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    timeout_seconds: float = 30.0
    follow_redirects: bool = True
    user_agent: str = "offlinekit/0.1"


class LoggingSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    format: Literal["json", "text"] = "json"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        # Double-underscore separates nesting: OFFLINEKIT__CACHE__DB_PATH=/tmp/c.db
        env_prefix="OFFLINEKIT__",
        env_nested_delimiter="__",
        yaml_file=_find_config_file(),
        yaml_file_encoding="utf-8",
    )

    cache: CacheSettings = CacheSettings()
    entry_store: EntryStoreSettings = EntryStoreSettings()
    precache: PrecacheSettings = PrecacheSettings()
    routes: RouteSettings = RouteSettings()
    fetcher: FetcherSettings = FetcherSettings()
    logging: LoggingSettings = LoggingSettings()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
        **kwargs: Any,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,  # Constructor args (highest priority)
            env_settings,  # Environment variables
            YamlConfigSettingsSource(settings_cls),  # YAML file
            # dotenv and file secrets intentionally excluded
        )
