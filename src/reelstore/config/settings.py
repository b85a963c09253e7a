from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

CONFIG_PATH_ENV = "REELSTORE_CONFIG"
DEFAULT_CONFIG_DIR = Path.home() / ".config" / "reelstore"


class Settings(BaseModel):
    """Application configuration resolved from env vars and optional TOML files."""

    tmdb_api_key: str | None = Field(default=None, alias="TMDB_API_KEY")
    tmdb_base_url: str = Field(default="https://api.themoviedb.org/3", alias="TMDB_BASE_URL")
    tmdb_language: str = Field(default="en-US", alias="TMDB_LANGUAGE")
    tmdb_timeout: float = Field(default=20.0, gt=0, alias="TMDB_TIMEOUT")

    error_display_seconds: float = Field(
        default=5.0, ge=0, alias="REELSTORE_ERROR_DISPLAY_SECONDS"
    )
    max_pages: int | None = Field(default=500, ge=1, alias="REELSTORE_MAX_PAGES")

    trigger_threshold: float = Field(
        default=0.5, ge=0.0, le=1.0, alias="REELSTORE_TRIGGER_THRESHOLD"
    )
    trigger_margin: int = Field(default=100, ge=0, alias="REELSTORE_TRIGGER_MARGIN")

    storage_path: Path = Field(
        default=DEFAULT_CONFIG_DIR / "storage.json", alias="REELSTORE_STORAGE_PATH"
    )

    model_config = {
        "populate_by_name": True,
        "str_strip_whitespace": True,
        "extra": "ignore",
    }

    def require_tmdb(self) -> None:
        """Ensure catalog credentials are available."""
        if not self.tmdb_api_key:
            raise SettingsError(
                "Missing TMDB_API_KEY. Configure environment or TOML file.",
            )


class SettingsError(RuntimeError):
    """Raised when configuration cannot be resolved."""


@dataclass(frozen=True)
class SettingsLoadResult:
    settings: Settings
    source_path: Path | None


def load_settings(config_path: Path | None = None, *, load_env: bool = True) -> SettingsLoadResult:
    """Load settings from .env files, environment variables, and optional TOML configuration."""

    if load_env:
        load_dotenv()

    resolved_path = _determine_config_path(config_path)
    config_data: dict[str, Any] = {}

    if resolved_path and resolved_path.exists():
        try:
            with resolved_path.open("rb") as handle:
                toml_payload = tomllib.load(handle)
        except tomllib.TOMLDecodeError as exc:
            raise SettingsError(f"Invalid TOML in {resolved_path}: {exc}") from exc
        config_data = _flatten_toml(toml_payload)

    try:
        env_data = _collect_env_overrides()
    except ValueError as exc:
        raise SettingsError(str(exc)) from exc
    merged = {**config_data, **env_data}

    try:
        settings = Settings.model_validate(merged)
    except ValidationError as exc:  # pragma: no cover - surfaced via CLI messaging
        raise SettingsError(str(exc)) from exc

    return SettingsLoadResult(settings=settings, source_path=resolved_path)


def _determine_config_path(config_path: Path | None) -> Path | None:
    if config_path:
        return config_path

    env_override = os.getenv(CONFIG_PATH_ENV)
    if env_override:
        return Path(env_override).expanduser().resolve()

    default_path = DEFAULT_CONFIG_DIR / "config.toml"
    return default_path if default_path.exists() else None


def _flatten_toml(payload: dict[str, Any]) -> dict[str, Any]:
    result: dict[str, Any] = {}

    tmdb_cfg = payload.get("tmdb", {})
    if "api_key" in tmdb_cfg:
        result["tmdb_api_key"] = tmdb_cfg.get("api_key")
    if "base_url" in tmdb_cfg:
        result["tmdb_base_url"] = tmdb_cfg.get("base_url")
    if "language" in tmdb_cfg:
        result["tmdb_language"] = tmdb_cfg.get("language")
    if "timeout" in tmdb_cfg:
        result["tmdb_timeout"] = float(tmdb_cfg.get("timeout"))

    store_cfg = payload.get("store", {})
    if "error_display_seconds" in store_cfg:
        result["error_display_seconds"] = float(store_cfg.get("error_display_seconds"))
    if "max_pages" in store_cfg:
        max_pages = store_cfg.get("max_pages")
        # 0 disables the ceiling
        result["max_pages"] = int(max_pages) or None

    trigger_cfg = payload.get("trigger", {})
    if "threshold" in trigger_cfg:
        result["trigger_threshold"] = float(trigger_cfg.get("threshold"))
    if "margin" in trigger_cfg:
        result["trigger_margin"] = int(trigger_cfg.get("margin"))

    storage_cfg = payload.get("storage", {})
    if "path" in storage_cfg:
        result["storage_path"] = Path(str(storage_cfg.get("path"))).expanduser()

    return result


def _collect_env_overrides() -> dict[str, Any]:
    mapping: dict[str, str] = {
        "TMDB_API_KEY": "tmdb_api_key",
        "TMDB_BASE_URL": "tmdb_base_url",
        "TMDB_LANGUAGE": "tmdb_language",
        "TMDB_TIMEOUT": "tmdb_timeout",
        "REELSTORE_ERROR_DISPLAY_SECONDS": "error_display_seconds",
        "REELSTORE_MAX_PAGES": "max_pages",
        "REELSTORE_TRIGGER_THRESHOLD": "trigger_threshold",
        "REELSTORE_TRIGGER_MARGIN": "trigger_margin",
        "REELSTORE_STORAGE_PATH": "storage_path",
    }

    result: dict[str, Any] = {}
    for env_name, field in mapping.items():
        if env_name not in os.environ:
            continue
        value = os.environ[env_name]
        if field in {"tmdb_timeout", "error_display_seconds", "trigger_threshold"}:
            result[field] = float(value)
        elif field == "trigger_margin":
            result[field] = int(value)
        elif field == "max_pages":
            result[field] = int(value) or None
        elif field == "storage_path":
            result[field] = Path(value).expanduser()
        else:
            result[field] = value
    return result


__all__ = ["Settings", "SettingsError", "SettingsLoadResult", "load_settings"]
