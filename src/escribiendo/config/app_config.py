"""Application configuration loader.

Loads centralized configuration from data/config/app_config_v1.yaml,
falling back to built-in defaults when the file is missing.

Usage:
    from escribiendo.config.app_config import load_app_config, get_provider_config

    config = load_app_config()
    provider = get_provider_config("openai")
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import structlog
import yaml

logger = structlog.get_logger(__name__)

# Relative to the working directory; ESCRIBIENDO_CONFIG overrides it
CONFIG_FILE = Path("data/config/app_config_v1.yaml")
CONFIG_ENV_VAR = "ESCRIBIENDO_CONFIG"

DEFAULT_PROVIDERS: dict[str, dict[str, Any]] = {
    "openai": {
        "base_url": "https://api.openai.com/v1",
        "api_key_env": "OPENAI_API_KEY",
        "supports_json_object": True,
    },
    "anthropic": {
        "base_url": "https://api.anthropic.com/v1",
        "api_key_env": "ANTHROPIC_API_KEY",
    },
    "lmstudio": {
        "base_url": "http://localhost:1234/v1",
    },
}


@dataclass
class ProviderConfig:
    """Configuration for a single LLM provider."""

    base_url: str | None
    api_key_env: str | None = None
    supports_json_object: bool = False

    def get_api_key(self) -> str | None:
        """Get API key from environment variable."""
        if self.api_key_env:
            return os.environ.get(self.api_key_env)
        return None


@dataclass
class StorageConfig:
    """Filesystem locations used by the app."""

    db_path: str = "db/escribiendo.db"
    uploads_dir: str = "uploads/books"
    word_list_path: str = "data/spanish-words.txt"


@dataclass
class AppConfig:
    """Application-wide configuration."""

    providers: dict[str, ProviderConfig] = field(default_factory=dict)
    storage: StorageConfig = field(default_factory=StorageConfig)
    default_model: str = "gpt-4o"
    default_user_id: str = "user-1"


# Module-level cache
_cached_config: AppConfig | None = None


def _parse_providers(data: dict[str, Any] | None) -> dict[str, ProviderConfig]:
    """A providers section replaces the built-in table as a whole."""
    return {
        name: ProviderConfig(
            base_url=settings.get("base_url"),
            api_key_env=settings.get("api_key_env"),
            supports_json_object=bool(settings.get("supports_json_object", False)),
        )
        for name, settings in (data or DEFAULT_PROVIDERS).items()
    }


def _parse_config(data: dict[str, Any]) -> AppConfig:
    """Build an AppConfig from parsed YAML; absent keys keep dataclass defaults."""
    known_storage = {f.name for f in fields(StorageConfig)}
    storage_data = data.get("storage") or {}
    unknown = sorted(set(storage_data) - known_storage)
    if unknown:
        logger.warning("unknown_storage_keys", keys=unknown)

    defaults = AppConfig()
    return AppConfig(
        providers=_parse_providers(data.get("providers")),
        storage=StorageConfig(**{k: v for k, v in storage_data.items() if k in known_storage}),
        default_model=data.get("default_model", defaults.default_model),
        default_user_id=data.get("default_user_id", defaults.default_user_id),
    )


def config_path() -> Path:
    """Config file location, honouring the ESCRIBIENDO_CONFIG variable."""
    override = os.environ.get(CONFIG_ENV_VAR)
    return Path(override) if override else CONFIG_FILE


def load_app_config(force_reload: bool = False) -> AppConfig:
    """Load application config, using defaults when no file exists.

    Args:
        force_reload: If True, ignore cached config and reload from file.

    Returns:
        AppConfig object with all settings.
    """
    global _cached_config

    if _cached_config is not None and not force_reload:
        return _cached_config

    path = config_path()
    data: dict[str, Any] = {}

    if path.exists():
        logger.debug("loading_app_config", source=str(path))
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    else:
        logger.info("using_default_config", missing=str(path))

    _cached_config = _parse_config(data)
    return _cached_config


def get_provider_config(provider: str) -> ProviderConfig | None:
    """Settings for one provider, or None when it is not configured."""
    return load_app_config().providers.get(provider)


def clear_config_cache() -> None:
    global _cached_config
    _cached_config = None
