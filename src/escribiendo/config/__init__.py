"""Configuration package for escribiendo."""

from escribiendo.config.app_config import (
    AppConfig,
    ProviderConfig,
    StorageConfig,
    get_provider_config,
    load_app_config,
)
from escribiendo.config.models import (
    ModelConfig,
    UnknownModelError,
    get_model,
    list_models,
    load_models,
)

__all__ = [
    "AppConfig",
    "ProviderConfig",
    "StorageConfig",
    "get_provider_config",
    "load_app_config",
    "ModelConfig",
    "UnknownModelError",
    "get_model",
    "list_models",
    "load_models",
]
