"""Model registry loader.

Loads the selectable chat models from data/config/models_v1.yaml.
Each model names its provider and carries per-task token/temperature
settings (suggestion, chat, side chat, translation, starters, ...).

Usage:
    from escribiendo.config.models import get_model, list_models

    model = get_model("gpt-4o")
    all_models = list_models()
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import structlog
import yaml

logger = structlog.get_logger(__name__)

# Config file path (relative to project root)
MODELS_FILE = Path("data/config/models_v1.yaml")

TASKS = (
    "suggestion",
    "chat",
    "side_chat",
    "translation",
    "conversation_starters",
    "correction",
    "analysis",
    "drills",
)

DEFAULT_MAX_TOKENS: dict[str, int] = {
    "suggestion": 200,
    "chat": 600,
    "side_chat": 800,
    "translation": 200,
    "conversation_starters": 200,
    "correction": 1000,
    "analysis": 1500,
    "drills": 2000,
}

DEFAULT_TEMPERATURE: dict[str, float] = {
    "suggestion": 0.3,
    "chat": 0.7,
    "side_chat": 0.4,
    "translation": 0.2,
    "conversation_starters": 0.8,
    "correction": 0.3,
    "analysis": 0.2,
    "drills": 0.7,
}


class UnknownModelError(Exception):
    """Raised when a model id is not in the registry."""

    def __init__(self, model_id: str):
        self.model_id = model_id
        super().__init__(f"Model {model_id} not found in available models")


@dataclass
class ModelConfig:
    """A selectable model and its per-task generation settings."""

    id: str
    provider: str
    model: str
    display_name: str
    max_tokens: dict[str, int] = field(default_factory=lambda: dict(DEFAULT_MAX_TOKENS))
    temperature: dict[str, float] = field(default_factory=lambda: dict(DEFAULT_TEMPERATURE))

    def max_tokens_for(self, task: str) -> int:
        return self.max_tokens.get(task, DEFAULT_MAX_TOKENS.get(task, 600))

    def temperature_for(self, task: str) -> float:
        return self.temperature.get(task, DEFAULT_TEMPERATURE.get(task, 0.7))


# Module-level cache
_cached_models: dict[str, ModelConfig] | None = None


def _get_default_models() -> dict[str, ModelConfig]:
    """Get default models when config file is missing."""
    return {
        "claude-3.5-sonnet": ModelConfig(
            id="claude-3.5-sonnet",
            provider="anthropic",
            model="claude-3-5-sonnet-20241022",
            display_name="Claude 3.5 Sonnet",
        ),
        "claude-3-haiku": ModelConfig(
            id="claude-3-haiku",
            provider="anthropic",
            model="claude-3-haiku-20240307",
            display_name="Claude 3 Haiku",
        ),
        "gpt-4o": ModelConfig(
            id="gpt-4o",
            provider="openai",
            model="gpt-4o",
            display_name="GPT-4o",
        ),
        "gpt-4o-mini": ModelConfig(
            id="gpt-4o-mini",
            provider="openai",
            model="gpt-4o-mini",
            display_name="GPT-4o Mini",
        ),
    }


def load_models(force_reload: bool = False) -> dict[str, ModelConfig]:
    """Load all models from config file.

    Args:
        force_reload: If True, ignore cache and reload from file.

    Returns:
        Dictionary mapping model ID to ModelConfig.
    """
    global _cached_models

    if _cached_models is not None and not force_reload:
        return _cached_models

    if not MODELS_FILE.exists():
        logger.debug("models_file_not_found", path=str(MODELS_FILE))
        _cached_models = _get_default_models()
        return _cached_models

    try:
        data = yaml.safe_load(MODELS_FILE.read_text(encoding="utf-8"))
        models_data = data.get("models", {})

        _cached_models = {}
        for mid, mdata in models_data.items():
            _cached_models[mid] = ModelConfig(
                id=mid,
                provider=mdata.get("provider", "openai"),
                model=mdata.get("model", mid),
                display_name=mdata.get("display_name", mid),
                max_tokens={**DEFAULT_MAX_TOKENS, **(mdata.get("max_tokens") or {})},
                temperature={**DEFAULT_TEMPERATURE, **(mdata.get("temperature") or {})},
            )

        logger.debug("loaded_models", count=len(_cached_models))
        return _cached_models

    except Exception as e:
        logger.error("failed_to_load_models", error=str(e))
        _cached_models = _get_default_models()
        return _cached_models


def get_model(model_id: str) -> ModelConfig:
    """Get a model by ID.

    Raises:
        UnknownModelError: If the model is not registered.
    """
    models = load_models()
    if model_id not in models:
        raise UnknownModelError(model_id)
    return models[model_id]


def list_models() -> list[ModelConfig]:
    """List all available models."""
    return list(load_models().values())


def clear_models_cache() -> None:
    """Clear the models cache."""
    global _cached_models
    _cached_models = None
