"""Random Spanish word seeds that vary generated drill sentences."""

from __future__ import annotations

import random
from pathlib import Path

import structlog

from escribiendo.config.app_config import load_app_config

logger = structlog.get_logger(__name__)

FALLBACK_WORDS = [
    "aventura",
    "biblioteca",
    "cascada",
    "dinosaurio",
    "elefante",
    "guitarra",
    "hospital",
    "jardín",
    "montaña",
    "océano",
    "panadería",
    "restaurante",
    "universidad",
    "volcán",
    "zoológico",
]


def load_spanish_words(path: Path | None = None) -> list[str]:
    """Read the word list, one word per line.

    Falls back to a short built-in list when the file cannot be read.
    """
    path = path or Path(load_app_config().storage.word_list_path)
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        logger.warning("word_list_unavailable", path=str(path), error=str(e))
        return list(FALLBACK_WORDS)

    words = [line.strip() for line in content.splitlines() if line.strip()]
    return words or list(FALLBACK_WORDS)


def random_spanish_words(count: int = 5, path: Path | None = None) -> list[str]:
    words = load_spanish_words(path)
    return random.sample(words, min(count, len(words)))
