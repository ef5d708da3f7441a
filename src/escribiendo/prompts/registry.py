"""Prompt templates for the chat, journal and conjugation features.

Templates are Markdown files under ``templates/<feature>/<name>.md`` and
are addressed by key, e.g. ``"chat/suggestion"``. Placeholders use
``{name}`` and are replaced only when a matching variable is passed, so
JSON examples inside a template keep their braces.

Usage:
    from escribiendo.prompts.registry import get_prompt

    prompt = get_prompt("chat/suggestion", user_input="me gusta this music")
"""

from __future__ import annotations

import re
from functools import lru_cache
from pathlib import Path

import structlog

logger = structlog.get_logger(__name__)

TEMPLATES_DIR = Path(__file__).parent / "templates"

_PLACEHOLDER = re.compile(r"\{([a-z_]+)\}")


def _template_path(key: str) -> Path:
    return TEMPLATES_DIR / f"{key}.md"


def _read_template(key: str) -> str:
    """Read a template from disk.

    Raises:
        FileNotFoundError: If no template exists for key
    """
    path = _template_path(key)
    if not path.is_file():
        raise FileNotFoundError(f"Prompt not found: {key} (looked at {path})")
    return path.read_text(encoding="utf-8")


@lru_cache(maxsize=32)
def _cached_template(key: str) -> str:
    return _read_template(key)


def get_prompt(key: str, use_cache: bool = True, **variables: object) -> str:
    """Render a template with the given variables.

    Placeholders left without a value are kept as-is and logged at debug
    level.

    Args:
        key: Template key, e.g. "journal/correct"
        use_cache: Read through the in-process cache (default True)
        **variables: Placeholder values, converted with str()

    Returns:
        Rendered prompt, stripped

    Raises:
        FileNotFoundError: If no template exists for key
    """
    template = _cached_template(key) if use_cache else _read_template(key)

    def substitute(match: re.Match[str]) -> str:
        name = match.group(1)
        return str(variables[name]) if name in variables else match.group(0)

    rendered = _PLACEHOLDER.sub(substitute, template)

    missing = sorted(set(_PLACEHOLDER.findall(template)) - set(variables))
    if missing:
        logger.debug("prompt_placeholders_unfilled", key=key, placeholders=missing)

    return rendered.strip()


def list_prompts() -> list[str]:
    """Keys of every available template, sorted."""
    return sorted(
        path.relative_to(TEMPLATES_DIR).with_suffix("").as_posix()
        for path in TEMPLATES_DIR.rglob("*.md")
    )


def clear_cache() -> None:
    _cached_template.cache_clear()
