"""Text processing utilities.

Common text manipulation functions used across modules: cleaning LLM
output, and flattening journal documents into plain text.
"""

from __future__ import annotations

import re
from typing import Any

# Patterns for removing thinking/reasoning blocks from LLM output
THINK_PATTERNS = [
    re.compile(r"<think>.*?</think>", re.DOTALL | re.IGNORECASE),
    re.compile(r"<thinking>.*?</thinking>", re.DOTALL | re.IGNORECASE),
    re.compile(r"<analysis>.*?</analysis>", re.DOTALL | re.IGNORECASE),
    re.compile(r"<reasoning>.*?</reasoning>", re.DOTALL | re.IGNORECASE),
]

OPEN_TAGS = ["<think>", "<thinking>", "<analysis>", "<reasoning>"]
CLOSE_TAGS = ["</think>", "</thinking>", "</analysis>", "</reasoning>"]

# Node types that end with a separating space when flattened
BLOCK_NODE_TYPES = ("paragraph", "heading")


def strip_think(text: str) -> str:
    """Remove thinking/reasoning blocks from LLM output.

    Args:
        text: Raw LLM output text

    Returns:
        Cleaned text without thinking artifacts
    """
    result = text
    for pattern in THINK_PATTERNS:
        result = pattern.sub("", result)
    return result.strip()


def strip_think_streaming(
    chunk: str, buffer: str, in_think: bool
) -> tuple[str, str, bool]:
    """Process a streaming chunk, filtering out thinking tags in real-time.

    Maintains state across chunks to handle tags that span multiple chunks.

    Args:
        chunk: New text chunk from streaming
        buffer: Accumulated buffer from previous calls
        in_think: Whether we're currently inside a thinking block

    Returns:
        Tuple of (output_text, new_buffer, new_in_think_state)
    """
    buffer += chunk
    output = ""

    while True:
        buffer_lower = buffer.lower()

        if in_think:
            close_idx, close_len = _find_first(buffer_lower, CLOSE_TAGS)
            if close_idx < 0:
                break
            buffer = buffer[close_idx + close_len :]
            in_think = False
            continue

        open_idx, open_len = _find_first(buffer_lower, OPEN_TAGS)
        if open_idx >= 0:
            output += buffer[:open_idx]
            buffer = buffer[open_idx + open_len :]
            in_think = True
            continue

        # Hold back a trailing fragment that could still become an opening tag
        hold = _partial_tag_start(buffer_lower)
        output += buffer[:hold]
        buffer = buffer[hold:]
        break

    return output, buffer, in_think


def _find_first(text: str, tags: list[str]) -> tuple[int, int]:
    """Return (index, length) of the earliest tag in text, or (-1, 0)."""
    best_idx, best_len = -1, 0
    for tag in tags:
        idx = text.find(tag)
        if idx >= 0 and (best_idx < 0 or idx < best_idx):
            best_idx, best_len = idx, len(tag)
    return best_idx, best_len


def _partial_tag_start(text: str) -> int:
    """Index where a possible unfinished opening tag begins (len(text) if none)."""
    start = text.rfind("<")
    if start < 0:
        return len(text)
    remainder = text[start:]
    if any(tag.startswith(remainder) for tag in OPEN_TAGS):
        return start
    return len(text)


def clean_suggestion(text: str) -> str:
    """Trim whitespace and one pair of surrounding quotes."""
    cleaned = strip_think(text).strip()
    cleaned = re.sub(r'^["\'“”«]+|["\'“”»]+$', "", cleaned)
    return cleaned.strip()


def parse_lines(text: str, limit: int | None = None) -> list[str]:
    """Split LLM output into non-empty trimmed lines.

    Leading list markers ("1.", "-", "*") are removed.
    """
    lines = []
    for raw in strip_think(text).splitlines():
        line = re.sub(r"^\s*(?:\d+[.)]|[-*•])\s*", "", raw).strip()
        if line:
            lines.append(line)
    if limit is not None:
        return lines[:limit]
    return lines


# =============================================================================
# JOURNAL DOCUMENTS
# =============================================================================


def extract_plain_text(node: dict[str, Any] | None) -> str:
    """Flatten a rich-text document tree into plain text.

    Text nodes contribute their ``text``; paragraph and heading nodes that
    have children add a single space after them.

    Args:
        node: Root document node ({"type": "doc", "content": [...]})

    Returns:
        Plain text with surrounding whitespace stripped
    """
    if not node:
        return ""
    return _collect_text(node).strip()


def _collect_text(node: dict[str, Any]) -> str:
    text = ""
    if node.get("type") == "text":
        text += node.get("text") or ""

    children = [c for c in node.get("content") or [] if isinstance(c, dict)]
    if children:
        for child in children:
            text += _collect_text(child)
        # Blocks without children add no separator
        if node.get("type") in BLOCK_NODE_TYPES:
            text += " "

    return text


def calculate_word_count(text: str) -> int:
    """Count whitespace-separated words (0 for blank text)."""
    return len(text.split())
