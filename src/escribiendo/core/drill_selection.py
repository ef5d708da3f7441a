"""Rule selection for adaptive conjugation drills.

Pure functions over a user's rule progress: which rules the next batch of
drills should practice, and how to summarize progress for the prompt.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol

from escribiendo.core.conjugation_rules import (
    MASTERY_ACCURACY,
    MASTERY_WINDOW,
    first_rule,
)

RECENT_RULES = 3
LATEST_UNLOCKED = 2


class ProgressLike(Protocol):
    rule_id: str
    is_unlocked: bool
    total_attempts: int
    correct_count: int
    last_attempt_at: str | None


def unlocked_rule_ids(progress: list[ProgressLike]) -> list[str]:
    """Unlocked rule ids in progress order; the first catalog rule if none."""
    ids = [p.rule_id for p in progress if p.is_unlocked]
    return ids or [first_rule().id]


def _accuracy(p: ProgressLike) -> float:
    return p.correct_count / p.total_attempts if p.total_attempts else 0.0


def _timestamp(value: str | None) -> float:
    if not value:
        return 0.0
    try:
        return datetime.fromisoformat(value).timestamp()
    except ValueError:
        return 0.0


def select_rules_to_focus(
    progress: list[ProgressLike], focus_rule_id: str | None = None
) -> list[str]:
    """Pick the rule ids the next drill batch should cover.

    An explicit focus rule wins when it is unlocked. Otherwise the first rule
    with fewer than MASTERY_WINDOW attempts is practiced alone while it is
    unlocked. Failing both, the batch mixes weak rules, the most recently
    practiced rules and the latest unlocks, de-duplicated in that order.

    Args:
        progress: Progress entries in rule order
        focus_rule_id: Rule the caller asked to practice

    Returns:
        Non-empty list of rule ids
    """
    unlocked = unlocked_rule_ids(progress)

    if focus_rule_id and focus_rule_id in unlocked:
        return [focus_rule_id]

    learning = next((p.rule_id for p in progress if p.total_attempts < MASTERY_WINDOW), None)
    if learning and learning in unlocked:
        return [learning]

    weak = [
        p.rule_id
        for p in progress
        if p.is_unlocked and p.total_attempts > 0 and _accuracy(p) < MASTERY_ACCURACY
    ]
    recent = [
        p.rule_id
        for p in sorted(
            (p for p in progress if p.is_unlocked),
            key=lambda p: _timestamp(p.last_attempt_at),
            reverse=True,
        )[:RECENT_RULES]
    ]

    selected: list[str] = []
    for rule_id in weak + recent + unlocked[-LATEST_UNLOCKED:]:
        if rule_id not in selected:
            selected.append(rule_id)
    return selected


def format_user_stats(progress: list[ProgressLike], rule_names: dict[str, str], rule_ids: list[str]) -> str:
    """One line per focused rule: name, accuracy, counts and last attempt date."""
    lines = []
    for p in progress:
        if p.rule_id not in rule_ids:
            continue
        accuracy = round(_accuracy(p) * 100)
        last = p.last_attempt_at[:10] if p.last_attempt_at else "Never"
        lines.append(
            f"{rule_names.get(p.rule_id, p.rule_id)}: {accuracy}% accuracy "
            f"({p.correct_count}/{p.total_attempts}), last attempt: {last}"
        )
    return "\n".join(lines)


def check_answer(user_answer: str, correct_answer: str) -> bool:
    """Trimmed, case-insensitive comparison of a drill answer."""
    return user_answer.strip().lower() == correct_answer.strip().lower()
