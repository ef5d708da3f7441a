"""Conjugation drill generation.

Builds a prompt from the user's rule progress, asks the LLM for a batch
of fill-in-the-verb sentences and stores the valid ones as a new session.
"""

from __future__ import annotations

from typing import Any

import structlog

from escribiendo.core.conjugation_rules import TENSES
from escribiendo.core.drill_selection import format_user_stats, select_rules_to_focus
from escribiendo.core.word_seeds import random_spanish_words
from escribiendo.db import conjugation_repository as repo
from escribiendo.llm.client import LLMError
from escribiendo.llm.service import LanguageService
from escribiendo.prompts.registry import get_prompt

logger = structlog.get_logger(__name__)

DEFAULT_DRILL_COUNT = 5
WORD_SEED_COUNT = 5

REQUIRED_FIELDS = ("sentence", "verb", "pronoun", "tense", "correctAnswer", "ruleId")


class DrillGenerationError(Exception):
    """Raised when no usable drills could be generated."""

    pass


def build_drill_prompt(
    rules: list[repo.VerbRuleRecord],
    progress: list[repo.RuleProgressRecord],
    rule_ids: list[str],
    count: int,
    words: list[str],
    focus_rule_id: str | None = None,
) -> str:
    """Render the drill generation prompt for the focused rules."""
    focused = [r for r in rules if r.id in rule_ids]

    rules_context = "\n\n".join(
        f'Rule ID: "{r.id}" | Name: "{r.name}" | Description: {r.description} '
        f"| Examples: {', '.join(r.examples)}"
        for r in focused
    )

    if focus_rule_id and rule_ids == [focus_rule_id]:
        focus_instructions = (
            f"SPECIAL FOCUS: This user just unlocked a new rule! Generate ALL {count} "
            f'exercises focusing on "{focus_rule_id}" to help them practice it immediately.'
        )
    else:
        focus_instructions = "Focus more on rules where the user has lower accuracy"

    tenses: list[str] = []
    for r in focused:
        for tense in r.tenses:
            if tense not in tenses:
                tenses.append(tense)

    return get_prompt(
        "conjugation/generate_drills",
        word_seeds=", ".join(words),
        count=count,
        rules_context=rules_context,
        user_stats=format_user_stats(progress, {r.id: r.name for r in rules}, rule_ids)
        or "No attempts yet",
        focus_instructions=focus_instructions,
        rule_ids=", ".join(f'"{r.id}"' for r in focused),
        tenses=", ".join(tenses),
    )


def _is_valid_drill(drill: dict[str, Any], valid_rule_ids: set[str]) -> bool:
    if any(not drill.get(key) for key in REQUIRED_FIELDS):
        return False
    if drill["ruleId"] not in valid_rule_ids:
        logger.warning("invalid_rule_id_generated", rule_id=drill["ruleId"])
        return False
    if drill["tense"] not in TENSES:
        logger.warning("invalid_tense_generated", tense=drill["tense"])
        return False
    return True


def _difficulty(value: Any) -> int:
    try:
        return max(1, min(5, int(value)))
    except (TypeError, ValueError):
        return 1


def generate_drills(
    user_id: str,
    count: int = DEFAULT_DRILL_COUNT,
    focus_rule_id: str | None = None,
    service: LanguageService | None = None,
) -> dict[str, Any]:
    """Generate, store and return a fresh drill session.

    Any active session of the user is completed first.

    Args:
        user_id: Learner id
        count: Number of drills to request
        focus_rule_id: Rule to practice exclusively, if unlocked
        service: LanguageService to use (defaults to the configured model)

    Returns:
        {"session": DrillSessionRecord, "drills": list[DrillRecord]}

    Raises:
        DrillGenerationError: If the LLM fails or yields no valid drills
    """
    active = repo.get_active_drill_session(user_id)
    if active is not None:
        repo.complete_drill_session(user_id, active.id)

    entries = repo.get_user_progress_with_rules(user_id)
    progress = [e["progress"] for e in entries]
    rules = repo.get_verb_rules()

    rule_ids = select_rules_to_focus(progress, focus_rule_id)
    words = random_spanish_words(WORD_SEED_COUNT)
    prompt = build_drill_prompt(rules, progress, rule_ids, count, words, focus_rule_id)

    logger.info("drills.generating", user_id=user_id, rules=rule_ids, count=count)

    service = service or LanguageService()
    try:
        generated = service.drills_json(prompt)
    except LLMError as e:
        logger.error("drills.generation_failed", user_id=user_id, error=str(e))
        raise DrillGenerationError(f"Failed to generate drills: {e}") from e

    valid_rule_ids = {r.id for r in rules}
    drills = []
    for item in generated:
        if not _is_valid_drill(item, valid_rule_ids):
            continue
        drills.append(
            repo.create_drill(
                sentence=item["sentence"],
                verb=item["verb"],
                pronoun=item["pronoun"],
                tense=item["tense"],
                correct_answer=item["correctAnswer"],
                rule_id=item["ruleId"],
                difficulty=_difficulty(item.get("difficulty", 1)),
            )
        )

    if not drills:
        raise DrillGenerationError("No valid drills were generated. Please try again.")

    session = repo.create_drill_session(user_id, [d.id for d in drills])
    logger.info("drills.generated", user_id=user_id, session_id=session.id, drills=len(drills))

    return {"session": session, "drills": drills}
