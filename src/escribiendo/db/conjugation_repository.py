"""Repository functions for the conjugation tables.

Covers verb_rules, conjugation_drills, user_rule_progress,
user_drill_attempts and drill_sessions, plus the rule-unlock logic
that runs after each recorded attempt.
"""

from __future__ import annotations

import json
import uuid
from dataclasses import asdict, dataclass
from typing import Any

import structlog

from escribiendo.core.conjugation_rules import (
    CONJUGATION_RULES,
    MASTERY_ACCURACY,
    MASTERY_WINDOW,
    ConjugationRule,
)
from escribiendo.db.database import get_db, utc_now

logger = structlog.get_logger(__name__)


class DrillNotFoundError(Exception):
    """Raised when an attempt references an unknown drill."""

    def __init__(self, drill_id: str):
        self.drill_id = drill_id
        super().__init__(f"Drill not found: {drill_id}")


@dataclass
class VerbRuleRecord:
    """Verb rule record from database."""

    id: str
    name: str
    description: str
    category: str
    tenses: list[str]
    examples: list[str]
    icon: str
    order: int
    is_unlocked: bool
    created_at: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class DrillRecord:
    """Conjugation drill record from database."""

    id: str
    sentence: str
    verb: str
    pronoun: str
    tense: str
    correct_answer: str
    rule_id: str
    difficulty: int
    created_at: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class RuleProgressRecord:
    """Per-user progress on one rule."""

    id: str
    user_id: str
    rule_id: str
    correct_count: int
    total_attempts: int
    last_attempt_at: str | None
    is_unlocked: bool
    unlocked_at: str | None
    created_at: str
    updated_at: str

    @property
    def accuracy(self) -> float:
        if self.total_attempts == 0:
            return 0.0
        return self.correct_count / self.total_attempts

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class AttemptRecord:
    """A single answer to a drill."""

    id: str
    user_id: str
    drill_id: str
    user_answer: str
    is_correct: bool
    time_spent: int | None
    status: str
    created_at: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class DrillSessionRecord:
    """A batch of generated drills."""

    id: str
    user_id: str
    drill_ids: list[str]
    status: str
    created_at: str
    completed_at: str | None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# =============================================================================
# VERB RULES
# =============================================================================


def get_verb_rules() -> list[VerbRuleRecord]:
    """Get all rules in curriculum order."""
    with get_db() as conn:
        rows = conn.execute('SELECT * FROM verb_rules ORDER BY "order"').fetchall()

    return [_row_to_rule(row) for row in rows]


def get_verb_rule_by_id(rule_id: str) -> VerbRuleRecord | None:
    with get_db() as conn:
        row = conn.execute("SELECT * FROM verb_rules WHERE id = ?", (rule_id,)).fetchone()

    if row is None:
        return None

    return _row_to_rule(row)


def create_verb_rule(
    rule_id: str,
    name: str,
    description: str,
    category: str,
    tenses: list[str],
    order: int,
    examples: list[str] | None = None,
    icon: str = "",
    is_unlocked: bool = False,
) -> VerbRuleRecord:
    """Insert a verb rule.

    Raises:
        sqlite3.IntegrityError: If rule_id already exists
    """
    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO verb_rules
                (id, name, description, category, tenses, examples, icon, "order", is_unlocked, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                rule_id,
                name,
                description,
                category,
                json.dumps(tenses),
                json.dumps(examples or [], ensure_ascii=False),
                icon,
                order,
                int(is_unlocked),
                utc_now(),
            ),
        )

    logger.debug("conjugation.rule_created", rule_id=rule_id)
    return get_verb_rule_by_id(rule_id)  # type: ignore[return-value]


def seed_verb_rules(rules: list[ConjugationRule] | None = None) -> int:
    """Insert catalog rules that are missing from the table.

    The first rule in order is stored as unlocked.

    Returns:
        Number of rules inserted
    """
    rules = sorted(rules or CONJUGATION_RULES, key=lambda r: r.order)
    existing = {r.id for r in get_verb_rules()}

    inserted = 0
    for index, rule in enumerate(rules):
        if rule.id in existing:
            continue
        create_verb_rule(
            rule_id=rule.id,
            name=rule.name,
            description=rule.description,
            category=rule.category,
            tenses=list(rule.tenses),
            order=rule.order,
            examples=list(rule.examples),
            icon=rule.icon,
            is_unlocked=index == 0,
        )
        inserted += 1

    if inserted:
        logger.info("conjugation.rules_seeded", inserted=inserted)

    return inserted


# =============================================================================
# DRILLS
# =============================================================================


def get_drill_by_id(drill_id: str) -> DrillRecord | None:
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM conjugation_drills WHERE id = ?", (drill_id,)
        ).fetchone()

    if row is None:
        return None

    return _row_to_drill(row)


def get_drills_by_ids(drill_ids: list[str]) -> list[DrillRecord]:
    """Get drills by id, preserving the order of drill_ids."""
    if not drill_ids:
        return []

    placeholders = ",".join("?" for _ in drill_ids)
    with get_db() as conn:
        rows = conn.execute(
            f"SELECT * FROM conjugation_drills WHERE id IN ({placeholders})",
            tuple(drill_ids),
        ).fetchall()

    by_id = {row["id"]: _row_to_drill(row) for row in rows}
    return [by_id[d] for d in drill_ids if d in by_id]


def create_drill(
    sentence: str,
    verb: str,
    pronoun: str,
    tense: str,
    correct_answer: str,
    rule_id: str,
    difficulty: int = 1,
    drill_id: str | None = None,
) -> DrillRecord:
    """Insert a conjugation drill.

    Raises:
        sqlite3.IntegrityError: If rule_id is unknown or tense is invalid
    """
    drill_id = drill_id or f"drill-{uuid.uuid4()}"

    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO conjugation_drills
                (id, sentence, verb, pronoun, tense, correct_answer, rule_id, difficulty, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                drill_id,
                sentence,
                verb,
                pronoun,
                tense,
                correct_answer,
                rule_id,
                difficulty,
                utc_now(),
            ),
        )

    return get_drill_by_id(drill_id)  # type: ignore[return-value]


# =============================================================================
# USER RULE PROGRESS
# =============================================================================


def get_user_rule_progress(user_id: str, rule_id: str) -> RuleProgressRecord | None:
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM user_rule_progress WHERE user_id = ? AND rule_id = ?",
            (user_id, rule_id),
        ).fetchone()

    if row is None:
        return None

    return _row_to_progress(row)


def _insert_progress(
    user_id: str,
    rule_id: str,
    total_attempts: int = 0,
    correct_count: int = 0,
    last_attempt_at: str | None = None,
) -> None:
    now = utc_now()
    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO user_rule_progress
                (id, user_id, rule_id, correct_count, total_attempts, last_attempt_at,
                 is_unlocked, unlocked_at, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, 1, ?, ?, ?)
            """,
            (
                f"{user_id}-{rule_id}",
                user_id,
                rule_id,
                correct_count,
                total_attempts,
                last_attempt_at,
                now,
                now,
                now,
            ),
        )


def unlock_user_rule(user_id: str, rule_id: str) -> RuleProgressRecord:
    """Mark a rule as unlocked for a user, creating the progress row if needed."""
    if get_user_rule_progress(user_id, rule_id) is None:
        _insert_progress(user_id, rule_id)
    else:
        now = utc_now()
        with get_db() as conn:
            conn.execute(
                """
                UPDATE user_rule_progress
                SET is_unlocked = 1, unlocked_at = ?, updated_at = ?
                WHERE user_id = ? AND rule_id = ?
                """,
                (now, now, user_id, rule_id),
            )

    logger.info("conjugation.rule_unlocked", user_id=user_id, rule_id=rule_id)
    return get_user_rule_progress(user_id, rule_id)  # type: ignore[return-value]


def _select_progress_with_rules(user_id: str) -> list[dict[str, Any]]:
    with get_db() as conn:
        rows = conn.execute(
            """
            SELECT p.*, r.id AS r_id, r.name AS r_name, r.description AS r_description,
                   r.category AS r_category, r.tenses AS r_tenses, r.examples AS r_examples,
                   r.icon AS r_icon, r."order" AS r_order, r.is_unlocked AS r_is_unlocked,
                   r.created_at AS r_created_at
            FROM user_rule_progress p
            JOIN verb_rules r ON r.id = p.rule_id
            WHERE p.user_id = ?
            ORDER BY r."order"
            """,
            (user_id,),
        ).fetchall()

    return [
        {
            "progress": _row_to_progress(row),
            "rule": VerbRuleRecord(
                id=row["r_id"],
                name=row["r_name"],
                description=row["r_description"],
                category=row["r_category"],
                tenses=json.loads(row["r_tenses"]),
                examples=json.loads(row["r_examples"] or "[]"),
                icon=row["r_icon"],
                order=row["r_order"],
                is_unlocked=bool(row["r_is_unlocked"]),
                created_at=row["r_created_at"],
            ),
        }
        for row in rows
    ]


def get_user_progress_with_rules(user_id: str) -> list[dict[str, Any]]:
    """Get a user's progress rows joined with their rules, in rule order.

    A user without any progress gets the first rule unlocked.

    Returns:
        List of {"progress": RuleProgressRecord, "rule": VerbRuleRecord}
    """
    entries = _select_progress_with_rules(user_id)
    if entries:
        return entries

    rules = get_verb_rules()
    if not rules:
        return []

    _insert_progress(user_id, rules[0].id)
    logger.info("conjugation.progress_initialized", user_id=user_id, rule_id=rules[0].id)
    return _select_progress_with_rules(user_id)


def get_unlocked_rule_ids(user_id: str) -> list[str]:
    """Ids of the rules a user has unlocked, in rule order."""
    return [
        e["progress"].rule_id
        for e in get_user_progress_with_rules(user_id)
        if e["progress"].is_unlocked
    ]


# =============================================================================
# ATTEMPTS
# =============================================================================


def create_drill_attempt(
    user_id: str,
    drill_id: str,
    user_answer: str,
    is_correct: bool,
    time_spent: int | None = None,
) -> AttemptRecord:
    attempt_id = f"attempt-{uuid.uuid4()}"

    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO user_drill_attempts
                (id, user_id, drill_id, user_answer, is_correct, time_spent, status, created_at)
            VALUES (?, ?, ?, ?, ?, ?, 'completed', ?)
            """,
            (attempt_id, user_id, drill_id, user_answer, int(is_correct), time_spent, utc_now()),
        )
        row = conn.execute(
            "SELECT * FROM user_drill_attempts WHERE id = ?", (attempt_id,)
        ).fetchone()

    return _row_to_attempt(row)


def get_recent_attempts_for_rule(
    user_id: str, rule_id: str, limit: int = MASTERY_WINDOW
) -> list[AttemptRecord]:
    """Most recent attempts of a user on drills of one rule, newest first."""
    with get_db() as conn:
        rows = conn.execute(
            """
            SELECT a.* FROM user_drill_attempts a
            JOIN conjugation_drills d ON d.id = a.drill_id
            WHERE a.user_id = ? AND d.rule_id = ?
            ORDER BY a.created_at DESC, a.rowid DESC
            LIMIT ?
            """,
            (user_id, rule_id, limit),
        ).fetchall()

    return [_row_to_attempt(row) for row in rows]


def _recent_accuracy(attempts: list[AttemptRecord]) -> float:
    if not attempts:
        return 0.0
    return sum(1 for a in attempts if a.is_correct) / len(attempts)


def _is_mastered(user_id: str, rule_id: str) -> bool:
    attempts = get_recent_attempts_for_rule(user_id, rule_id)
    return len(attempts) >= MASTERY_WINDOW and _recent_accuracy(attempts) >= MASTERY_ACCURACY


def check_and_unlock_next_rule(user_id: str, rule_id: str) -> dict[str, Any] | None:
    """Unlock the next rule when the user has mastered everything before it.

    Mastery means at least MASTERY_WINDOW recent attempts with accuracy of at
    least MASTERY_ACCURACY. The triggering rule must be mastered, and so must
    every unlocked rule ordered before the next locked one.

    Returns:
        {"unlocked_rule", "progress", "trigger_rule_id", "accuracy"} or None
    """
    attempts = get_recent_attempts_for_rule(user_id, rule_id)
    if len(attempts) < MASTERY_WINDOW:
        return None

    accuracy = _recent_accuracy(attempts)
    if accuracy < MASTERY_ACCURACY:
        return None

    rules = get_verb_rules()
    unlocked_ids = set(get_unlocked_rule_ids(user_id))

    next_rule = next((r for r in rules if r.id not in unlocked_ids), None)
    if next_rule is None:
        return None

    for rule in rules:
        if rule.order >= next_rule.order or rule.id not in unlocked_ids:
            continue
        if not _is_mastered(user_id, rule.id):
            return None

    progress = unlock_user_rule(user_id, next_rule.id)
    return {
        "unlocked_rule": next_rule,
        "progress": progress,
        "trigger_rule_id": rule_id,
        "accuracy": round(accuracy * 100),
    }


def get_unlock_progress(user_id: str, rule_id: str) -> dict[str, Any]:
    """Progress of a rule toward the unlock threshold."""
    attempts = get_recent_attempts_for_rule(user_id, rule_id)
    correct = sum(1 for a in attempts if a.is_correct)

    return {
        "total_attempts": len(attempts),
        "correct_count": correct,
        "accuracy": correct / len(attempts) if attempts else 0,
        "attempts_needed": max(0, MASTERY_WINDOW - len(attempts)),
        "accuracy_needed": MASTERY_ACCURACY,
    }


def record_drill_attempt(
    user_id: str,
    drill_id: str,
    user_answer: str,
    is_correct: bool,
    time_spent: int | None = None,
) -> dict[str, Any]:
    """Store an attempt, update rule progress and check for an unlock.

    Raises:
        DrillNotFoundError: If drill_id does not exist

    Returns:
        {"attempt": AttemptRecord, "unlock_result": dict | None}
    """
    drill = get_drill_by_id(drill_id)
    if drill is None:
        raise DrillNotFoundError(drill_id)

    attempt = create_drill_attempt(user_id, drill_id, user_answer, is_correct, time_spent)

    now = utc_now()
    if get_user_rule_progress(user_id, drill.rule_id) is None:
        _insert_progress(
            user_id,
            drill.rule_id,
            total_attempts=1,
            correct_count=1 if is_correct else 0,
            last_attempt_at=now,
        )
    else:
        with get_db() as conn:
            conn.execute(
                """
                UPDATE user_rule_progress
                SET total_attempts = total_attempts + 1,
                    correct_count = correct_count + ?,
                    last_attempt_at = ?,
                    updated_at = ?
                WHERE user_id = ? AND rule_id = ?
                """,
                (1 if is_correct else 0, now, now, user_id, drill.rule_id),
            )

    logger.debug(
        "conjugation.attempt_recorded",
        user_id=user_id,
        drill_id=drill_id,
        is_correct=is_correct,
    )

    unlock_result = check_and_unlock_next_rule(user_id, drill.rule_id)
    return {"attempt": attempt, "unlock_result": unlock_result}


# =============================================================================
# DRILL SESSIONS
# =============================================================================


def create_drill_session(user_id: str, drill_ids: list[str]) -> DrillSessionRecord:
    session_id = f"session-{uuid.uuid4()}"

    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO drill_sessions (id, user_id, drill_ids, status, created_at)
            VALUES (?, ?, ?, 'active', ?)
            """,
            (session_id, user_id, json.dumps(drill_ids), utc_now()),
        )

    logger.debug("conjugation.session_created", session_id=session_id, drills=len(drill_ids))
    return get_drill_session(user_id, session_id)  # type: ignore[return-value]


def get_drill_session(user_id: str, session_id: str) -> DrillSessionRecord | None:
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM drill_sessions WHERE id = ? AND user_id = ?",
            (session_id, user_id),
        ).fetchone()

    if row is None:
        return None

    return _row_to_session(row)


def get_drill_sessions(user_id: str) -> list[DrillSessionRecord]:
    """All sessions of a user, newest first."""
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM drill_sessions WHERE user_id = ? ORDER BY created_at DESC, rowid DESC",
            (user_id,),
        ).fetchall()

    return [_row_to_session(row) for row in rows]


def get_active_drill_session(user_id: str) -> DrillSessionRecord | None:
    with get_db() as conn:
        row = conn.execute(
            """
            SELECT * FROM drill_sessions
            WHERE user_id = ? AND status = 'active'
            ORDER BY created_at DESC, rowid DESC
            LIMIT 1
            """,
            (user_id,),
        ).fetchone()

    if row is None:
        return None

    return _row_to_session(row)


def complete_drill_session(user_id: str, session_id: str) -> DrillSessionRecord | None:
    """Mark a session as completed.

    Returns:
        Updated session, or None if it does not belong to the user
    """
    with get_db() as conn:
        cursor = conn.execute(
            """
            UPDATE drill_sessions SET status = 'completed', completed_at = ?
            WHERE id = ? AND user_id = ?
            """,
            (utc_now(), session_id, user_id),
        )

    if cursor.rowcount == 0:
        return None

    logger.debug("conjugation.session_completed", session_id=session_id)
    return get_drill_session(user_id, session_id)


def get_drill_session_with_drills(user_id: str, session_id: str) -> dict[str, Any] | None:
    """Session plus its drill rows."""
    session = get_drill_session(user_id, session_id)
    if session is None:
        return None

    result = session.to_dict()
    result["drills"] = [d.to_dict() for d in get_drills_by_ids(session.drill_ids)]
    return result


def _row_to_rule(row) -> VerbRuleRecord:
    """Convert database row to VerbRuleRecord."""
    return VerbRuleRecord(
        id=row["id"],
        name=row["name"],
        description=row["description"],
        category=row["category"],
        tenses=json.loads(row["tenses"]),
        examples=json.loads(row["examples"] or "[]"),
        icon=row["icon"],
        order=row["order"],
        is_unlocked=bool(row["is_unlocked"]),
        created_at=row["created_at"],
    )


def _row_to_drill(row) -> DrillRecord:
    return DrillRecord(
        id=row["id"],
        sentence=row["sentence"],
        verb=row["verb"],
        pronoun=row["pronoun"],
        tense=row["tense"],
        correct_answer=row["correct_answer"],
        rule_id=row["rule_id"],
        difficulty=row["difficulty"],
        created_at=row["created_at"],
    )


def _row_to_progress(row) -> RuleProgressRecord:
    return RuleProgressRecord(
        id=row["id"],
        user_id=row["user_id"],
        rule_id=row["rule_id"],
        correct_count=row["correct_count"],
        total_attempts=row["total_attempts"],
        last_attempt_at=row["last_attempt_at"],
        is_unlocked=bool(row["is_unlocked"]),
        unlocked_at=row["unlocked_at"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_attempt(row) -> AttemptRecord:
    return AttemptRecord(
        id=row["id"],
        user_id=row["user_id"],
        drill_id=row["drill_id"],
        user_answer=row["user_answer"],
        is_correct=bool(row["is_correct"]),
        time_spent=row["time_spent"],
        status=row["status"],
        created_at=row["created_at"],
    )


def _row_to_session(row) -> DrillSessionRecord:
    return DrillSessionRecord(
        id=row["id"],
        user_id=row["user_id"],
        drill_ids=json.loads(row["drill_ids"]),
        status=row["status"],
        created_at=row["created_at"],
        completed_at=row["completed_at"],
    )
