"""Tests for the rule catalog and drill rule selection."""

from dataclasses import dataclass

from escribiendo.core.conjugation_rules import (
    CONJUGATION_RULES,
    TENSES,
    first_rule,
    get_rule,
    next_rule,
    rules_by_category,
    rules_by_order,
)
from escribiendo.core.drill_selection import (
    check_answer,
    format_user_stats,
    select_rules_to_focus,
    unlocked_rule_ids,
)


@dataclass
class Progress:
    rule_id: str
    is_unlocked: bool = True
    total_attempts: int = 0
    correct_count: int = 0
    last_attempt_at: str | None = None


class TestCatalog:
    """Tests for the conjugation rule catalog."""

    def test_catalog_is_ordered_and_unique(self):
        ordered = rules_by_order()
        assert [r.order for r in ordered] == list(range(1, len(ordered) + 1))
        assert len({r.id for r in CONJUGATION_RULES}) == len(CONJUGATION_RULES)

    def test_tenses_are_known(self):
        for rule in CONJUGATION_RULES:
            assert rule.tenses
            assert set(rule.tenses) <= set(TENSES)

    def test_first_rule(self):
        assert first_rule().id == "regular-present-ar"

    def test_next_rule(self):
        assert next_rule({"regular-present-ar"}).id == "regular-present-er"
        assert next_rule({r.id for r in CONJUGATION_RULES}) is None

    def test_lookup(self):
        assert get_rule("ir-present").category == "irregular"
        assert get_rule("missing") is None
        assert all(r.category == "stem-changing" for r in rules_by_category("stem-changing"))


class TestSelectRulesToFocus:
    """Tests for select_rules_to_focus."""

    def test_no_progress_uses_first_rule(self):
        assert unlocked_rule_ids([]) == ["regular-present-ar"]
        assert select_rules_to_focus([]) == ["regular-present-ar"]

    def test_explicit_focus_wins(self):
        progress = [
            Progress("regular-present-ar", total_attempts=3),
            Progress("regular-present-er", total_attempts=30, correct_count=30),
        ]
        assert select_rules_to_focus(progress, "regular-present-er") == ["regular-present-er"]

    def test_locked_focus_ignored(self):
        progress = [
            Progress("regular-present-ar", total_attempts=25, correct_count=25),
            Progress("regular-present-er", is_unlocked=False),
        ]
        assert select_rules_to_focus(progress, "regular-present-er") == ["regular-present-ar"]

    def test_rule_still_being_learned(self):
        """The first rule under the attempt window is practiced alone."""
        progress = [
            Progress("regular-present-ar", total_attempts=40, correct_count=39),
            Progress("regular-present-er", total_attempts=5, correct_count=2),
            Progress("regular-present-ir", total_attempts=0),
        ]
        assert select_rules_to_focus(progress) == ["regular-present-er"]

    def test_learning_rule_must_be_unlocked(self):
        """A locked entry under the window falls through to the mixed batch."""
        progress = [
            Progress("regular-present-ar", total_attempts=40, correct_count=40),
            Progress("regular-present-er", is_unlocked=False),
        ]
        assert select_rules_to_focus(progress) == ["regular-present-ar"]

    def test_mixed_batch(self):
        """Weak rules first, then recent, then the latest unlocks."""
        progress = [
            Progress("a", total_attempts=30, correct_count=29, last_attempt_at="2024-01-01T00:00:00"),
            Progress("b", total_attempts=30, correct_count=15, last_attempt_at="2024-01-02T00:00:00"),
            Progress("c", total_attempts=30, correct_count=30, last_attempt_at="2024-01-05T00:00:00"),
            Progress("d", total_attempts=30, correct_count=30, last_attempt_at="2024-01-04T00:00:00"),
            Progress("e", total_attempts=30, correct_count=30, last_attempt_at="2024-01-03T00:00:00"),
        ]
        assert select_rules_to_focus(progress) == ["b", "c", "d", "e"]

    def test_mixed_batch_adds_latest_unlocked(self):
        progress = [
            Progress("a", total_attempts=20, correct_count=20, last_attempt_at="2024-01-09T00:00:00"),
            Progress("b", total_attempts=20, correct_count=20, last_attempt_at="2024-01-08T00:00:00"),
            Progress("c", total_attempts=20, correct_count=20, last_attempt_at="2024-01-07T00:00:00"),
            Progress("d", total_attempts=20, correct_count=20, last_attempt_at="2024-01-01T00:00:00"),
            Progress("e", total_attempts=20, correct_count=20, last_attempt_at="2024-01-02T00:00:00"),
        ]
        assert select_rules_to_focus(progress) == ["a", "b", "c", "d", "e"]


class TestFormatUserStats:
    def test_lines_for_focused_rules(self):
        progress = [
            Progress("a", total_attempts=4, correct_count=3, last_attempt_at="2024-03-10T12:00:00+00:00"),
            Progress("b", total_attempts=0),
            Progress("c", total_attempts=2, correct_count=2),
        ]
        stats = format_user_stats(progress, {"a": "Rule A", "b": "Rule B"}, ["a", "b"])
        assert stats.splitlines() == [
            "Rule A: 75% accuracy (3/4), last attempt: 2024-03-10",
            "Rule B: 0% accuracy (0/0), last attempt: Never",
        ]


class TestCheckAnswer:
    def test_case_and_whitespace_insensitive(self):
        assert check_answer("  Hablo ", "hablo")

    def test_wrong(self):
        assert not check_answer("hablas", "hablo")
