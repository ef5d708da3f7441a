"""Tests for journal entries and corrections."""

import sqlite3

import pytest

from escribiendo.db import journal_repository as repo


def _doc(*paragraphs):
    return {
        "type": "doc",
        "content": [
            {"type": "paragraph", "content": [{"type": "text", "text": p}]} for p in paragraphs
        ],
    }


class TestEntries:
    """Tests for entry CRUD."""

    def test_create_computes_text_fields(self, db):
        entry = repo.create_entry("ana", _doc("Hoy fui al mercado.", "Compré pan."))
        assert entry.id.startswith("entry-")
        assert entry.title == "Untitled"
        assert entry.plain_text == "Hoy fui al mercado. Compré pan."
        assert entry.word_count == 6
        assert entry.content["type"] == "doc"

    def test_create_with_id_and_title(self, db):
        entry = repo.create_entry("ana", _doc("Hola"), title="Lunes", entry_id="e1")
        assert repo.get_entry_by_id("e1") == entry
        assert entry.title == "Lunes"

    def test_list_by_user_recent_first(self, db):
        repo.create_entry("ana", _doc("uno"), entry_id="e1")
        repo.create_entry("ana", _doc("dos"), entry_id="e2")
        repo.create_entry("luis", _doc("tres"), entry_id="e3")
        repo.update_entry("e1", title="Editado")

        assert [e.id for e in repo.get_entries_by_user("ana")] == ["e1", "e2"]

    def test_update_content_recounts(self, db):
        repo.create_entry("ana", _doc("uno"), entry_id="e1")
        updated = repo.update_entry("e1", content=_doc("uno dos tres"))
        assert updated.word_count == 3
        assert updated.title == "Untitled"

    def test_update_missing(self, db):
        assert repo.update_entry("nope", title="x") is None

    def test_delete_cascades_corrections(self, db):
        repo.create_entry("ana", _doc("Yo va"), entry_id="e1")
        correction = repo.create_correction("e1", "Yo va", "Yo voy", 0, 5)

        assert repo.delete_entry("e1") is True
        assert repo.get_correction_by_id(correction.id) is None
        assert repo.delete_entry("e1") is False


class TestCorrections:
    """Tests for pending corrections."""

    def test_pending_ordered_by_position(self, db):
        repo.create_entry("ana", _doc("Yo va y tu es"), entry_id="e1")
        repo.create_correction("e1", "tu es", "tú eres", 8, 13)
        repo.create_correction("e1", "Yo va", "Yo voy", 0, 5, explanation="ir")

        pending = repo.get_pending_corrections("e1")
        assert [c.start_pos for c in pending] == [0, 8]
        assert pending[0].status == "pending"

        detail = repo.get_entry_with_corrections("e1")
        assert len(detail["corrections"]) == 2

    def test_accepted_leave_pending_list(self, db):
        repo.create_entry("ana", _doc("Yo va"), entry_id="e1")
        correction = repo.create_correction("e1", "Yo va", "Yo voy", 0, 5)

        updated = repo.update_correction_status(correction.id, "accepted")
        assert updated.status == "accepted"
        assert repo.get_pending_corrections("e1") == []

    def test_invalid_status(self, db):
        with pytest.raises(ValueError):
            repo.update_correction_status("corr-1", "maybe")

    def test_missing_correction(self, db):
        assert repo.update_correction_status("corr-missing", "rejected") is None

    def test_clear_only_pending(self, db):
        repo.create_entry("ana", _doc("x"), entry_id="e1")
        keep = repo.create_correction("e1", "a", "b", 0, 1)
        repo.create_correction("e1", "c", "d", 2, 3)
        repo.create_correction("e1", "e", "f", 4, 5)
        repo.update_correction_status(keep.id, "rejected")

        assert repo.clear_pending_corrections("e1") == 2
        assert repo.get_correction_by_id(keep.id).status == "rejected"

    def test_correction_requires_entry(self, db):
        with pytest.raises(sqlite3.IntegrityError):
            repo.create_correction("missing", "a", "b", 0, 1)
