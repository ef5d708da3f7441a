"""Repository functions for journal_entries and journal_corrections tables.

Entries store the rich-text document as JSON alongside a flattened
plain_text and word_count, recomputed whenever the content changes.
"""

from __future__ import annotations

import json
import uuid
from dataclasses import asdict, dataclass
from typing import Any

import structlog

from escribiendo.db.database import get_db, utc_now
from escribiendo.utils.text_utils import calculate_word_count, extract_plain_text

logger = structlog.get_logger(__name__)

CORRECTION_STATUSES = ("pending", "accepted", "rejected")


@dataclass
class JournalEntryRecord:
    """Journal entry record from database."""

    id: str
    user_id: str
    title: str
    content: dict[str, Any]
    plain_text: str
    word_count: int
    created_at: str
    updated_at: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class CorrectionRecord:
    """Journal correction record from database."""

    id: str
    entry_id: str
    original_text: str
    corrected_text: str
    explanation: str | None
    start_pos: int
    end_pos: int
    status: str
    created_at: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# =============================================================================
# ENTRIES
# =============================================================================


def get_entries_by_user(user_id: str) -> list[JournalEntryRecord]:
    """Get a user's entries, most recently updated first."""
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM journal_entries WHERE user_id = ? ORDER BY updated_at DESC",
            (user_id,),
        ).fetchall()

    return [_row_to_entry(row) for row in rows]


def get_entry_by_id(entry_id: str) -> JournalEntryRecord | None:
    """Get entry by ID.

    Returns:
        JournalEntryRecord if found, None otherwise
    """
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM journal_entries WHERE id = ?", (entry_id,)
        ).fetchone()

    if row is None:
        return None

    return _row_to_entry(row)


def create_entry(
    user_id: str,
    content: dict[str, Any],
    title: str | None = None,
    entry_id: str | None = None,
) -> JournalEntryRecord:
    """Insert a new journal entry.

    Args:
        user_id: Owner of the entry
        content: Rich-text document
        title: Entry title (defaults to "Untitled")
        entry_id: Client-supplied id (generated when omitted)

    Returns:
        The created JournalEntryRecord
    """
    entry_id = entry_id or f"entry-{uuid.uuid4()}"
    plain_text = extract_plain_text(content)
    now = utc_now()

    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO journal_entries
                (id, user_id, title, content, plain_text, word_count, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                entry_id,
                user_id,
                title or "Untitled",
                json.dumps(content, ensure_ascii=False),
                plain_text,
                calculate_word_count(plain_text),
                now,
                now,
            ),
        )

    logger.debug("journal.entry_created", entry_id=entry_id, user_id=user_id)
    return get_entry_by_id(entry_id)  # type: ignore[return-value]


def update_entry(
    entry_id: str,
    title: str | None = None,
    content: dict[str, Any] | None = None,
) -> JournalEntryRecord | None:
    """Update title and/or content of an entry.

    New content recomputes plain_text and word_count.

    Returns:
        Updated JournalEntryRecord, or None if not found
    """
    existing = get_entry_by_id(entry_id)
    if existing is None:
        return None

    new_title = title if title is not None else existing.title
    new_content = content if content is not None else existing.content
    plain_text = extract_plain_text(new_content)

    with get_db() as conn:
        conn.execute(
            """
            UPDATE journal_entries
            SET title = ?, content = ?, plain_text = ?, word_count = ?, updated_at = ?
            WHERE id = ?
            """,
            (
                new_title,
                json.dumps(new_content, ensure_ascii=False),
                plain_text,
                calculate_word_count(plain_text),
                utc_now(),
                entry_id,
            ),
        )

    logger.debug("journal.entry_updated", entry_id=entry_id)
    return get_entry_by_id(entry_id)


def delete_entry(entry_id: str) -> bool:
    """Delete entry (corrections cascade).

    Returns:
        True if deleted, False if not found
    """
    with get_db() as conn:
        cursor = conn.execute("DELETE FROM journal_entries WHERE id = ?", (entry_id,))
        deleted = cursor.rowcount > 0

    if deleted:
        logger.debug("journal.entry_deleted", entry_id=entry_id)

    return deleted


def get_entry_with_corrections(entry_id: str) -> dict[str, Any] | None:
    """Get entry plus its pending corrections."""
    entry = get_entry_by_id(entry_id)
    if entry is None:
        return None

    result = entry.to_dict()
    result["corrections"] = [c.to_dict() for c in get_pending_corrections(entry_id)]
    return result


# =============================================================================
# CORRECTIONS
# =============================================================================


def get_pending_corrections(entry_id: str) -> list[CorrectionRecord]:
    """Get pending corrections of an entry ordered by position."""
    with get_db() as conn:
        rows = conn.execute(
            """
            SELECT * FROM journal_corrections
            WHERE entry_id = ? AND status = 'pending'
            ORDER BY start_pos
            """,
            (entry_id,),
        ).fetchall()

    return [_row_to_correction(row) for row in rows]


def get_correction_by_id(correction_id: str) -> CorrectionRecord | None:
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM journal_corrections WHERE id = ?", (correction_id,)
        ).fetchone()

    if row is None:
        return None

    return _row_to_correction(row)


def create_correction(
    entry_id: str,
    original_text: str,
    corrected_text: str,
    start_pos: int,
    end_pos: int,
    explanation: str | None = None,
    correction_id: str | None = None,
) -> CorrectionRecord:
    """Insert a pending correction for an entry.

    Raises:
        sqlite3.IntegrityError: If entry_id does not exist
    """
    correction_id = correction_id or f"corr-{uuid.uuid4()}"

    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO journal_corrections
                (id, entry_id, original_text, corrected_text, explanation,
                 start_pos, end_pos, status, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, 'pending', ?)
            """,
            (
                correction_id,
                entry_id,
                original_text,
                corrected_text,
                explanation,
                start_pos,
                end_pos,
                utc_now(),
            ),
        )

    logger.debug("journal.correction_created", correction_id=correction_id, entry_id=entry_id)
    return get_correction_by_id(correction_id)  # type: ignore[return-value]


def update_correction_status(correction_id: str, status: str) -> CorrectionRecord | None:
    """Mark a correction as accepted or rejected.

    Raises:
        ValueError: If status is not a known correction status
    """
    if status not in CORRECTION_STATUSES:
        raise ValueError(f"Invalid correction status: {status}")

    with get_db() as conn:
        cursor = conn.execute(
            "UPDATE journal_corrections SET status = ? WHERE id = ?",
            (status, correction_id),
        )

    if cursor.rowcount == 0:
        return None

    logger.debug("journal.correction_status", correction_id=correction_id, status=status)
    return get_correction_by_id(correction_id)


def clear_pending_corrections(entry_id: str) -> int:
    """Delete all pending corrections of an entry.

    Returns:
        Number of corrections removed
    """
    with get_db() as conn:
        cursor = conn.execute(
            "DELETE FROM journal_corrections WHERE entry_id = ? AND status = 'pending'",
            (entry_id,),
        )
        count = cursor.rowcount

    logger.debug("journal.corrections_cleared", entry_id=entry_id, count=count)
    return count


def _row_to_entry(row) -> JournalEntryRecord:
    """Convert database row to JournalEntryRecord."""
    return JournalEntryRecord(
        id=row["id"],
        user_id=row["user_id"],
        title=row["title"],
        content=json.loads(row["content"]) if row["content"] else {},
        plain_text=row["plain_text"],
        word_count=row["word_count"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_correction(row) -> CorrectionRecord:
    """Convert database row to CorrectionRecord."""
    return CorrectionRecord(
        id=row["id"],
        entry_id=row["entry_id"],
        original_text=row["original_text"],
        corrected_text=row["corrected_text"],
        explanation=row["explanation"],
        start_pos=row["start_pos"],
        end_pos=row["end_pos"],
        status=row["status"],
        created_at=row["created_at"],
    )
