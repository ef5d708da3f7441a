"""Repository functions for the books tables.

Provides CRUD operations for books, reading_progress, bookmarks
and book_annotations. All per-user rows are filtered by user_id.
"""

from __future__ import annotations

import json
import uuid
from dataclasses import asdict, dataclass
from typing import Any

import structlog

from escribiendo.db.database import get_db, utc_now

logger = structlog.get_logger(__name__)

# Columns of books that update_book may change
BOOK_UPDATABLE_FIELDS = (
    "title",
    "author",
    "language",
    "description",
    "isbn",
    "publisher",
    "metadata",
)


@dataclass
class BookRecord:
    """Book record from database."""

    id: str
    user_id: str
    title: str
    author: str | None
    language: str
    description: str | None
    file_path: str
    file_size: int
    isbn: str | None
    publisher: str | None
    metadata: dict[str, Any] | None
    created_at: str
    updated_at: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class ReadingProgressRecord:
    """Reading position of a user in a book."""

    id: str
    user_id: str
    book_id: str
    current_location: str
    progress_percentage: int
    reading_time_ms: int
    last_read_at: str
    created_at: str
    updated_at: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class BookmarkRecord:
    """Bookmark record from database."""

    id: str
    user_id: str
    book_id: str
    location: str
    text: str | None
    note: str | None
    created_at: str
    updated_at: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class AnnotationRecord:
    """Highlighted passage with an optional note."""

    id: str
    user_id: str
    book_id: str
    start_location: str
    end_location: str
    selected_text: str
    annotation: str | None
    highlight_color: str
    created_at: str
    updated_at: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# =============================================================================
# BOOKS
# =============================================================================


def insert_book(
    user_id: str,
    title: str,
    file_path: str,
    file_size: int,
    author: str | None = None,
    language: str = "es",
    description: str | None = None,
    isbn: str | None = None,
    publisher: str | None = None,
    metadata: dict[str, Any] | None = None,
    book_id: str | None = None,
) -> BookRecord:
    """Insert a new book record.

    Args:
        user_id: Owner of the book
        title: Book title
        file_path: Path of the stored EPUB
        file_size: Size of the EPUB in bytes
        author: Author name
        language: ISO 639-1 language code
        description: Blurb from the EPUB metadata
        isbn: ISBN if known
        publisher: Publisher if known
        metadata: Extra metadata stored as JSON
        book_id: Explicit id (generated when omitted)

    Returns:
        The created BookRecord
    """
    book_id = book_id or str(uuid.uuid4())
    now = utc_now()

    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO books (
                id, user_id, title, author, language, description, file_path,
                file_size, isbn, publisher, metadata, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                book_id,
                user_id,
                title,
                author,
                language,
                description,
                file_path,
                file_size,
                isbn,
                publisher,
                json.dumps(metadata, ensure_ascii=False) if metadata is not None else None,
                now,
                now,
            ),
        )

    logger.debug("books.inserted", book_id=book_id, title=title)
    return get_book_by_id(book_id)  # type: ignore[return-value]


def get_book_by_id(book_id: str) -> BookRecord | None:
    """Get book by ID.

    Returns:
        BookRecord if found, None otherwise
    """
    with get_db() as conn:
        row = conn.execute("SELECT * FROM books WHERE id = ?", (book_id,)).fetchone()

    if row is None:
        return None

    return _row_to_book(row)


def get_books_by_user(user_id: str) -> list[BookRecord]:
    """Get a user's books, most recently updated first."""
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM books WHERE user_id = ? ORDER BY updated_at DESC",
            (user_id,),
        ).fetchall()

    return [_row_to_book(row) for row in rows]


def update_book(book_id: str, **updates: Any) -> BookRecord | None:
    """Update book fields.

    Only keys in BOOK_UPDATABLE_FIELDS are applied; None values are skipped.

    Returns:
        Updated BookRecord, or None if not found
    """
    fields = {
        k: v for k, v in updates.items() if k in BOOK_UPDATABLE_FIELDS and v is not None
    }
    if "metadata" in fields:
        fields["metadata"] = json.dumps(fields["metadata"], ensure_ascii=False)

    assignments = ", ".join(f"{k} = ?" for k in fields)
    params = [*fields.values(), utc_now(), book_id]

    with get_db() as conn:
        cursor = conn.execute(
            f"UPDATE books SET {assignments + ', ' if assignments else ''}updated_at = ? WHERE id = ?",
            params,
        )

    if cursor.rowcount == 0:
        return None

    logger.debug("books.updated", book_id=book_id, fields=list(fields))
    return get_book_by_id(book_id)


def delete_book(book_id: str) -> bool:
    """Delete book (progress, bookmarks and annotations cascade).

    Returns:
        True if deleted, False if not found
    """
    with get_db() as conn:
        cursor = conn.execute("DELETE FROM books WHERE id = ?", (book_id,))
        deleted = cursor.rowcount > 0

    if deleted:
        logger.debug("books.deleted", book_id=book_id)

    return deleted


def get_books_with_progress(user_id: str) -> list[dict[str, Any]]:
    """Books of a user, each with its reading progress (or None)."""
    result = []
    for book in get_books_by_user(user_id):
        entry = book.to_dict()
        progress = get_reading_progress(user_id, book.id)
        entry["progress"] = progress.to_dict() if progress else None
        result.append(entry)
    return result


def get_book_with_progress(user_id: str, book_id: str) -> dict[str, Any] | None:
    """Book with reading progress and the user's bookmark count."""
    book = get_book_by_id(book_id)
    if book is None:
        return None

    with get_db() as conn:
        count = conn.execute(
            "SELECT COUNT(*) FROM bookmarks WHERE user_id = ? AND book_id = ?",
            (user_id, book_id),
        ).fetchone()[0]

    progress = get_reading_progress(user_id, book_id)
    result = book.to_dict()
    result["progress"] = progress.to_dict() if progress else None
    result["bookmarks_count"] = count
    return result


# =============================================================================
# READING PROGRESS
# =============================================================================


def get_reading_progress(user_id: str, book_id: str) -> ReadingProgressRecord | None:
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM reading_progress WHERE user_id = ? AND book_id = ?",
            (user_id, book_id),
        ).fetchone()

    if row is None:
        return None

    return _row_to_progress(row)


def upsert_reading_progress(
    user_id: str,
    book_id: str,
    current_location: str,
    progress_percentage: int | None = None,
    reading_time_ms: int | None = None,
) -> ReadingProgressRecord:
    """Create or update the reading position of a user in a book.

    Raises:
        sqlite3.IntegrityError: If book_id does not exist
    """
    now = utc_now()

    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO reading_progress (
                id, user_id, book_id, current_location, progress_percentage,
                reading_time_ms, last_read_at, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(user_id, book_id) DO UPDATE SET
                current_location = excluded.current_location,
                progress_percentage = COALESCE(?, reading_progress.progress_percentage),
                reading_time_ms = COALESCE(?, reading_progress.reading_time_ms),
                last_read_at = excluded.last_read_at,
                updated_at = excluded.updated_at
            """,
            (
                str(uuid.uuid4()),
                user_id,
                book_id,
                current_location,
                progress_percentage or 0,
                reading_time_ms or 0,
                now,
                now,
                now,
                progress_percentage,
                reading_time_ms,
            ),
        )

    logger.debug("books.progress_saved", book_id=book_id, user_id=user_id)
    return get_reading_progress(user_id, book_id)  # type: ignore[return-value]


# =============================================================================
# BOOKMARKS
# =============================================================================


def create_bookmark(
    user_id: str,
    book_id: str,
    location: str,
    text: str | None = None,
    note: str | None = None,
) -> BookmarkRecord:
    bookmark_id = str(uuid.uuid4())
    now = utc_now()

    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO bookmarks (id, user_id, book_id, location, text, note, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (bookmark_id, user_id, book_id, location, text, note, now, now),
        )
        row = conn.execute("SELECT * FROM bookmarks WHERE id = ?", (bookmark_id,)).fetchone()

    logger.debug("books.bookmark_created", bookmark_id=bookmark_id, book_id=book_id)
    return _row_to_bookmark(row)


def get_bookmarks(user_id: str, book_id: str) -> list[BookmarkRecord]:
    """Bookmarks of a user in a book, newest first."""
    with get_db() as conn:
        rows = conn.execute(
            """
            SELECT * FROM bookmarks WHERE user_id = ? AND book_id = ?
            ORDER BY created_at DESC
            """,
            (user_id, book_id),
        ).fetchall()

    return [_row_to_bookmark(row) for row in rows]


def delete_bookmark(bookmark_id: str, user_id: str, book_id: str) -> bool:
    """Delete a bookmark only when it belongs to the user and the book."""
    with get_db() as conn:
        cursor = conn.execute(
            "DELETE FROM bookmarks WHERE id = ? AND user_id = ? AND book_id = ?",
            (bookmark_id, user_id, book_id),
        )
        return cursor.rowcount > 0


# =============================================================================
# ANNOTATIONS
# =============================================================================


def create_annotation(
    user_id: str,
    book_id: str,
    start_location: str,
    end_location: str,
    selected_text: str,
    annotation: str | None = None,
    highlight_color: str = "yellow",
) -> AnnotationRecord:
    annotation_id = str(uuid.uuid4())
    now = utc_now()

    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO book_annotations (
                id, user_id, book_id, start_location, end_location, selected_text,
                annotation, highlight_color, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                annotation_id,
                user_id,
                book_id,
                start_location,
                end_location,
                selected_text,
                annotation,
                highlight_color,
                now,
                now,
            ),
        )

    logger.debug("books.annotation_created", annotation_id=annotation_id, book_id=book_id)
    return _get_annotation(annotation_id)  # type: ignore[return-value]


def _get_annotation(annotation_id: str) -> AnnotationRecord | None:
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM book_annotations WHERE id = ?", (annotation_id,)
        ).fetchone()

    if row is None:
        return None

    return _row_to_annotation(row)


def get_annotations(user_id: str, book_id: str) -> list[AnnotationRecord]:
    """Annotations of a user in a book, newest first."""
    with get_db() as conn:
        rows = conn.execute(
            """
            SELECT * FROM book_annotations WHERE user_id = ? AND book_id = ?
            ORDER BY created_at DESC
            """,
            (user_id, book_id),
        ).fetchall()

    return [_row_to_annotation(row) for row in rows]


def update_annotation(
    annotation_id: str,
    user_id: str,
    book_id: str,
    annotation: str | None = None,
    highlight_color: str | None = None,
) -> AnnotationRecord | None:
    with get_db() as conn:
        cursor = conn.execute(
            """
            UPDATE book_annotations SET
                annotation = COALESCE(?, annotation),
                highlight_color = COALESCE(?, highlight_color),
                updated_at = ?
            WHERE id = ? AND user_id = ? AND book_id = ?
            """,
            (annotation, highlight_color, utc_now(), annotation_id, user_id, book_id),
        )

    if cursor.rowcount == 0:
        return None

    return _get_annotation(annotation_id)


def delete_annotation(annotation_id: str, user_id: str, book_id: str) -> bool:
    with get_db() as conn:
        cursor = conn.execute(
            "DELETE FROM book_annotations WHERE id = ? AND user_id = ? AND book_id = ?",
            (annotation_id, user_id, book_id),
        )
        return cursor.rowcount > 0


def _row_to_book(row) -> BookRecord:
    """Convert database row to BookRecord."""
    return BookRecord(
        id=row["id"],
        user_id=row["user_id"],
        title=row["title"],
        author=row["author"],
        language=row["language"],
        description=row["description"],
        file_path=row["file_path"],
        file_size=row["file_size"],
        isbn=row["isbn"],
        publisher=row["publisher"],
        metadata=json.loads(row["metadata"]) if row["metadata"] else None,
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_progress(row) -> ReadingProgressRecord:
    return ReadingProgressRecord(
        id=row["id"],
        user_id=row["user_id"],
        book_id=row["book_id"],
        current_location=row["current_location"],
        progress_percentage=row["progress_percentage"],
        reading_time_ms=row["reading_time_ms"],
        last_read_at=row["last_read_at"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_bookmark(row) -> BookmarkRecord:
    return BookmarkRecord(
        id=row["id"],
        user_id=row["user_id"],
        book_id=row["book_id"],
        location=row["location"],
        text=row["text"],
        note=row["note"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_annotation(row) -> AnnotationRecord:
    return AnnotationRecord(
        id=row["id"],
        user_id=row["user_id"],
        book_id=row["book_id"],
        start_location=row["start_location"],
        end_location=row["end_location"],
        selected_text=row["selected_text"],
        annotation=row["annotation"],
        highlight_color=row["highlight_color"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )
