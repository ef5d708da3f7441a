"""SQLite database connection and schema management.

Provides connection management and schema initialization for escribiendo.
"""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Generator

import structlog

from escribiendo.config.app_config import load_app_config

logger = structlog.get_logger(__name__)

# Current database file (set by init_db)
_db_path: Path | None = None


def _resolve_db_path() -> Path:
    if _db_path is not None:
        return _db_path
    return Path(load_app_config().storage.db_path)


def init_db(db_path: Path | None = None) -> Path:
    """Initialize database with schema.

    Creates the database file and all required tables if they don't exist.

    Args:
        db_path: Path to database file. Defaults to the configured db_path.

    Returns:
        Path of the initialized database.
    """
    global _db_path
    _db_path = db_path or Path(load_app_config().storage.db_path)

    _db_path.parent.mkdir(parents=True, exist_ok=True)

    with get_db() as conn:
        _create_schema(conn)

    logger.info("database.initialized", path=str(_db_path))
    return _db_path


def reset_db_path() -> None:
    """Forget the initialized path (for testing)."""
    global _db_path
    _db_path = None


@contextmanager
def get_db() -> Generator[sqlite3.Connection, None, None]:
    """Get database connection as context manager.

    Yields:
        SQLite connection with row factory set to sqlite3.Row

    Example:
        with get_db() as conn:
            rows = conn.execute("SELECT * FROM chats").fetchall()
    """
    db_path = _resolve_db_path()
    db_path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")

    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def _create_schema(conn: sqlite3.Connection) -> None:
    """Create database schema.

    Uses IF NOT EXISTS for idempotency. Timestamps are ISO-8601 text except
    chats.created_at and messages.timestamp, which hold client epoch millis.
    """
    conn.executescript(
        """
        -- Chat
        CREATE TABLE IF NOT EXISTS chats (
            id TEXT PRIMARY KEY,
            title TEXT NOT NULL,
            model TEXT NOT NULL DEFAULT 'gpt-4o',
            created_at INTEGER NOT NULL,
            updated_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS messages (
            id TEXT PRIMARY KEY,
            chat_id TEXT NOT NULL REFERENCES chats(id) ON DELETE CASCADE,
            type TEXT NOT NULL CHECK(type IN ('user', 'assistant', 'suggestion')),
            content TEXT NOT NULL,
            timestamp INTEGER NOT NULL,
            is_complete INTEGER NOT NULL DEFAULT 1,
            created_at TEXT NOT NULL
        );

        -- Journal
        CREATE TABLE IF NOT EXISTS journal_entries (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL,
            title TEXT NOT NULL DEFAULT 'Untitled',
            content TEXT NOT NULL,
            plain_text TEXT NOT NULL DEFAULT '',
            word_count INTEGER NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS journal_corrections (
            id TEXT PRIMARY KEY,
            entry_id TEXT NOT NULL REFERENCES journal_entries(id) ON DELETE CASCADE,
            original_text TEXT NOT NULL,
            corrected_text TEXT NOT NULL,
            explanation TEXT,
            start_pos INTEGER NOT NULL,
            end_pos INTEGER NOT NULL,
            status TEXT NOT NULL DEFAULT 'pending' CHECK(status IN ('pending', 'accepted', 'rejected')),
            created_at TEXT NOT NULL
        );

        -- Conjugation
        CREATE TABLE IF NOT EXISTS verb_rules (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            description TEXT NOT NULL,
            category TEXT NOT NULL CHECK(category IN ('regular', 'stem-changing', 'irregular', 'yo-irregular')),
            tenses TEXT NOT NULL,
            examples TEXT NOT NULL DEFAULT '[]',
            icon TEXT NOT NULL DEFAULT '',
            "order" INTEGER NOT NULL,
            is_unlocked INTEGER NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS conjugation_drills (
            id TEXT PRIMARY KEY,
            sentence TEXT NOT NULL,
            verb TEXT NOT NULL,
            pronoun TEXT NOT NULL,
            tense TEXT NOT NULL CHECK(tense IN ('present', 'preterite', 'imperfect', 'future', 'conditional', 'present_subjunctive')),
            correct_answer TEXT NOT NULL,
            rule_id TEXT NOT NULL REFERENCES verb_rules(id),
            difficulty INTEGER NOT NULL DEFAULT 1,
            created_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS user_rule_progress (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL,
            rule_id TEXT NOT NULL REFERENCES verb_rules(id),
            correct_count INTEGER NOT NULL DEFAULT 0,
            total_attempts INTEGER NOT NULL DEFAULT 0,
            last_attempt_at TEXT,
            is_unlocked INTEGER NOT NULL DEFAULT 0,
            unlocked_at TEXT,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            UNIQUE(user_id, rule_id)
        );

        CREATE TABLE IF NOT EXISTS user_drill_attempts (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL,
            drill_id TEXT NOT NULL REFERENCES conjugation_drills(id),
            user_answer TEXT NOT NULL,
            is_correct INTEGER NOT NULL,
            time_spent INTEGER,
            status TEXT NOT NULL DEFAULT 'completed' CHECK(status IN ('active', 'completed', 'skipped')),
            created_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS drill_sessions (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL,
            drill_ids TEXT NOT NULL,
            status TEXT NOT NULL DEFAULT 'active' CHECK(status IN ('active', 'completed', 'skipped')),
            created_at TEXT NOT NULL,
            completed_at TEXT
        );

        -- Books
        CREATE TABLE IF NOT EXISTS books (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL,
            title TEXT NOT NULL,
            author TEXT,
            language TEXT NOT NULL DEFAULT 'es',
            description TEXT,
            file_path TEXT NOT NULL,
            file_size INTEGER NOT NULL,
            isbn TEXT,
            publisher TEXT,
            metadata TEXT,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS reading_progress (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL,
            book_id TEXT NOT NULL REFERENCES books(id) ON DELETE CASCADE,
            current_location TEXT NOT NULL,
            progress_percentage INTEGER NOT NULL DEFAULT 0,
            reading_time_ms INTEGER NOT NULL DEFAULT 0,
            last_read_at TEXT NOT NULL,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            UNIQUE(user_id, book_id)
        );

        CREATE TABLE IF NOT EXISTS bookmarks (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL,
            book_id TEXT NOT NULL REFERENCES books(id) ON DELETE CASCADE,
            location TEXT NOT NULL,
            text TEXT,
            note TEXT,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS book_annotations (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL,
            book_id TEXT NOT NULL REFERENCES books(id) ON DELETE CASCADE,
            start_location TEXT NOT NULL,
            end_location TEXT NOT NULL,
            selected_text TEXT NOT NULL,
            annotation TEXT,
            highlight_color TEXT NOT NULL DEFAULT 'yellow',
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );

        -- Indexes
        CREATE INDEX IF NOT EXISTS idx_messages_chat ON messages(chat_id, timestamp);
        CREATE INDEX IF NOT EXISTS idx_journal_user ON journal_entries(user_id);
        CREATE INDEX IF NOT EXISTS idx_corrections_entry ON journal_corrections(entry_id, status);
        CREATE INDEX IF NOT EXISTS idx_drills_rule ON conjugation_drills(rule_id);
        CREATE INDEX IF NOT EXISTS idx_attempts_user_drill ON user_drill_attempts(user_id, drill_id);
        CREATE INDEX IF NOT EXISTS idx_sessions_user ON drill_sessions(user_id, status);
        CREATE INDEX IF NOT EXISTS idx_books_user ON books(user_id);
        """
    )


def utc_now() -> str:
    """Current UTC time as ISO-8601 text."""
    return datetime.now(timezone.utc).isoformat()
