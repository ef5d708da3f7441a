"""Repository functions for chats and messages tables.

Provides CRUD operations for conversation practice chats.
Messages are cascade-deleted with their chat.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import asdict, dataclass
from typing import Any

import structlog

from escribiendo.db.database import get_db, utc_now

logger = structlog.get_logger(__name__)

MESSAGE_TYPES = ("user", "assistant", "suggestion")


@dataclass
class ChatRecord:
    """Chat record from database."""

    id: str
    title: str
    model: str
    created_at: int
    updated_at: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class MessageRecord:
    """Message record from database."""

    id: str
    chat_id: str
    type: str
    content: str
    timestamp: int
    is_complete: bool
    created_at: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _now_ms() -> int:
    return int(time.time() * 1000)


# =============================================================================
# CHATS
# =============================================================================


def get_chats() -> list[ChatRecord]:
    """Get all chats, newest first."""
    with get_db() as conn:
        rows = conn.execute("SELECT * FROM chats ORDER BY created_at DESC").fetchall()

    return [_row_to_chat(row) for row in rows]


def get_chat_by_id(chat_id: str) -> ChatRecord | None:
    """Get chat by ID.

    Returns:
        ChatRecord if found, None otherwise
    """
    with get_db() as conn:
        row = conn.execute("SELECT * FROM chats WHERE id = ?", (chat_id,)).fetchone()

    if row is None:
        return None

    return _row_to_chat(row)


def get_chat_with_messages(chat_id: str) -> dict[str, Any] | None:
    """Get chat with its messages ordered by timestamp."""
    chat = get_chat_by_id(chat_id)
    if chat is None:
        return None

    result = chat.to_dict()
    result["messages"] = [m.to_dict() for m in get_messages_by_chat(chat_id)]
    return result


def create_chat(
    title: str,
    chat_id: str | None = None,
    model: str = "gpt-4o",
    created_at: int | None = None,
) -> ChatRecord:
    """Insert a new chat.

    Args:
        title: Chat title
        chat_id: Client-supplied id (generated when omitted)
        model: Model id used for this chat
        created_at: Epoch milliseconds (defaults to now)

    Raises:
        sqlite3.IntegrityError: If chat_id already exists
    """
    chat_id = chat_id or f"chat-{uuid.uuid4()}"
    created_at = created_at or _now_ms()

    with get_db() as conn:
        conn.execute(
            "INSERT INTO chats (id, title, model, created_at, updated_at) VALUES (?, ?, ?, ?, ?)",
            (chat_id, title, model, created_at, utc_now()),
        )

    logger.debug("chats.created", chat_id=chat_id)
    return get_chat_by_id(chat_id)  # type: ignore[return-value]


def update_chat(
    chat_id: str,
    title: str | None = None,
    model: str | None = None,
) -> ChatRecord | None:
    """Update chat title and/or model, bumping updated_at.

    Returns:
        Updated ChatRecord, or None if not found
    """
    with get_db() as conn:
        cursor = conn.execute(
            """
            UPDATE chats SET
                title = COALESCE(?, title),
                model = COALESCE(?, model),
                updated_at = ?
            WHERE id = ?
            """,
            (title, model, utc_now(), chat_id),
        )

    if cursor.rowcount == 0:
        return None

    logger.debug("chats.updated", chat_id=chat_id)
    return get_chat_by_id(chat_id)


def delete_chat(chat_id: str) -> ChatRecord | None:
    """Delete chat (messages cascade).

    Returns:
        The deleted ChatRecord, or None if not found
    """
    chat = get_chat_by_id(chat_id)
    if chat is None:
        return None

    with get_db() as conn:
        conn.execute("DELETE FROM chats WHERE id = ?", (chat_id,))

    logger.debug("chats.deleted", chat_id=chat_id)
    return chat


# =============================================================================
# MESSAGES
# =============================================================================


def get_messages_by_chat(chat_id: str) -> list[MessageRecord]:
    """Get messages of a chat ordered by timestamp."""
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM messages WHERE chat_id = ? ORDER BY timestamp, created_at",
            (chat_id,),
        ).fetchall()

    return [_row_to_message(row) for row in rows]


def get_message_by_id(message_id: str) -> MessageRecord | None:
    with get_db() as conn:
        row = conn.execute("SELECT * FROM messages WHERE id = ?", (message_id,)).fetchone()

    if row is None:
        return None

    return _row_to_message(row)


def create_message(
    chat_id: str,
    type: str,
    content: str,
    message_id: str | None = None,
    timestamp: int | None = None,
    is_complete: bool = True,
) -> MessageRecord:
    """Insert a new message.

    Raises:
        sqlite3.IntegrityError: If chat_id does not exist or type is invalid
    """
    message_id = message_id or f"msg-{uuid.uuid4()}"
    timestamp = timestamp or _now_ms()

    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO messages (id, chat_id, type, content, timestamp, is_complete, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (message_id, chat_id, type, content, timestamp, int(is_complete), utc_now()),
        )

    logger.debug("messages.created", message_id=message_id, chat_id=chat_id, type=type)
    return get_message_by_id(message_id)  # type: ignore[return-value]


def update_message(
    message_id: str,
    content: str | None = None,
    is_complete: bool | None = None,
    type: str | None = None,
) -> MessageRecord | None:
    """Update message fields that are not None.

    Returns:
        Updated MessageRecord, or None if not found
    """
    with get_db() as conn:
        cursor = conn.execute(
            """
            UPDATE messages SET
                content = COALESCE(?, content),
                is_complete = COALESCE(?, is_complete),
                type = COALESCE(?, type)
            WHERE id = ?
            """,
            (
                content,
                None if is_complete is None else int(is_complete),
                type,
                message_id,
            ),
        )

    if cursor.rowcount == 0:
        return None

    return get_message_by_id(message_id)


def delete_message(message_id: str) -> MessageRecord | None:
    """Delete message by ID.

    Returns:
        The deleted MessageRecord, or None if not found
    """
    message = get_message_by_id(message_id)
    if message is None:
        return None

    with get_db() as conn:
        conn.execute("DELETE FROM messages WHERE id = ?", (message_id,))

    logger.debug("messages.deleted", message_id=message_id)
    return message


def _row_to_chat(row) -> ChatRecord:
    """Convert database row to ChatRecord."""
    return ChatRecord(
        id=row["id"],
        title=row["title"],
        model=row["model"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_message(row) -> MessageRecord:
    """Convert database row to MessageRecord."""
    return MessageRecord(
        id=row["id"],
        chat_id=row["chat_id"],
        type=row["type"],
        content=row["content"],
        timestamp=row["timestamp"],
        is_complete=bool(row["is_complete"]),
        created_at=row["created_at"],
    )
