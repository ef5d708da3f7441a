"""Chat and message endpoints."""

import sqlite3

import structlog
from fastapi import APIRouter, HTTPException, Response, status

from escribiendo.config.app_config import load_app_config
from escribiendo.db import chat_repository as repo
from escribiendo.web.deps import check_model
from escribiendo.web.schemas import (
    ChatCreate,
    ChatDetail,
    ChatResponse,
    ChatUpdate,
    MessageCreate,
    MessageResponse,
    MessageUpdate,
)

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/chats", tags=["chats"])
messages_router = APIRouter(prefix="/api/messages", tags=["messages"])


def _chat_not_found(chat_id: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Chat '{chat_id}' not found",
    )


# =============================================================================
# CHATS
# =============================================================================


@router.get("", response_model=list[ChatResponse])
async def list_chats() -> list[repo.ChatRecord]:
    """List all chats, newest first."""
    return repo.get_chats()


@router.post("", response_model=ChatResponse, status_code=status.HTTP_201_CREATED)
async def create_chat(request: ChatCreate) -> repo.ChatRecord:
    """Create a new chat."""
    check_model(request.model)

    try:
        chat = repo.create_chat(
            title=request.title,
            chat_id=request.id,
            model=request.model or load_app_config().default_model,
            created_at=request.created_at,
        )
    except sqlite3.IntegrityError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Chat '{request.id}' already exists",
        )

    logger.info("chat_created", chat_id=chat.id)
    return chat


@router.get("/{chat_id}", response_model=ChatDetail)
async def get_chat(chat_id: str) -> dict:
    """Get a chat with its messages."""
    chat = repo.get_chat_with_messages(chat_id)
    if chat is None:
        raise _chat_not_found(chat_id)
    return chat


@router.patch("/{chat_id}", response_model=ChatResponse)
async def update_chat(chat_id: str, request: ChatUpdate) -> repo.ChatRecord:
    """Rename a chat or switch its model."""
    check_model(request.model)

    chat = repo.update_chat(chat_id, title=request.title, model=request.model)
    if chat is None:
        raise _chat_not_found(chat_id)
    return chat


@router.delete("/{chat_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_chat(chat_id: str) -> Response:
    """Delete a chat and its messages."""
    if repo.delete_chat(chat_id) is None:
        raise _chat_not_found(chat_id)

    logger.info("chat_deleted", chat_id=chat_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{chat_id}/messages", response_model=list[MessageResponse])
async def list_chat_messages(chat_id: str) -> list[repo.MessageRecord]:
    """List messages of a chat ordered by timestamp."""
    if repo.get_chat_by_id(chat_id) is None:
        raise _chat_not_found(chat_id)
    return repo.get_messages_by_chat(chat_id)


# =============================================================================
# MESSAGES
# =============================================================================


@messages_router.post("", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
async def create_message(request: MessageCreate) -> repo.MessageRecord:
    """Append a message to a chat."""
    if repo.get_chat_by_id(request.chat_id) is None:
        raise _chat_not_found(request.chat_id)

    try:
        return repo.create_message(
            chat_id=request.chat_id,
            type=request.type,
            content=request.content,
            message_id=request.id,
            timestamp=request.timestamp,
            is_complete=request.is_complete,
        )
    except sqlite3.IntegrityError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Message '{request.id}' already exists",
        )


@messages_router.patch("/{message_id}", response_model=MessageResponse)
async def update_message(message_id: str, request: MessageUpdate) -> repo.MessageRecord:
    """Update message content, completion flag or type."""
    message = repo.update_message(
        message_id,
        content=request.content,
        is_complete=request.is_complete,
        type=request.type,
    )
    if message is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Message '{message_id}' not found",
        )
    return message


@messages_router.delete("/{message_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_message(message_id: str) -> Response:
    if repo.delete_message(message_id) is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Message '{message_id}' not found",
        )
    return Response(status_code=status.HTTP_204_NO_CONTENT)
