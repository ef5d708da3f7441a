"""LLM passthrough endpoints for the chat UI.

Failed completions answer with status 500 and a body that still carries
fallback text next to the ``error`` message.
"""

from typing import Any

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse, StreamingResponse

from escribiendo.llm.service import TextResult
from escribiendo.web.deps import get_language_service
from escribiendo.web.schemas import (
    ChatReply,
    ChatRequest,
    SideChatRequest,
    StartersRequest,
    StartersResponse,
    SuggestionRequest,
    SuggestionResponse,
    TranslationRequest,
    TranslationResponse,
)

router = APIRouter(prefix="/api/llm", tags=["llm"])

SSE_HEADERS = {"Cache-Control": "no-cache", "Connection": "keep-alive"}


def _text_response(result: TextResult, field: str) -> dict[str, Any] | JSONResponse:
    body = {
        field: result.text,
        "processing_time_ms": result.processing_time_ms,
        "error": result.error,
    }
    if result.error:
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=body)
    return body


def _event_stream(events) -> StreamingResponse:
    return StreamingResponse(events, media_type="text/event-stream", headers=SSE_HEADERS)


@router.post("/suggestion", response_model=SuggestionResponse)
def suggestion(request: SuggestionRequest):
    """Natural Spanish phrasing of what the user wants to say."""
    service = get_language_service(request.model)
    return _text_response(service.suggestion(request.user_input, request.chat_context), "suggestion")


@router.post("/chat", response_model=ChatReply)
def chat(request: ChatRequest):
    """Conversational reply in Spanish, streamed as SSE when ``stream`` is set."""
    service = get_language_service(request.model)

    if request.stream:
        return _event_stream(service.chat_stream(request.user_message, request.chat_history))

    return _text_response(service.chat(request.user_message, request.chat_history), "response")


@router.post("/sidechat", response_model=ChatReply)
def side_chat(request: SideChatRequest):
    """English grammar explanation about a Spanish suggestion."""
    service = get_language_service(request.model)
    args = (request.original_context, request.spanish_suggestion, request.student_message)

    if request.stream:
        return _event_stream(service.side_chat_stream(*args))

    return _text_response(service.side_chat(*args), "response")


@router.post("/translation", response_model=TranslationResponse)
def translation(request: TranslationRequest):
    service = get_language_service(request.model)
    result = service.translation(
        request.selected_text, request.context_message, request.chat_context
    )
    return _text_response(result, "translation")


@router.post("/starters", response_model=StartersResponse)
def starters(request: StartersRequest) -> dict[str, Any]:
    """Three tutor openers and three student questions.

    LLM failures fall back to a static list with status 200.
    """
    service = get_language_service(request.model)
    result = service.conversation_starters(
        request.previous_assistant_questions, request.previous_user_questions
    )
    return result.to_dict()
