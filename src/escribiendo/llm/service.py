"""Language-learning LLM service.

Wraps an LLMClient with the prompts used by the chat, journal and
conjugation features. Each call uses the per-task token and temperature
settings of the selected model.

Chat-facing methods never raise on LLM failure: they return a result
carrying the fallback text and an ``error`` message so the HTTP layer
can answer with status 500 and still give the client something to show.
"""

from __future__ import annotations

import json
import time
from dataclasses import asdict, dataclass, field
from typing import Any, Iterator

import structlog

from escribiendo.config.app_config import load_app_config
from escribiendo.config.models import ModelConfig, get_model
from escribiendo.llm.client import LLMClient, LLMError
from escribiendo.prompts.registry import get_prompt
from escribiendo.utils.text_utils import (
    clean_suggestion,
    parse_lines,
    strip_think,
    strip_think_streaming,
)

logger = structlog.get_logger(__name__)

SUGGESTION_ERROR = "Lo siento, hubo un error procesando tu sugerencia."
CHAT_ERROR = "Lo siento, he tenido un error. ¿Puedes intentarlo de nuevo?"
SIDE_CHAT_ERROR = "Sorry, I encountered an error. Please try asking your question again."
TRANSLATION_ERROR = "Translation error"

FALLBACK_ASSISTANT_QUESTIONS = [
    "Cuéntame sobre tu día típico",
    "¿Qué es lo que más te gusta de tu ciudad?",
    "Háblame de tu comida favorita",
]

FALLBACK_USER_QUESTIONS = [
    "¿Cuál es la tradición española más importante?",
    "¿Qué consejos tienes para mejorar mi pronunciación?",
    "¿Cómo es la vida en España comparada con otros países?",
]

ANALYSIS_PROMPTS = {
    "grammar": "journal/analyze_grammar",
    "natural-phrases": "journal/analyze_natural_phrases",
    "english-words": "journal/analyze_english_words",
}


@dataclass
class TextResult:
    """Text produced by the LLM, or a fallback with the error that caused it."""

    text: str
    processing_time_ms: int = 0
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class StartersResult:
    """Conversation starters for a new chat."""

    assistant_questions: list[str] = field(default_factory=list)
    user_questions: list[str] = field(default_factory=list)
    processing_time_ms: int = 0
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class TextSuggestion:
    """A span of journal text with a proposed replacement."""

    original_text: str
    suggested_text: str
    explanation: str = ""
    start_offset: int = 0
    end_offset: int = 0
    confidence: float = 0.5

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def build_chat_context(messages: list[dict[str, Any]], max_messages: int = 3) -> str:
    """Format the last messages of a chat as "type: content" lines.

    Only user and assistant messages are kept; the window is applied
    before filtering.
    """
    recent = messages[-max_messages:] if max_messages > 0 else []
    return "\n".join(
        f"{m['type']}: {m['content']}"
        for m in recent
        if m.get("type") in ("user", "assistant")
    )


def sse_event(event_type: str, content: str) -> str:
    """Encode one server-sent event line."""
    payload = json.dumps({"type": event_type, "content": content}, ensure_ascii=False)
    return f"data: {payload}\n\n"


def _confidence(value: Any) -> float:
    """Model-reported confidence clamped to [0, 1]; 0.5 when unusable."""
    if isinstance(value, bool):
        return 0.5
    try:
        return min(1.0, max(0.0, float(value)))
    except (TypeError, ValueError):
        return 0.5


def _elapsed_ms(start: float) -> int:
    return int((time.time() - start) * 1000)


class LanguageService:
    """LLM operations for the Spanish practice features."""

    def __init__(self, model_id: str | None = None, client: LLMClient | None = None):
        """Create a service bound to a registered model.

        Args:
            model_id: Model registry id (defaults to the configured default model)
            client: Pre-built client (tests inject mocks here)

        Raises:
            UnknownModelError: If model_id is not registered
        """
        self.model: ModelConfig = get_model(model_id or load_app_config().default_model)
        self.client = client or LLMClient.for_model(self.model)

    def _settings(self, task: str) -> dict[str, Any]:
        return {
            "temperature": self.model.temperature_for(task),
            "max_tokens": self.model.max_tokens_for(task),
        }

    # =========================================================================
    # CHAT
    # =========================================================================

    def suggestion(self, user_input: str, chat_context: str = "") -> TextResult:
        """One natural Spanish phrasing of what the user is trying to say."""
        start = time.time()
        prompt = get_prompt("chat/suggestion", user_input=user_input, chat_context=chat_context)

        try:
            content = self.client.simple_chat(
                "You are a helpful Spanish tutor.", prompt, **self._settings("suggestion")
            )
        except LLMError as e:
            logger.error("suggestion_failed", error=str(e), model=self.model.id)
            return TextResult(SUGGESTION_ERROR, _elapsed_ms(start), error=str(e))

        return TextResult(clean_suggestion(content), _elapsed_ms(start))

    def chat(self, user_message: str, chat_history: str = "") -> TextResult:
        """Spanish conversational reply."""
        start = time.time()
        prompt = get_prompt("chat/regular", user_message=user_message, chat_history=chat_history)

        try:
            content = self.client.simple_chat(
                "You are a Spanish conversation partner.", prompt, **self._settings("chat")
            )
        except LLMError as e:
            logger.error("chat_failed", error=str(e), model=self.model.id)
            return TextResult(CHAT_ERROR, _elapsed_ms(start), error=str(e))

        return TextResult(content.strip(), _elapsed_ms(start))

    def chat_stream(self, user_message: str, chat_history: str = "") -> Iterator[str]:
        """Spanish conversational reply as server-sent event lines."""
        prompt = get_prompt("chat/regular", user_message=user_message, chat_history=chat_history)
        yield from self._stream_events(
            "You are a Spanish conversation partner.", prompt, "chat"
        )

    def side_chat(
        self, original_context: str, spanish_suggestion: str, student_message: str
    ) -> TextResult:
        """English explanation about a Spanish suggestion."""
        start = time.time()
        prompt = self._side_chat_prompt(original_context, spanish_suggestion, student_message)

        try:
            content = self.client.simple_chat(
                "You are a Spanish grammar expert.", prompt, **self._settings("side_chat")
            )
        except LLMError as e:
            logger.error("side_chat_failed", error=str(e), model=self.model.id)
            return TextResult(SIDE_CHAT_ERROR, _elapsed_ms(start), error=str(e))

        return TextResult(content.strip(), _elapsed_ms(start))

    def side_chat_stream(
        self, original_context: str, spanish_suggestion: str, student_message: str
    ) -> Iterator[str]:
        prompt = self._side_chat_prompt(original_context, spanish_suggestion, student_message)
        yield from self._stream_events(
            "You are a Spanish grammar expert.", prompt, "side_chat"
        )

    def _side_chat_prompt(
        self, original_context: str, spanish_suggestion: str, student_message: str
    ) -> str:
        return get_prompt(
            "chat/side_chat",
            original_context=original_context,
            spanish_suggestion=spanish_suggestion,
            student_message=student_message,
        )

    def _stream_events(self, system_prompt: str, prompt: str, task: str) -> Iterator[str]:
        """Stream a completion as chunk events, then one complete or error event."""
        buffer = ""
        in_think = False
        full_text = ""

        try:
            for chunk in self.client.simple_chat_stream(
                system_prompt, prompt, **self._settings(task)
            ):
                output, buffer, in_think = strip_think_streaming(chunk, buffer, in_think)
                if output:
                    full_text += output
                    yield sse_event("chunk", output)
        except LLMError as e:
            logger.error("stream_failed", error=str(e), task=task, model=self.model.id)
            yield sse_event("error", str(e))
            return

        if buffer and not in_think:
            full_text += buffer
            yield sse_event("chunk", buffer)

        yield sse_event("complete", full_text.strip())

    def translation(
        self, selected_text: str, context_message: str, chat_context: str = ""
    ) -> TextResult:
        """English translation of a selected span of a chat message."""
        start = time.time()
        prompt = get_prompt(
            "chat/translation",
            selected_text=selected_text,
            context_message=context_message,
            chat_context=chat_context,
        )

        try:
            content = self.client.simple_chat(
                "You are a Spanish translation assistant.", prompt, **self._settings("translation")
            )
        except LLMError as e:
            logger.error("translation_failed", error=str(e), model=self.model.id)
            return TextResult(TRANSLATION_ERROR, _elapsed_ms(start), error=str(e))

        return TextResult(content.strip(), _elapsed_ms(start))

    def conversation_starters(
        self,
        previous_assistant_questions: list[str] | None = None,
        previous_user_questions: list[str] | None = None,
    ) -> StartersResult:
        """Three tutor openers and three student questions.

        Falls back to a static list when either call fails or comes back empty.
        """
        start = time.time()
        settings = self._settings("conversation_starters")

        try:
            assistant_content = self.client.simple_chat(
                "You are a Spanish tutor.",
                get_prompt(
                    "chat/assistant_starters",
                    previous_questions="\n".join(previous_assistant_questions or []) or "(none)",
                ),
                **settings,
            )
            user_content = self.client.simple_chat(
                "You are a Spanish tutor.",
                get_prompt(
                    "chat/user_starters",
                    previous_questions="\n".join(previous_user_questions or []) or "(none)",
                ),
                **settings,
            )
            assistant_questions = parse_lines(assistant_content, limit=3)
            user_questions = parse_lines(user_content, limit=3)
            if not assistant_questions or not user_questions:
                raise LLMError("Empty conversation starters response")
        except LLMError as e:
            logger.warning("conversation_starters_fallback", error=str(e))
            return StartersResult(
                assistant_questions=list(FALLBACK_ASSISTANT_QUESTIONS),
                user_questions=list(FALLBACK_USER_QUESTIONS),
                processing_time_ms=_elapsed_ms(start),
                error=str(e),
            )

        return StartersResult(
            assistant_questions=assistant_questions,
            user_questions=user_questions,
            processing_time_ms=_elapsed_ms(start),
        )

    # =========================================================================
    # JOURNAL
    # =========================================================================

    def correct_text(self, text: str, context: str | None = None) -> str:
        """Corrected version of a Spanish text.

        Raises:
            LLMError: If the LLM call fails
        """
        prompt = get_prompt(
            "journal/correct", text=text, context=context or "Journal entry practice"
        )
        content = self.client.simple_chat(
            "You are a Spanish writing tutor.", prompt, **self._settings("correction")
        )
        return strip_think(content).strip().strip('"')

    def analyze_text(self, text: str, kind: str = "grammar") -> list[TextSuggestion]:
        """Span-level suggestions for a text.

        Args:
            text: Text to analyze
            kind: "grammar", "natural-phrases" or "english-words"

        Raises:
            ValueError: If kind is unknown
            LLMError: If the LLM call fails or returns unusable JSON
        """
        if kind not in ANALYSIS_PROMPTS:
            raise ValueError(f"Unknown analysis type: {kind}")

        data = self.client.simple_json(
            "You are a Spanish writing expert. Reply with JSON only.",
            get_prompt(ANALYSIS_PROMPTS[kind], text=text),
            **self._settings("analysis"),
        )

        items = data.get("suggestions", []) if isinstance(data, dict) else data
        suggestions = []
        for item in items or []:
            if not isinstance(item, dict):
                continue
            original = item.get("originalText") or item.get("original_text")
            suggested = item.get("suggestedText") or item.get("suggested_text")
            if not isinstance(original, str) or not original or not isinstance(suggested, str):
                continue

            start = item.get("startOffset", item.get("start_offset"))
            if not isinstance(start, int) or start < 0 or text[start : start + len(original)] != original:
                found = text.find(original)
                start = found if found >= 0 else 0

            suggestions.append(
                TextSuggestion(
                    original_text=original,
                    suggested_text=suggested,
                    explanation=str(item.get("explanation") or ""),
                    start_offset=start,
                    end_offset=start + len(original),
                    confidence=_confidence(item.get("confidence")),
                )
            )

        logger.debug("analysis_complete", kind=kind, suggestions=len(suggestions))
        return suggestions

    # =========================================================================
    # CONJUGATION
    # =========================================================================

    def drills_json(self, prompt: str) -> list[dict[str, Any]]:
        """Ask for a JSON array of drills.

        Raises:
            LLMError: If the call fails or the response holds no drill list
        """
        data = self.client.simple_json(
            "You create Spanish conjugation exercises. Reply with a JSON array only.",
            prompt,
            json_mode=False,
            **self._settings("drills"),
        )

        if isinstance(data, dict):
            data = data.get("drills", data.get("data"))
        if not isinstance(data, list):
            raise LLMError("Drill response is not a JSON array")

        return [d for d in data if isinstance(d, dict)]
