"""Tests for LanguageService with a mocked LLM client."""

import json

import pytest

from escribiendo.config.models import UnknownModelError
from escribiendo.llm.client import LLMError
from escribiendo.llm.service import (
    CHAT_ERROR,
    FALLBACK_ASSISTANT_QUESTIONS,
    FALLBACK_USER_QUESTIONS,
    SUGGESTION_ERROR,
    TRANSLATION_ERROR,
    LanguageService,
    build_chat_context,
    sse_event,
)


@pytest.fixture
def service(workspace, mock_llm):
    return LanguageService("gpt-4o-mini", client=mock_llm)


def _events(lines):
    return [json.loads(line[len("data: "):]) for line in lines]


class TestConstruction:
    def test_unknown_model(self, workspace, mock_llm):
        with pytest.raises(UnknownModelError):
            LanguageService("gpt-9", client=mock_llm)

    def test_default_model(self, workspace, mock_llm):
        assert LanguageService(client=mock_llm).model.id == "gpt-4o"


class TestBuildChatContext:
    """Tests for build_chat_context."""

    def test_last_three_messages(self):
        messages = [
            {"type": "user", "content": "uno"},
            {"type": "assistant", "content": "dos"},
            {"type": "user", "content": "tres"},
            {"type": "assistant", "content": "cuatro"},
        ]
        assert build_chat_context(messages) == "assistant: dos\nuser: tres\nassistant: cuatro"

    def test_suggestions_dropped_after_window(self):
        """The window is applied before filtering out suggestions."""
        messages = [
            {"type": "user", "content": "hola"},
            {"type": "suggestion", "content": "Hola"},
            {"type": "assistant", "content": "¿Qué tal?"},
        ]
        assert build_chat_context(messages) == "user: hola\nassistant: ¿Qué tal?"

    def test_empty(self):
        assert build_chat_context([]) == ""


class TestSseEvent:
    def test_format(self):
        line = sse_event("chunk", "¡Hola!")
        assert line == 'data: {"type": "chunk", "content": "¡Hola!"}\n\n'


class TestSuggestion:
    """Tests for suggestion."""

    def test_cleans_output(self, service, mock_llm):
        mock_llm.simple_chat.return_value = '"me gusta esta música"'
        result = service.suggestion("me gusta this music", "user: hola")

        assert result.text == "me gusta esta música"
        assert result.error is None
        prompt = mock_llm.simple_chat.call_args.args[1]
        assert "me gusta this music" in prompt
        assert "user: hola" in prompt

    def test_uses_task_settings(self, service, mock_llm):
        mock_llm.simple_chat.return_value = "x"
        service.suggestion("hola")
        kwargs = mock_llm.simple_chat.call_args.kwargs
        assert kwargs["max_tokens"] == 200
        assert kwargs["temperature"] == 0.3

    def test_fallback_on_error(self, service, mock_llm):
        mock_llm.simple_chat.side_effect = LLMError("down")
        result = service.suggestion("hola")
        assert result.text == SUGGESTION_ERROR
        assert result.error == "down"


class TestChat:
    def test_reply(self, service, mock_llm):
        mock_llm.simple_chat.return_value = "  ¡Muy bien!  "
        assert service.chat("Estoy bien").text == "¡Muy bien!"

    def test_fallback_on_error(self, service, mock_llm):
        mock_llm.simple_chat.side_effect = LLMError("down")
        result = service.chat("hola")
        assert result.text == CHAT_ERROR
        assert result.error == "down"


class TestStreaming:
    """Tests for SSE streaming."""

    def test_chunks_then_complete(self, service, mock_llm):
        mock_llm.simple_chat_stream.return_value = iter(["<think>x</think>Ho", "la", " amigo"])
        events = _events(list(service.chat_stream("hola")))

        assert [e["type"] for e in events] == ["chunk", "chunk", "chunk", "complete"]
        assert "".join(e["content"] for e in events[:-1]) == "Hola amigo"
        assert events[-1]["content"] == "Hola amigo"

    def test_error_event(self, service, mock_llm):
        def broken():
            yield "Ho"
            raise LLMError("Stream interrupted: boom")

        mock_llm.simple_chat_stream.return_value = broken()
        events = _events(list(service.side_chat_stream("ctx", "Hola", "why?")))

        assert events[0] == {"type": "chunk", "content": "Ho"}
        assert events[-1]["type"] == "error"
        assert "boom" in events[-1]["content"]


class TestTranslation:
    def test_translation(self, service, mock_llm):
        mock_llm.simple_chat.return_value = "the beach"
        result = service.translation("la playa", "Vamos a la playa")
        assert result.text == "the beach"

    def test_error(self, service, mock_llm):
        mock_llm.simple_chat.side_effect = LLMError("down")
        assert service.translation("la playa", "x").text == TRANSLATION_ERROR


class TestConversationStarters:
    """Tests for conversation_starters."""

    def test_parses_three_each(self, service, mock_llm):
        mock_llm.simple_chat.side_effect = [
            "1. ¿Qué hiciste ayer?\n2. ¿Tienes mascotas?\n3. ¿Te gusta cocinar?\n4. Extra",
            "- ¿Cómo se dice 'cool'?\n- ¿Qué es la siesta?\n- ¿Dónde vives?",
        ]
        result = service.conversation_starters(["¿Cómo estás?"], [])

        assert result.assistant_questions == [
            "¿Qué hiciste ayer?",
            "¿Tienes mascotas?",
            "¿Te gusta cocinar?",
        ]
        assert len(result.user_questions) == 3
        assert result.error is None
        first_prompt = mock_llm.simple_chat.call_args_list[0].args[1]
        assert "¿Cómo estás?" in first_prompt

    def test_fallback_on_error(self, service, mock_llm):
        mock_llm.simple_chat.side_effect = LLMError("down")
        result = service.conversation_starters()
        assert result.assistant_questions == FALLBACK_ASSISTANT_QUESTIONS
        assert result.user_questions == FALLBACK_USER_QUESTIONS
        assert result.error == "down"

    def test_fallback_on_empty(self, service, mock_llm):
        mock_llm.simple_chat.return_value = "   "
        result = service.conversation_starters()
        assert result.assistant_questions == FALLBACK_ASSISTANT_QUESTIONS


class TestJournal:
    """Tests for correct_text and analyze_text."""

    def test_correct_text(self, service, mock_llm):
        mock_llm.simple_chat.return_value = '"Yo fui al mercado."'
        assert service.correct_text("Yo va al mercado.") == "Yo fui al mercado."

    def test_correct_text_raises(self, service, mock_llm):
        mock_llm.simple_chat.side_effect = LLMError("down")
        with pytest.raises(LLMError):
            service.correct_text("hola")

    def test_analyze_fixes_offsets(self, service, mock_llm):
        """Offsets that do not match the text are recomputed."""
        text = "Ayer yo va al parque."
        mock_llm.simple_json.return_value = {
            "suggestions": [
                {
                    "originalText": "yo va",
                    "suggestedText": "yo fui",
                    "explanation": "Preterite of ir",
                    "startOffset": 0,
                    "confidence": 0.9,
                },
                {"originalText": "", "suggestedText": "x"},
            ]
        }
        suggestions = service.analyze_text(text, "grammar")

        assert len(suggestions) == 1
        s = suggestions[0]
        assert (s.start_offset, s.end_offset) == (5, 10)
        assert text[s.start_offset : s.end_offset] == "yo va"
        assert s.suggested_text == "yo fui"

    def test_analyze_accepts_bare_list(self, service, mock_llm):
        mock_llm.simple_json.return_value = [
            {"originalText": "email", "suggestedText": "correo", "startOffset": 4}
        ]
        suggestions = service.analyze_text("Un email", "english-words")
        assert suggestions[0].start_offset == 3
        assert suggestions[0].confidence == 0.5

    def test_analyze_tolerates_bad_fields(self, service, mock_llm):
        """Unparseable confidence falls back to 0.5; negative offsets are recomputed."""
        text = "Ayer yo va al parque."
        mock_llm.simple_json.return_value = {
            "suggestions": [
                {"originalText": "yo va", "suggestedText": "yo fui", "startOffset": -3, "confidence": "high"},
                {"originalText": "parque", "suggestedText": "parque", "confidence": None, "explanation": None},
                {"originalText": "Ayer", "suggestedText": "Ayer", "confidence": 7},
            ]
        }
        suggestions = service.analyze_text(text, "grammar")

        assert [s.confidence for s in suggestions] == [0.5, 0.5, 1.0]
        assert suggestions[0].start_offset == 5
        assert suggestions[1].explanation == ""

    def test_analyze_unknown_kind(self, service):
        with pytest.raises(ValueError):
            service.analyze_text("hola", "poetry")


class TestDrillsJson:
    def test_unwraps_object(self, service, mock_llm):
        mock_llm.simple_json.return_value = {"drills": [{"sentence": "a"}, "junk"]}
        assert service.drills_json("prompt") == [{"sentence": "a"}]

    def test_rejects_non_list(self, service, mock_llm):
        mock_llm.simple_json.return_value = {"foo": 1}
        with pytest.raises(LLMError):
            service.drills_json("prompt")
