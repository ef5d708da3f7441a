"""Tests for LLMClient with a mocked OpenAI SDK."""

from unittest.mock import MagicMock

import httpx
import openai
import pytest

from escribiendo.config.models import get_model
from escribiendo.llm.client import (
    LLMClient,
    LLMConfig,
    LLMConnectionError,
    LLMError,
    LLMResponseError,
    Message,
    extract_json,
)

REQUEST = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")


def _completion(content, model="gpt-4o"):
    response = MagicMock()
    response.choices = [MagicMock()]
    response.choices[0].message.content = content
    response.model = model
    response.usage.prompt_tokens = 10
    response.usage.completion_tokens = 5
    response.usage.total_tokens = 15
    return response


def _chunk(content):
    chunk = MagicMock()
    chunk.choices = [MagicMock()]
    chunk.choices[0].delta.content = content
    return chunk


@pytest.fixture
def llm():
    """Client whose SDK calls are mocked."""
    client = LLMClient(LLMConfig(provider="openai", supports_json_object=True))
    client._client = MagicMock()
    return client


class TestLLMConfig:
    """Tests for LLMConfig.from_model."""

    def test_from_model_uses_provider_config(self, workspace, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "key-123")
        config = LLMConfig.from_model(get_model("claude-3.5-sonnet"))
        assert config.provider == "anthropic"
        assert config.model == "claude-3-5-sonnet-20241022"
        assert config.base_url == "https://api.anthropic.com/v1"
        assert config.api_key == "key-123"
        assert config.supports_json_object is False


class TestChat:
    """Tests for chat and simple_chat."""

    def test_returns_content_without_think(self, llm):
        llm._client.chat.completions.create.return_value = _completion(
            "<think>plan</think>¡Hola!"
        )
        response = llm.chat([Message(role="user", content="hola")])
        assert response.content == "¡Hola!"
        assert response.total_tokens == 15
        assert response.provider == "openai"

    def test_passes_overrides(self, llm):
        llm._client.chat.completions.create.return_value = _completion("ok")
        llm.simple_chat("sys", "user", temperature=0.1, max_tokens=50)

        kwargs = llm._client.chat.completions.create.call_args.kwargs
        assert kwargs["temperature"] == 0.1
        assert kwargs["max_tokens"] == 50
        assert kwargs["messages"][0] == {"role": "system", "content": "sys"}

    def test_json_mode_sets_response_format(self, llm):
        llm._client.chat.completions.create.return_value = _completion("{}")
        llm.chat([Message(role="user", content="x")], json_mode=True)
        kwargs = llm._client.chat.completions.create.call_args.kwargs
        assert kwargs["response_format"] == {"type": "json_object"}

    def test_connection_error(self, llm):
        llm._client.chat.completions.create.side_effect = openai.APIConnectionError(request=REQUEST)
        with pytest.raises(LLMConnectionError):
            llm.simple_chat("sys", "hola")

    def test_timeout_is_connection_error(self, llm):
        llm._client.chat.completions.create.side_effect = openai.APITimeoutError(request=REQUEST)
        with pytest.raises(LLMConnectionError):
            llm.simple_chat("sys", "hola")

    def test_generic_error(self, llm):
        llm._client.chat.completions.create.side_effect = Exception("rate limited")
        with pytest.raises(LLMError, match="rate limited"):
            llm.simple_chat("sys", "hola")

    def test_empty_choices(self, llm):
        response = _completion("x")
        response.choices = []
        llm._client.chat.completions.create.return_value = response
        with pytest.raises(LLMResponseError):
            llm.simple_chat("sys", "hola")


class TestChatStream:
    """Tests for streaming."""

    def test_yields_chunks(self, llm):
        llm._client.chat.completions.create.return_value = iter(
            [_chunk("Ho"), _chunk(None), _chunk("la")]
        )
        assert list(llm.simple_chat_stream("sys", "hola")) == ["Ho", "la"]

    def test_falls_back_to_non_streaming(self, llm):
        """If the stream cannot be opened, one regular request is made."""
        llm._client.chat.completions.create.side_effect = [
            Exception("stream unsupported"),
            _completion("Hola entero"),
        ]
        assert list(llm.simple_chat_stream("sys", "hola")) == ["Hola entero"]

    def test_interrupted_stream(self, llm):
        def broken():
            yield _chunk("Ho")
            raise RuntimeError("socket closed")

        llm._client.chat.completions.create.return_value = broken()
        stream = llm.simple_chat_stream("sys", "hola")
        assert next(stream) == "Ho"
        with pytest.raises(LLMError, match="Stream interrupted"):
            next(stream)


class TestChatJson:
    """Tests for JSON parsing and repair."""

    def test_parses_fenced_array(self, llm):
        llm._client.chat.completions.create.return_value = _completion(
            'Aquí tienes:\n```json\n[{"a": 1}]\n```'
        )
        assert llm.simple_json("sys", "x") == [{"a": 1}]

    def test_extracts_embedded_object(self, llm):
        llm._client.chat.completions.create.return_value = _completion(
            'Result: {"suggestions": []} done'
        )
        assert llm.simple_json("sys", "x") == {"suggestions": []}

    def test_array_before_object(self, llm):
        """The outermost structure that starts first wins."""
        llm._client.chat.completions.create.return_value = _completion(
            'x [{"ruleId": "a"}, {"ruleId": "b"}] y'
        )
        assert llm.simple_json("sys", "x", json_mode=False) == [
            {"ruleId": "a"},
            {"ruleId": "b"},
        ]

    def test_repair_retry(self, llm):
        llm._client.chat.completions.create.side_effect = [
            _completion("not json at all"),
            _completion('{"fixed": true}'),
        ]
        assert llm.simple_json("sys", "x") == {"fixed": True}
        assert llm._client.chat.completions.create.call_count == 2

    def test_gives_up_after_retry(self, llm):
        llm._client.chat.completions.create.return_value = _completion("nope")
        with pytest.raises(LLMResponseError):
            llm.simple_json("sys", "x")


class TestIsAvailable:
    def test_available(self, llm):
        assert llm.is_available() is True

    def test_unavailable(self, llm):
        llm._client.models.list.side_effect = Exception("down")
        assert llm.is_available() is False


class TestExtractJson:
    """Tests for extract_json on raw model output."""

    def test_plain_object(self):
        assert extract_json('{"a": 1}') == {"a": 1}

    def test_thinking_removed(self):
        assert extract_json('<think>{"draft": 1}</think>[1, 2]') == [1, 2]

    def test_scalar_is_not_json_payload(self):
        assert extract_json('"just a string"') is None

    def test_nothing_parses(self):
        assert extract_json("no braces here") is None
