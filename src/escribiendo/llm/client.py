"""OpenAI-compatible chat completion client.

One client talks to one model of one provider. OpenAI is called
directly; Anthropic through its OpenAI-compatible endpoint; LM Studio
through its local server. Thinking blocks emitted by reasoning models
are removed from every response.
"""

from __future__ import annotations

import json
import re
import time
from dataclasses import dataclass, field
from typing import Any, Iterator, Literal

import openai
import structlog

from escribiendo.config.app_config import get_provider_config
from escribiendo.config.models import ModelConfig
from escribiendo.utils.text_utils import strip_think

logger = structlog.get_logger(__name__)

Role = Literal["system", "user", "assistant"]

# Used when a provider is missing from the app config
PROVIDER_DEFAULTS: dict[str, dict[str, Any]] = {
    "openai": {"base_url": "https://api.openai.com/v1", "supports_json_object": True},
    "anthropic": {"base_url": "https://api.anthropic.com/v1", "supports_json_object": False},
    "lmstudio": {"base_url": "http://localhost:1234/v1", "supports_json_object": False},
}

JSON_REPAIR_PROMPT = """Your previous reply was not valid JSON:
<<<
{invalid_output}
>>>

Send the same content again as valid JSON only. No markdown, no comments."""

_FENCED_BLOCK = re.compile(r"```(?:json)?\s*([\s\S]*?)```")


@dataclass
class LLMConfig:
    """Connection and sampling settings for one model."""

    provider: str = "openai"
    base_url: str = PROVIDER_DEFAULTS["openai"]["base_url"]
    model: str = "gpt-4o"
    temperature: float = 0.7
    max_tokens: int = 1000
    timeout: int = 120
    api_key: str | None = None
    supports_json_object: bool | None = None

    @classmethod
    def from_model(cls, model: ModelConfig, timeout: int = 120) -> LLMConfig:
        """Resolve endpoint and credentials for a registered model.

        Settings from the app config win; PROVIDER_DEFAULTS covers
        providers the config does not mention.
        """
        fallback = PROVIDER_DEFAULTS.get(model.provider, {})
        provider = get_provider_config(model.provider)

        return cls(
            provider=model.provider,
            base_url=(provider.base_url if provider else None) or fallback.get("base_url", ""),
            model=model.model,
            timeout=timeout,
            api_key=provider.get_api_key() if provider else None,
            supports_json_object=(
                provider.supports_json_object if provider else fallback.get("supports_json_object")
            ),
        )


@dataclass
class Message:
    role: Role
    content: str

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass
class LLMResponse:
    """A completed, think-stripped reply."""

    content: str
    model: str
    provider: str
    usage: dict[str, int] = field(default_factory=dict)
    latency_ms: int = 0

    @property
    def total_tokens(self) -> int:
        return self.usage.get("total_tokens", 0)


class LLMError(Exception):
    """Base error for failed completions."""

    pass


class LLMConnectionError(LLMError):
    """The provider could not be reached or timed out."""

    pass


class LLMResponseError(LLMError):
    """The provider answered with something unusable."""

    pass


def _single_turn(system_prompt: str, user_message: str) -> list[Message]:
    return [
        Message(role="system", content=system_prompt),
        Message(role="user", content=user_message),
    ]


def extract_json(text: str) -> dict[str, Any] | list[Any] | None:
    """Find a JSON value in model output.

    Tried in order: the whole text, the first fenced code block, then the
    outermost ``[...]`` or ``{...}`` span, whichever starts first.

    Returns:
        Parsed object or array, or None when nothing parses
    """
    text = strip_think(text)
    candidates = [text]

    fenced = _FENCED_BLOCK.search(text)
    if fenced:
        candidates.append(fenced.group(1).strip())

    spans = []
    for opener, closer in (("[", "]"), ("{", "}")):
        start, end = text.find(opener), text.rfind(closer)
        if 0 <= start < end:
            spans.append((start, text[start : end + 1]))
    candidates.extend(span for _, span in sorted(spans))

    for candidate in candidates:
        try:
            value = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(value, (dict, list)):
            return value
    return None


class LLMClient:
    """Chat completions for one configured model."""

    def __init__(self, config: LLMConfig | None = None):
        self.config = config or LLMConfig()
        self._client = openai.OpenAI(
            base_url=self.config.base_url,
            # Local servers accept any key
            api_key=self.config.api_key or "not-needed",
            timeout=self.config.timeout,
        )
        logger.info(
            "llm_client_initialized",
            provider=self.config.provider,
            model=self.config.model,
            base_url=self.config.base_url,
        )

    @classmethod
    def for_model(cls, model: ModelConfig) -> LLMClient:
        return cls(LLMConfig.from_model(model))

    @property
    def supports_json_object(self) -> bool:
        if self.config.supports_json_object is not None:
            return self.config.supports_json_object
        return bool(PROVIDER_DEFAULTS.get(self.config.provider, {}).get("supports_json_object"))

    def _request(
        self,
        messages: list[Message],
        temperature: float | None,
        max_tokens: int | None,
        **extra: Any,
    ) -> dict[str, Any]:
        return {
            "model": self.config.model,
            "messages": [m.to_dict() for m in messages],
            "temperature": self.config.temperature if temperature is None else temperature,
            "max_tokens": self.config.max_tokens if max_tokens is None else max_tokens,
            **extra,
        }

    def _wrap_error(self, error: Exception) -> LLMError:
        if isinstance(error, (openai.APIConnectionError, openai.APITimeoutError)):
            return LLMConnectionError(
                f"Could not reach {self.config.provider} at {self.config.base_url}: {error}"
            )
        return LLMError(f"LLM call failed: {error}")

    def chat(
        self,
        messages: list[Message],
        temperature: float | None = None,
        max_tokens: int | None = None,
        json_mode: bool = False,
    ) -> LLMResponse:
        """Run one completion.

        Args:
            messages: Conversation so far
            temperature: Sampling temperature (config default when None)
            max_tokens: Completion limit (config default when None)
            json_mode: Ask for a JSON object where the provider supports it

        Raises:
            LLMConnectionError: Provider unreachable or timed out
            LLMResponseError: Reply without choices
            LLMError: Any other API failure
        """
        request = self._request(messages, temperature, max_tokens)
        if json_mode and self.supports_json_object:
            request["response_format"] = {"type": "json_object"}

        started = time.time()
        try:
            completion = self._client.chat.completions.create(**request)
        except Exception as e:
            raise self._wrap_error(e) from e
        latency_ms = int((time.time() - started) * 1000)

        if not completion.choices:
            raise LLMResponseError(f"{self.config.provider} returned no choices")

        usage: dict[str, int] = {}
        if completion.usage:
            usage = {
                "prompt_tokens": completion.usage.prompt_tokens,
                "completion_tokens": completion.usage.completion_tokens,
                "total_tokens": completion.usage.total_tokens,
            }

        logger.debug(
            "llm_completion",
            provider=self.config.provider,
            model=completion.model,
            tokens=usage.get("total_tokens", 0),
            latency_ms=latency_ms,
        )

        return LLMResponse(
            content=strip_think(completion.choices[0].message.content or ""),
            model=completion.model,
            provider=self.config.provider,
            usage=usage,
            latency_ms=latency_ms,
        )

    def chat_stream(
        self,
        messages: list[Message],
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> Iterator[str]:
        """Yield raw content deltas as they arrive.

        Think tags are not stripped here; callers filter them across chunk
        boundaries. A stream that cannot be opened degrades to one
        non-streaming completion yielded as a single chunk.

        Raises:
            LLMError: If the stream breaks or the fallback request fails
        """
        request = self._request(messages, temperature, max_tokens, stream=True)

        try:
            stream = self._client.chat.completions.create(**request)
        except Exception as e:
            logger.warning("stream_open_failed_fallback", provider=self.config.provider, error=str(e))
            yield self.chat(messages, temperature, max_tokens).content
            return

        try:
            for chunk in stream:
                delta = chunk.choices[0].delta.content if chunk.choices else None
                if delta:
                    yield delta
        except Exception as e:
            logger.error("stream_interrupted", provider=self.config.provider, error=str(e))
            raise LLMError(f"Stream interrupted: {e}") from e

    def chat_json(
        self,
        messages: list[Message],
        temperature: float | None = None,
        max_tokens: int | None = None,
        max_retries: int = 1,
        json_mode: bool = True,
    ) -> dict[str, Any] | list[Any]:
        """Run a completion whose reply must be a JSON object or array.

        Unparseable replies are sent back with a repair request up to
        ``max_retries`` times.

        Raises:
            LLMResponseError: If no attempt produced valid JSON
        """
        conversation = list(messages)
        reply = ""

        for attempt in range(max_retries + 1):
            reply = self.chat(conversation, temperature, max_tokens, json_mode=json_mode).content
            parsed = extract_json(reply)
            if parsed is not None:
                if attempt:
                    logger.info("json_recovered_after_repair", attempts=attempt + 1)
                return parsed

            logger.warning(
                "json_parse_failed",
                attempt=attempt + 1,
                provider=self.config.provider,
                content=reply[:100],
            )
            conversation = conversation + [
                Message(role="assistant", content=reply),
                Message(role="user", content=JSON_REPAIR_PROMPT.format(invalid_output=reply[:1000])),
            ]

        raise LLMResponseError(f"Could not obtain valid JSON: {reply[:200]}")

    def simple_chat(
        self,
        system_prompt: str,
        user_message: str,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> str:
        """Reply text for a system prompt plus one user message."""
        return self.chat(_single_turn(system_prompt, user_message), temperature, max_tokens).content

    def simple_chat_stream(
        self,
        system_prompt: str,
        user_message: str,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> Iterator[str]:
        yield from self.chat_stream(
            _single_turn(system_prompt, user_message), temperature, max_tokens
        )

    def simple_json(
        self,
        system_prompt: str,
        user_message: str,
        temperature: float | None = None,
        max_tokens: int | None = None,
        json_mode: bool = True,
    ) -> dict[str, Any] | list[Any]:
        return self.chat_json(
            _single_turn(system_prompt, user_message),
            temperature=temperature,
            max_tokens=max_tokens,
            json_mode=json_mode,
        )

    def is_available(self) -> bool:
        """True when the provider answers a model listing."""
        try:
            self._client.models.list()
        except Exception as e:
            logger.debug("llm_unavailable", provider=self.config.provider, error=str(e))
            return False
        return True
