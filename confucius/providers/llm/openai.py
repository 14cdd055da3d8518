"""
Vendor SDK adapters for Confucius.

OpenAIProvider talks to Chat Completions (and any endpoint that speaks
the same wire format through ``base_url``). AnthropicProvider talks to
the Messages API. Both map the vendor response onto LLMResponse and let
vendor errors propagate after logging them.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from .base import BaseLLMProvider, LLMResponse, TokenUsage

if TYPE_CHECKING:
    from confucius.agent.memory import Message

logger = logging.getLogger(__name__)

_OPENAI_STOP_REASONS = {
    "stop": "end_turn",
    "length": "max_tokens",
    "tool_calls": "tool_use",
    "function_call": "tool_use",
}


class OpenAIProvider(BaseLLMProvider):
    """
    Chat Completions adapter.

    The session prompt goes first as a system message; compression
    summaries stay system messages in place.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "gpt-4o-mini",
        base_url: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.2,
    ):
        super().__init__(default_model=model)
        self._credentials = {"api_key": api_key, "base_url": base_url}
        self._max_tokens = max_tokens
        self._temperature = temperature
        self._client: Any = None

    @property
    def name(self) -> str:
        return "openai"

    def _ensure_client(self) -> Any:
        if self._client is None:
            try:
                from openai import AsyncOpenAI
            except ImportError as e:
                raise ImportError(
                    "The openai SDK is not installed; add it with: pip install openai"
                ) from e
            self._client = AsyncOpenAI(**self._credentials)
            logger.debug(f"[openai] Client ready for {self.default_model}")
        return self._client

    def _request(self, system_prompt: str, messages: list[Message]) -> dict[str, Any]:
        wire = [{"role": "system", "content": system_prompt}]
        wire.extend(self._convert_messages(system_prompt, messages))
        return {
            "model": self.default_model,
            "messages": wire,
            "max_tokens": self._max_tokens,
            "temperature": self._temperature,
        }

    @staticmethod
    def _to_response(raw: Any) -> LLMResponse:
        first = raw.choices[0]
        counts = raw.usage
        usage = (
            TokenUsage(counts.prompt_tokens, counts.completion_tokens, counts.total_tokens)
            if counts
            else TokenUsage()
        )
        return LLMResponse(
            content=first.message.content or "",
            usage=usage,
            stop_reason=_OPENAI_STOP_REASONS.get(first.finish_reason or "stop", "end_turn"),
            model=raw.model,
        )

    async def invoke(self, system_prompt: str, messages: list[Message]) -> LLMResponse:
        """Send the prompt plus working memory and map the first choice back."""
        client = self._ensure_client()
        try:
            raw = await client.chat.completions.create(**self._request(system_prompt, messages))
        except Exception as e:
            logger.error(f"[openai] Request to {self.default_model} failed: {e}", exc_info=True)
            raise
        return self._to_response(raw)


class AnthropicProvider(BaseLLMProvider):
    """
    Messages API adapter.

    The API takes one top-level system prompt, so other system messages
    (compression summaries) are sent as user turns.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "claude-3-5-sonnet-latest",
        max_tokens: int = 4096,
    ):
        super().__init__(default_model=model)
        self._api_key = api_key
        self._max_tokens = max_tokens
        self._client: Any = None

    @property
    def name(self) -> str:
        return "anthropic"

    def _ensure_client(self) -> Any:
        if self._client is None:
            try:
                from anthropic import AsyncAnthropic
            except ImportError as e:
                raise ImportError(
                    "The anthropic SDK is not installed; add it with: pip install anthropic"
                ) from e
            self._client = AsyncAnthropic(api_key=self._api_key)
            logger.debug(f"[anthropic] Client ready for {self.default_model}")
        return self._client

    @staticmethod
    def _to_response(raw: Any) -> LLMResponse:
        text = "".join(
            block.text for block in raw.content or [] if getattr(block, "type", "") == "text"
        )
        spent_in, spent_out = raw.usage.input_tokens, raw.usage.output_tokens
        return LLMResponse(
            content=text,
            usage=TokenUsage(spent_in, spent_out, spent_in + spent_out),
            stop_reason=raw.stop_reason or "end_turn",
            model=raw.model,
        )

    async def invoke(self, system_prompt: str, messages: list[Message]) -> LLMResponse:
        client = self._ensure_client()
        try:
            raw = await client.messages.create(
                model=self.default_model,
                max_tokens=self._max_tokens,
                system=system_prompt,
                messages=self._convert_messages(system_prompt, messages, system_role="user"),
            )
        except Exception as e:
            logger.error(f"[anthropic] Request to {self.default_model} failed: {e}", exc_info=True)
            raise
        return self._to_response(raw)
