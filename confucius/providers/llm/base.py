"""
LLM Provider Protocol for Confucius.

Defines the model invocation contract the orchestrator consumes:

    invoke(system_prompt, messages) -> LLMResponse

and the narrower single-turn ``chat`` contract sub-agents use. Retries,
backoff and timeouts are the provider's concern, not the orchestrator's.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Literal, Protocol, runtime_checkable

if TYPE_CHECKING:
    from confucius.agent.memory import Message


StopReason = Literal["end_turn", "max_tokens", "tool_use", "stop_sequence"]


@dataclass(frozen=True)
class TokenUsage:
    """Token usage reported by the provider for one call."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    def __add__(self, other: TokenUsage) -> TokenUsage:
        return TokenUsage(
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            completion_tokens=self.completion_tokens + other.completion_tokens,
            total_tokens=self.total_tokens + other.total_tokens,
        )


@dataclass
class LLMResponse:
    """
    Response from a model invocation.

    Attributes:
        content: The generated text
        usage: Token usage statistics
        stop_reason: Why generation stopped
        model: Model used for generation
    """

    content: str
    usage: TokenUsage = field(default_factory=TokenUsage)
    stop_reason: StopReason = "end_turn"
    model: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "content": self.content,
            "usage": {
                "prompt_tokens": self.usage.prompt_tokens,
                "completion_tokens": self.usage.completion_tokens,
                "total_tokens": self.usage.total_tokens,
            },
            "stop_reason": self.stop_reason,
            "model": self.model,
        }


@runtime_checkable
class LLMProvider(Protocol):
    """
    Protocol for the orchestrator's model.

    Implementations receive the full system prompt and the working
    memory messages (session ++ entry ++ runnable).
    """

    async def invoke(self, system_prompt: str, messages: list[Message]) -> LLMResponse:
        ...


@runtime_checkable
class ChatModel(Protocol):
    """
    Protocol for single-turn sub-agent calls.

    Used by the compression agent, session summarizer and lesson extractor.
    """

    async def chat(self, system_prompt: str, user_message: str) -> str:
        ...


class BaseLLMProvider(ABC):
    """
    Base class for provider implementations.

    Subclasses implement invoke(); chat() is derived from it.
    """

    def __init__(self, default_model: str = ""):
        self.default_model = default_model

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name."""
        pass

    @abstractmethod
    async def invoke(self, system_prompt: str, messages: list[Message]) -> LLMResponse:
        pass

    async def chat(self, system_prompt: str, user_message: str) -> str:
        """Single-turn convenience call built on invoke()."""
        from confucius.agent.memory import Message

        response = await self.invoke(system_prompt, [Message(role="user", content=user_message)])
        return response.content

    @staticmethod
    def _convert_messages(
        system_prompt: str,
        messages: list[Message],
        *,
        system_role: str = "system",
    ) -> list[dict[str, str]]:
        """
        Convert working memory messages to chat API format.

        The session prompt is already sent as the system prompt, so a system
        message repeating it is skipped. Tool results are sent as user turns
        since the tag protocol does not use native tool calling.
        """
        converted = []
        for message in messages:
            if message.role == "system" and message.content == system_prompt:
                continue
            if message.role == "tool":
                role = "user"
            elif message.role == "system":
                role = system_role
            else:
                role = message.role
            converted.append({"role": role, "content": message.content})
        return converted

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name='{self.name}', model='{self.default_model}')"
