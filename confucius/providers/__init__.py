"""
Model providers for Confucius.

The orchestrator only depends on the LLMProvider protocol; the concrete
providers here are the default collaborators behind it.
"""

from .llm import (
    AnthropicProvider,
    BaseLLMProvider,
    ChatModel,
    LLMProvider,
    LLMResponse,
    OpenAIProvider,
    TokenUsage,
)

__all__ = [
    "AnthropicProvider",
    "BaseLLMProvider",
    "ChatModel",
    "LLMProvider",
    "LLMResponse",
    "OpenAIProvider",
    "TokenUsage",
]
