"""
LLM Providers for Confucius.

- OpenAIProvider: GPT models and OpenAI-compatible endpoints
- AnthropicProvider: Claude models
"""

from .base import BaseLLMProvider, ChatModel, LLMProvider, LLMResponse, StopReason, TokenUsage
from .openai import AnthropicProvider, OpenAIProvider

__all__ = [
    # Protocol and base
    "BaseLLMProvider",
    "ChatModel",
    "LLMProvider",
    "LLMResponse",
    "StopReason",
    "TokenUsage",
    # Implementations
    "AnthropicProvider",
    "OpenAIProvider",
]
