"""
Compression Agent.

When working memory grows past the compression threshold, the
orchestrator hands the oldest runnable messages to this agent and
replaces them with a single summary message:

    [m1, m2, ..., m(n-k), r1, ..., rk]  ->  [summary, r1, ..., rk]

Session and entry scopes are never touched.

The summary comes from the model when one is configured. If no model is
configured or the call fails, a deterministic summary built from counts
is used instead: compression never raises.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from confucius.agent.memory import Message

if TYPE_CHECKING:
    from collections.abc import Sequence

    from confucius.providers.llm.base import ChatModel

logger = logging.getLogger(__name__)

SUMMARY_PREFIX = "[PREVIOUS CONTEXT SUMMARY]:"

# Fewer messages than this are not worth summarizing
MIN_MESSAGES_TO_COMPRESS = 3

DEFAULT_KEEP_RECENT = 4

_TRACE_CHAR_LIMIT = 500

COMPRESSION_SYSTEM_PROMPT = """You are the Architect, a context compression specialist.

Your task is to summarize technical execution traces concisely while preserving critical information.

PRESERVE:
- Key decisions made by the agent
- Tool invocation results (success/failure, important outputs)
- Current state of the task
- Any errors encountered and how they were handled
- What still needs to be done

DISCARD:
- Verbose logs and debug output
- Redundant information
- Intermediate reasoning that led nowhere

OUTPUT FORMAT:
Provide a structured summary in 3-5 bullet points. Be concise but complete."""


class CompressionAgent:
    """
    Summarizes the runnable scope to bound token growth.

    Example:
        agent = CompressionAgent(model=provider, keep_recent=4)
        compressed = await agent.compress(memory.runnable_messages)
        memory.compress_runnable(compressed)
    """

    def __init__(
        self,
        model: ChatModel | None = None,
        keep_recent: int = DEFAULT_KEEP_RECENT,
    ) -> None:
        if keep_recent < 0:
            raise ValueError("keep_recent must be >= 0")
        self._model = model
        self._keep_recent = keep_recent

    @property
    def keep_recent(self) -> int:
        return self._keep_recent

    def set_model(self, model: ChatModel | None) -> None:
        self._model = model

    async def summarize(self, messages: Sequence[Message]) -> str:
        """
        Summarize an execution trace.

        Never raises: falls back to a heuristic summary when the model
        is missing or fails.
        """
        logger.info(f"[compression] Summarizing {len(messages)} messages")

        if self._model is None:
            logger.warning("[compression] No model configured, using fallback summary")
            return self.fallback_summary(messages)

        user_message = (
            "Summarize this execution trace:\n\n"
            f"{self.format_trace(messages)}\n\n"
            "Provide a concise summary preserving key information."
        )

        try:
            summary = await self._model.chat(COMPRESSION_SYSTEM_PROMPT, user_message)
        except Exception as e:
            logger.error(f"[compression] Model summarization failed, using fallback: {e}")
            return self.fallback_summary(messages)

        if not summary or not summary.strip():
            logger.warning("[compression] Model returned an empty summary, using fallback")
            return self.fallback_summary(messages)

        logger.info(
            f"[compression] Summarized {len(messages)} messages into {len(summary)} chars"
        )
        return summary.strip()

    async def compress(
        self,
        messages: Sequence[Message],
        keep_recent: int | None = None,
    ) -> list[Message]:
        """
        Replace all but the most recent messages with one summary message.

        Returns the input unchanged when there is nothing meaningful to
        compress (at most 2 messages, or no more than keep_recent).

        Returns:
            [summary_message, *recent_tail]
        """
        keep = self._keep_recent if keep_recent is None else keep_recent
        if len(messages) < MIN_MESSAGES_TO_COMPRESS or len(messages) <= keep:
            logger.debug(f"[compression] Nothing to compress ({len(messages)} messages)")
            return list(messages)

        split = len(messages) - keep
        older, recent = messages[:split], messages[split:]

        summary = await self.summarize(older)
        summary_message = build_summary_message(summary)

        logger.info(
            f"[compression] Compressed {len(older)} messages, kept {len(recent)} recent"
        )
        return [summary_message, *recent]

    @staticmethod
    def format_trace(messages: Sequence[Message]) -> str:
        """Render messages as a numbered trace, truncating long content."""
        lines = []
        for i, message in enumerate(messages, start=1):
            tool = f" [{message.tool_name}]" if message.tool_name else ""
            content = message.content
            if len(content) > _TRACE_CHAR_LIMIT:
                content = content[:_TRACE_CHAR_LIMIT] + "...[truncated]"
            lines.append(f"[{i}] {message.role.upper()}{tool}: {content}")
        return "\n\n".join(lines)

    @staticmethod
    def fallback_summary(messages: Sequence[Message]) -> str:
        """Deterministic summary built from message counts."""
        user_count = sum(1 for m in messages if m.role == "user")
        assistant_count = sum(1 for m in messages if m.role == "assistant")
        tool_messages = [m for m in messages if m.role == "tool"]

        tools_used = list(dict.fromkeys(m.tool_name for m in tool_messages if m.tool_name))

        success_count = sum(
            1
            for m in tool_messages
            if "success" in m.content.lower() or "completed" in m.content.lower()
        )
        error_count = sum(
            1
            for m in tool_messages
            if "error" in m.content.lower() or "failed" in m.content.lower()
        )

        return "\n".join(
            [
                f"• Executed {len(messages)} steps in this trace",
                f"• Tools used: {', '.join(tools_used) or 'none'}",
                f"• {success_count} successful operations, {error_count} errors",
                f"• {user_count} user interactions, {assistant_count} agent responses",
                "• Note: This is an automated summary. Recent context preserved below.",
            ]
        )


def build_summary_message(summary: str) -> Message:
    """System message carrying a previous-context summary."""
    return Message(role="system", content=f"{SUMMARY_PREFIX}\n{summary}")
