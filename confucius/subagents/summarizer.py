"""
Session Summarizer.

Produces the end-of-run markdown digest from the full transcript and
the final state. The digest is persisted by SessionDigestStore and fed
to the LessonExtractor.

Failures never propagate: a missing or failing model yields a
deterministic digest built from the transcript.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .compression import CompressionAgent

if TYPE_CHECKING:
    from collections.abc import Sequence

    from confucius.agent.memory import Message
    from confucius.agent.state import OrchestratorState
    from confucius.providers.llm.base import ChatModel

logger = logging.getLogger(__name__)

SUMMARIZER_SYSTEM_PROMPT = """You are the Note-Taker. You write a short markdown digest of an agent session.

Use these sections:
## Goal
## Outcome
## Key Actions
## Errors
## Remaining Work

Be factual. Mention tool failures explicitly. Keep it under 300 words."""

_ERROR_MARKERS = ("error", "failed", "exception")


class SessionSummarizer:
    """
    Writes a markdown digest of a finished run.

    Example:
        summarizer = SessionSummarizer(model=provider)
        digest = await summarizer.summarize(memory.get_messages(), state)
    """

    def __init__(self, model: ChatModel | None = None) -> None:
        self._model = model

    def set_model(self, model: ChatModel | None) -> None:
        self._model = model

    async def summarize(self, transcript: Sequence[Message], state: OrchestratorState) -> str:
        """Produce a non-empty markdown digest. Never raises."""
        logger.info(f"[session_summarizer] Summarizing session {state.session_id}")

        if self._model is None:
            logger.warning("[session_summarizer] No model configured, using fallback digest")
            return self.fallback_digest(transcript, state)

        user_message = (
            f"{self._outcome_block(state)}\n\n"
            f"Transcript:\n\n{CompressionAgent.format_trace(transcript)}\n\n"
            "Write the session digest."
        )

        try:
            digest = await self._model.chat(SUMMARIZER_SYSTEM_PROMPT, user_message)
        except Exception as e:
            logger.error(f"[session_summarizer] Summarization failed, using fallback: {e}")
            return self.fallback_digest(transcript, state)

        if not digest or not digest.strip():
            logger.warning("[session_summarizer] Empty digest from model, using fallback")
            return self.fallback_digest(transcript, state)

        return digest.strip()

    @staticmethod
    def _outcome_block(state: OrchestratorState) -> str:
        reason = state.termination_reason.value if state.termination_reason else "unknown"
        success = "Success" if state.success else "Failure"
        output = state.result.output if state.result else ""
        return (
            f"Outcome: {success}\n"
            f"Termination: {reason}\n"
            f"Iterations: {state.iteration}\n"
            f"Final output: {output[:500]}"
        )

    @staticmethod
    def fallback_digest(transcript: Sequence[Message], state: OrchestratorState) -> str:
        """Deterministic markdown digest built from the transcript."""
        task = next((m.content for m in transcript if m.role == "user"), "")
        tool_messages = [m for m in transcript if m.role == "tool"]
        tools_used = list(dict.fromkeys(m.tool_name for m in tool_messages if m.tool_name))
        errors = [
            m
            for m in tool_messages
            if any(marker in m.content.lower() for marker in _ERROR_MARKERS)
        ]

        lines = [
            "# Session Summary",
            "",
            f"- Session: {state.session_id}",
            f"- Outcome: {'Success' if state.success else 'Failure'}",
            f"- Termination: {state.termination_reason.value if state.termination_reason else 'unknown'}",
            f"- Iterations: {state.iteration}",
            f"- Messages: {len(transcript)}",
            f"- Tools used: {', '.join(tools_used) or 'none'}",
            "",
            "## Goal",
            task[:500] or "(no task recorded)",
        ]
        # Only emitted when something failed; lesson fallbacks key on the word
        if errors:
            lines += ["", "## Errors"]
            for message in errors[:5]:
                lines.append(f"- [{message.tool_name or 'tool'}] {message.content[:200]}")

        final_output = state.result.output if state.result else ""
        lines += ["", "## Final Output", final_output[:1000] or "(none)"]
        return "\n".join(lines)
