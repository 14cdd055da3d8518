"""
Lesson Extractor.

Reviews a session digest and derives ONE actionable rule for future runs.
The rule is appended to the KnowledgeStore and injected into the next
run's system prompt.

Returns "" when there is nothing to learn from; callers treat that as
"no lesson", not as an error.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from confucius.providers.llm.base import ChatModel

logger = logging.getLogger(__name__)

LESSON_SYSTEM_PROMPT = """You are the Meta-Agent. Your role is to analyze session summaries and extract lessons that will improve future agent performance.

Review the session summary provided. Identify ONE actionable rule or best practice that would:
- Prevent errors encountered in this session
- Improve efficiency or reliability
- Help the agent handle similar tasks better

Output ONLY the rule itself. Do not include any explanation, preamble, or formatting.
The rule should be:
- Specific and actionable
- Written as an instruction (e.g., "Always verify file existence before reading")
- Concise (one or two sentences max)"""

_QUOTES = "\"'`“”‘’"
_LIST_MARKER = re.compile(r"^(?:[-*•]\s*|\d+[.)]\s*)")

# Fallback decision table: (required keywords, rule), first match wins.
# Every keyword in a row must appear in the lower-cased digest.
FALLBACK_RULES: tuple[tuple[tuple[str, ...], str], ...] = (
    (
        ("error", "file"),
        "Always verify file operations completed successfully before proceeding.",
    ),
    (
        ("error", "command"),
        "Check command exit codes and handle shell compatibility issues across platforms.",
    ),
    (
        ("error", "bash"),
        "Check command exit codes and handle shell compatibility issues across platforms.",
    ),
    (
        ("error",),
        "Implement error handling and recovery strategies for failed operations.",
    ),
    (
        ("success",),
        "Verify task completion with explicit confirmation before finishing.",
    ),
)

DEFAULT_RULE = "Break complex tasks into smaller, verifiable steps."

# The restated task says nothing about how the run went
_GOAL_SECTION = re.compile(r"^## Goal\n.*?(?=^## |\Z)", re.MULTILINE | re.DOTALL)


def clean_lesson(text: str) -> str:
    """Strip whitespace, surrounding quotes and a leading list marker."""
    lesson = text.strip()
    lesson = _LIST_MARKER.sub("", lesson, count=1).strip()
    if len(lesson) >= 2 and lesson[0] in _QUOTES and lesson[-1] in _QUOTES:
        lesson = lesson[1:-1].strip()
    else:
        lesson = lesson.strip(_QUOTES).strip()
    return lesson


class LessonExtractor:
    """
    Extracts one rule from a session digest.

    Example:
        extractor = LessonExtractor(model=provider)
        rule = await extractor.extract_lesson(digest)
        if rule:
            await knowledge.add_rule(rule)
    """

    def __init__(self, model: ChatModel | None = None) -> None:
        self._model = model

    def set_model(self, model: ChatModel | None) -> None:
        self._model = model

    async def extract_lesson(self, session_digest: str) -> str:
        """
        Ask the model for one actionable rule.

        Falls back to a keyword decision table when no model is configured
        or the call fails. Returns "" for an empty digest.
        """
        if not session_digest or not session_digest.strip():
            logger.info("[lesson_extractor] Empty digest, no lesson")
            return ""

        logger.info("[lesson_extractor] Extracting lesson from session digest")

        if self._model is None:
            logger.warning("[lesson_extractor] No model configured, using fallback extraction")
            return self.fallback_lesson(session_digest)

        user_message = (
            f"Session Summary:\n\n{session_digest}\n\n"
            "Extract ONE actionable rule from this session."
        )

        try:
            response = await self._model.chat(LESSON_SYSTEM_PROMPT, user_message)
        except Exception as e:
            logger.error(f"[lesson_extractor] Failed to extract lesson: {e}")
            return self.fallback_lesson(session_digest)

        lesson = clean_lesson(response or "")
        if not lesson:
            logger.warning("[lesson_extractor] Model returned no rule, using fallback")
            return self.fallback_lesson(session_digest)

        logger.info(f"[lesson_extractor] Learned new rule: {lesson[:100]}")
        return lesson

    @staticmethod
    def fallback_lesson(session_digest: str) -> str:
        """Pick a rule from the keyword decision table."""
        if not session_digest.strip():
            return ""
        text = _GOAL_SECTION.sub("", session_digest).lower()
        for keywords, rule in FALLBACK_RULES:
            if all(keyword in text for keyword in keywords):
                return rule
        return DEFAULT_RULE
