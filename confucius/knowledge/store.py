"""
Knowledge Store.

Durable, append-only store of learned rules, kept as a markdown file
(by default `<working_directory>/.ralph/knowledge.md`):

    # Confucius Knowledge Base

    Learned rules and best practices from previous sessions.

    ## Rule (2026-01-01T12:00:00.000000+00:00)
    Always verify file existence before reading

Rules are appended, never rewritten. The whole file is injected into
the system prompt at the start of each run.

Blocking file I/O runs in a worker thread via asyncio.to_thread.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime
from pathlib import Path

logger = logging.getLogger(__name__)

KNOWLEDGE_HEADER = (
    "# Confucius Knowledge Base\n\nLearned rules and best practices from previous sessions.\n"
)


def format_rule(rule: str, timestamp: datetime | None = None) -> str:
    """Render one rule entry."""
    ts = (timestamp or datetime.now(UTC)).isoformat()
    return f"\n## Rule ({ts})\n{rule.strip()}\n"


class KnowledgeStore:
    """
    Append-only markdown rule store.

    Example:
        store = KnowledgeStore(Path(".ralph/knowledge.md"))
        await store.add_rule("Check exit codes after running shell commands")
        rules = await store.load_rules()
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._lock = asyncio.Lock()

    @property
    def path(self) -> Path:
        return self._path

    async def load_rules(self) -> str:
        """
        Return the full knowledge text.

        Returns "" when the file does not exist. Other read errors (including
        undecodable content) are logged and also yield "" so a run can
        proceed without rules.
        """
        try:
            return await asyncio.to_thread(self._path.read_text, encoding="utf-8")
        except FileNotFoundError:
            logger.debug(f"[knowledge_store] No knowledge file at {self._path}")
            return ""
        except (OSError, UnicodeDecodeError) as e:
            logger.error(f"[knowledge_store] Failed to read {self._path}: {e}")
            return ""

    async def add_rule(self, rule: str) -> bool:
        """
        Append one rule with a timestamp.

        Creates the file (with header) and parent directories on first use.
        Blank rules are skipped with a warning; write failures are logged.

        Returns:
            True if the rule was written
        """
        if not rule or not rule.strip():
            logger.warning("[knowledge_store] Ignoring empty rule")
            return False

        entry = format_rule(rule)
        async with self._lock:
            try:
                await asyncio.to_thread(self._append, entry)
            except OSError as e:
                logger.error(
                    f"[knowledge_store] Failed to write rule to {self._path}: {e}",
                    exc_info=True,
                )
                return False

        logger.info(f"[knowledge_store] Added rule: {rule.strip()[:100]}")
        return True

    def _append(self, entry: str) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        is_new = not self._path.exists()
        with self._path.open("a", encoding="utf-8") as f:
            if is_new:
                f.write(KNOWLEDGE_HEADER)
            f.write(entry)

    async def has_rules(self) -> bool:
        content = await self.load_rules()
        return "## Rule" in content

    async def clear(self) -> None:
        """Reset the store to just the header."""
        async with self._lock:
            await asyncio.to_thread(self._reset)
        logger.info(f"[knowledge_store] Cleared knowledge base at {self._path}")

    def _reset(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(KNOWLEDGE_HEADER, encoding="utf-8")

    def __repr__(self) -> str:
        return f"KnowledgeStore(path={str(self._path)!r})"
