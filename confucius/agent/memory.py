"""
Hierarchical Working Memory.

Working memory holds everything the model sees during one run, split into
three scopes with different lifecycles:

    SESSION  - system prompt, tool docs and learned rules.
               Written once at run start, never mutated afterwards.
    ENTRY    - the task being worked on.
               Replaced wholesale when a task (re)starts.
    RUNNABLE - the execution trace (assistant output, tool results).
               Append-only, except for whole-scope replacement on compression.

The model always sees SESSION ++ ENTRY ++ RUNNABLE, in insertion order
within each scope.

Each scope keeps a token counter that always equals the sum of the
estimator's value over that scope's messages.

Usage:
    memory = WorkingMemory()
    memory.initialize_session("You are a coding agent...")
    memory.set_entry("Fix the failing test")
    memory.add_to_runnable(Message(role="assistant", content="<think>...</think>"))

    if memory.needs_compression(5000):
        ...

    messages = memory.get_messages()
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Literal, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = logging.getLogger(__name__)


# =============================================================================
# Message Types
# =============================================================================


MessageRole = Literal["system", "user", "assistant", "tool"]


class MemoryScope(str, Enum):
    """Lifecycle scope of a message in working memory."""

    SESSION = "session"
    ENTRY = "entry"
    RUNNABLE = "runnable"


def _utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class Message:
    """
    A single message in working memory.

    Attributes:
        role: The role of the message sender
        content: Message text
        tool_name: For tool messages, the extension that produced it
        timestamp: When the message was created
        scope: Scope assigned by WorkingMemory when the message is appended

    Note:
        Messages are immutable. The scope is stamped on a copy at append
        time and never changes afterwards.
    """

    role: MessageRole
    content: str
    tool_name: str | None = None
    timestamp: datetime = field(default_factory=_utc_now)
    scope: MemoryScope | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dict."""
        data: dict[str, Any] = {
            "role": self.role,
            "content": self.content,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.tool_name:
            data["tool_name"] = self.tool_name
        if self.scope is not None:
            data["scope"] = self.scope.value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Message:
        """Create Message from dict."""
        return cls(
            role=data["role"],
            content=data["content"],
            tool_name=data.get("tool_name"),
            timestamp=datetime.fromisoformat(data["timestamp"])
            if "timestamp" in data
            else _utc_now(),
            scope=MemoryScope(data["scope"]) if data.get("scope") else None,
        )

    def to_llm_format(self) -> dict[str, str]:
        """Convert to LLM-compatible format (role + content only)."""
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class Note:
    """
    A knowledge note written by an extension during a run.

    Notes are keyed by path; writing a note with an existing path
    replaces the previous one.
    """

    path: str
    content: str
    tags: tuple[str, ...] = ()
    updated_at: datetime = field(default_factory=_utc_now)
    is_hindsight: bool = False

    def matches(self, query: str) -> bool:
        """Case-insensitive substring match over content, tags and path."""
        needle = query.lower()
        return (
            needle in self.content.lower()
            or needle in self.path.lower()
            or any(needle in tag.lower() for tag in self.tags)
        )


# =============================================================================
# Token Estimation
# =============================================================================


@runtime_checkable
class TokenEstimator(Protocol):
    """
    Estimates the token cost of a piece of text.

    Implementations must be deterministic: the same text always
    yields the same estimate.
    """

    def estimate(self, text: str) -> int:
        ...


class CharRatioEstimator:
    """Fixed characters-per-token heuristic (4 chars ~ 1 token)."""

    def __init__(self, chars_per_token: int = 4) -> None:
        if chars_per_token <= 0:
            raise ValueError("chars_per_token must be positive")
        self._chars_per_token = chars_per_token

    def estimate(self, text: str) -> int:
        return math.ceil(len(text) / self._chars_per_token)

    def __repr__(self) -> str:
        return f"CharRatioEstimator(chars_per_token={self._chars_per_token})"


# =============================================================================
# Working Memory
# =============================================================================


class WorkingMemory:
    """
    Three-scope working memory for a single run.

    A WorkingMemory is created fresh for every run and owned by that run.
    Extensions never receive it directly; they go through RunContext.

    Invariants:
        - token_count(scope) == sum(estimate(m.content) for m in scope)
        - token_count() == sum of the three scope counters
        - get_messages() == session ++ entry ++ runnable
    """

    def __init__(self, estimator: TokenEstimator | None = None) -> None:
        self._estimator: TokenEstimator = estimator or CharRatioEstimator()
        self._scopes: dict[MemoryScope, list[Message]] = {scope: [] for scope in MemoryScope}
        self._tokens: dict[MemoryScope, int] = {scope: 0 for scope in MemoryScope}
        self._notes: dict[str, Note] = {}

    # -------------------------------------------------------------------------
    # Scope writes
    # -------------------------------------------------------------------------

    def initialize_session(self, system_prompt: str) -> bool:
        """
        Seed the session scope with the system prompt.

        Session scope is write-once: later calls are ignored with a warning.

        Returns:
            True if the session was initialized by this call
        """
        if self._scopes[MemoryScope.SESSION]:
            logger.warning("[working_memory] Session scope already initialized, skipping")
            return False

        self._append(MemoryScope.SESSION, Message(role="system", content=system_prompt))
        logger.info(
            f"[working_memory] Session scope initialized "
            f"({self._tokens[MemoryScope.SESSION]} tokens)"
        )
        return True

    def set_entry(self, task: str) -> None:
        """Replace the entry scope with a single user message holding the task."""
        message = self._stamp(Message(role="user", content=task), MemoryScope.ENTRY)
        tokens = self._estimator.estimate(task)

        # Swap in one step so the scope is never observed half-written
        self._scopes[MemoryScope.ENTRY] = [message]
        self._tokens[MemoryScope.ENTRY] = tokens

        logger.info(f"[working_memory] Entry scope set: {task[:100]!r} ({tokens} tokens)")

    def add_to_runnable(self, message: Message) -> Message:
        """
        Append a message to the runnable scope.

        Returns:
            The stored (scope-stamped) message
        """
        return self._append(MemoryScope.RUNNABLE, message)

    def clear_runnable(self) -> None:
        """Drop every runnable message."""
        cleared = len(self._scopes[MemoryScope.RUNNABLE])
        self._scopes[MemoryScope.RUNNABLE] = []
        self._tokens[MemoryScope.RUNNABLE] = 0
        if cleared:
            logger.info(f"[working_memory] Runnable scope cleared ({cleared} messages)")

    def compress_runnable(self, messages: Iterable[Message]) -> None:
        """
        Replace the runnable scope wholesale.

        The previous messages and their token contributions are discarded;
        the counter is recomputed from the new messages.
        """
        new_messages = [self._stamp(m, MemoryScope.RUNNABLE) for m in messages]
        new_tokens = sum(self._estimator.estimate(m.content) for m in new_messages)

        old_count = len(self._scopes[MemoryScope.RUNNABLE])
        old_tokens = self._tokens[MemoryScope.RUNNABLE]

        self._scopes[MemoryScope.RUNNABLE] = new_messages
        self._tokens[MemoryScope.RUNNABLE] = new_tokens

        logger.info(
            f"[working_memory] Runnable scope compressed: "
            f"{old_count} -> {len(new_messages)} messages, "
            f"{old_tokens} -> {new_tokens} tokens"
        )

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get_messages(self) -> list[Message]:
        """All messages in model order: session, entry, runnable."""
        return [
            *self._scopes[MemoryScope.SESSION],
            *self._scopes[MemoryScope.ENTRY],
            *self._scopes[MemoryScope.RUNNABLE],
        ]

    def get_messages_by_scope(self, scope: MemoryScope) -> list[Message]:
        """Copy of a single scope's messages."""
        return list(self._scopes[MemoryScope(scope)])

    @property
    def runnable_messages(self) -> list[Message]:
        return self.get_messages_by_scope(MemoryScope.RUNNABLE)

    def token_count(self, scope: MemoryScope | None = None) -> int:
        """Token count for one scope, or for the whole memory when scope is None."""
        if scope is not None:
            return self._tokens[MemoryScope(scope)]
        return sum(self._tokens.values())

    def needs_compression(self, threshold: int) -> bool:
        """True when the total token count (all scopes) exceeds threshold."""
        return self.token_count() > threshold

    def estimate_tokens(self, text: str) -> int:
        return self._estimator.estimate(text)

    # -------------------------------------------------------------------------
    # Notes
    # -------------------------------------------------------------------------

    def write_note(self, note: Note) -> Note:
        """Store a note (last write wins). Returns the stored note."""
        stored = replace(note, updated_at=_utc_now())
        self._notes[note.path] = stored
        logger.debug(f"[working_memory] Note saved: {note.path}")
        return stored

    def read_note(self, path: str) -> Note | None:
        return self._notes.get(path)

    def search_notes(self, query: str) -> list[Note]:
        """Notes whose content, tags or path contain query (case-insensitive)."""
        return [note for note in self._notes.values() if note.matches(query)]

    @property
    def notes(self) -> dict[str, Note]:
        return dict(self._notes)

    # -------------------------------------------------------------------------
    # Introspection
    # -------------------------------------------------------------------------

    def stats(self) -> dict[str, Any]:
        """Per-scope message and token counts for monitoring."""
        return {
            "scopes": {
                scope.value: {
                    "messages": len(self._scopes[scope]),
                    "tokens": self._tokens[scope],
                }
                for scope in MemoryScope
            },
            "total": {
                "messages": sum(len(m) for m in self._scopes.values()),
                "tokens": self.token_count(),
            },
            "notes": len(self._notes),
        }

    def export(self) -> dict[str, Any]:
        """Snapshot of memory contents as plain data."""
        return {
            scope.value: [m.to_dict() for m in self._scopes[scope]] for scope in MemoryScope
        } | {
            "notes": [
                {
                    "path": n.path,
                    "content": n.content,
                    "tags": list(n.tags),
                    "updated_at": n.updated_at.isoformat(),
                    "is_hindsight": n.is_hindsight,
                }
                for n in self._notes.values()
            ],
        }

    @classmethod
    def from_export(
        cls,
        data: dict[str, Any],
        estimator: TokenEstimator | None = None,
    ) -> WorkingMemory:
        """
        Rebuild memory from an export() snapshot.

        Token counters are recomputed from content rather than trusted
        from the snapshot.
        """
        memory = cls(estimator=estimator)
        for scope in MemoryScope:
            for raw in data.get(scope.value, []):
                memory._append(scope, Message.from_dict(raw))
        for raw in data.get("notes", []):
            memory._notes[raw["path"]] = Note(
                path=raw["path"],
                content=raw["content"],
                tags=tuple(raw.get("tags", ())),
                updated_at=datetime.fromisoformat(raw["updated_at"])
                if "updated_at" in raw
                else _utc_now(),
                is_hindsight=raw.get("is_hindsight", False),
            )
        return memory

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    @staticmethod
    def _stamp(message: Message, scope: MemoryScope) -> Message:
        if message.scope is scope:
            return message
        return replace(message, scope=scope)

    def _append(self, scope: MemoryScope, message: Message) -> Message:
        stored = self._stamp(message, scope)
        tokens = self._estimator.estimate(stored.content)
        self._scopes[scope].append(stored)
        self._tokens[scope] += tokens

        logger.debug(
            f"[working_memory] Added {stored.role} message to {scope.value} "
            f"({tokens} tokens, total {self.token_count()})"
        )
        return stored

    def __len__(self) -> int:
        return sum(len(m) for m in self._scopes.values())

    def __repr__(self) -> str:
        counts = {s.value: len(m) for s, m in self._scopes.items()}
        return f"<WorkingMemory scopes={counts} tokens={self.token_count()}>"
