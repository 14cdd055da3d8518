"""
Run Context for Confucius.

The context provides run-scoped state to every extension call. It is
the only way extensions reach working memory: they get mediated
accessors (add a message, read/write/search notes), never the
WorkingMemory object itself.

The context is created by the orchestrator at run start and passed to
every parse/execute/hook call of that run.
"""

from __future__ import annotations

import logging
from dataclasses import InitVar, dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from .memory import Message, Note, WorkingMemory

if TYPE_CHECKING:
    from confucius.artifacts import ArtifactStore
    from confucius.config import RunConfig


def _utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass
class RunContext:
    """
    Run-scoped context passed to extensions.

    Provides:
    - Session identification and iteration counters
    - Run configuration and artifact sink
    - Mediated working memory access
    - A logger extensions can use for their own output
    """

    session_id: str
    config: RunConfig
    artifacts: ArtifactStore
    memory: InitVar[WorkingMemory]

    iteration: int = 0
    started_at: datetime = field(default_factory=_utc_now)
    logger: logging.Logger = field(
        default_factory=lambda: logging.getLogger("confucius.extensions"),
        repr=False,
    )

    def __post_init__(self, memory: WorkingMemory) -> None:
        self._memory = memory

    @property
    def max_iterations(self) -> int:
        return self.config.max_iterations

    @property
    def elapsed_ms(self) -> float:
        """Milliseconds since the run started."""
        delta = datetime.now(UTC) - self.started_at
        return delta.total_seconds() * 1000

    # ---- Memory operations ----

    def add_message(self, message: Message) -> Message:
        """Append a message to the runnable scope."""
        return self._memory.add_to_runnable(message)

    def read_note(self, path: str) -> Note | None:
        return self._memory.read_note(path)

    def write_note(self, note: Note) -> Note:
        return self._memory.write_note(note)

    def search_notes(self, query: str) -> list[Note]:
        return self._memory.search_notes(query)

    def memory_stats(self) -> dict[str, Any]:
        """Read-only view of memory size for extensions that budget output."""
        return self._memory.stats()
