"""
Orchestrator Run State.

This module defines the state returned by Orchestrator.run(): the
iteration counter, the termination reason and the final result.

State Machine:
    idle -> running -> completed | max_iterations | error

Exactly one termination reason is set, exactly once, per run. The
transition helpers below refuse a second termination.

Usage:
    state = await orchestrator.run("Fix the failing test")

    if state.termination_reason is TerminationReason.COMPLETED:
        print(state.result.output)
    else:
        print(f"Stopped: {state.termination_reason.value}")
"""

from __future__ import annotations

import traceback
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from confucius.extensions.base import ExecutionResult
from confucius.providers.llm.base import TokenUsage


class TerminationReason(str, Enum):
    """Why the run stopped."""

    COMPLETED = "completed"
    MAX_ITERATIONS = "max_iterations"
    ERROR = "error"
    USER_CANCELLED = "user_cancelled"


class RunStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"


class StateTransitionError(RuntimeError):
    """Raised when a run is terminated twice or started twice."""

    pass


def _utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass
class OrchestratorState:
    """
    State of one orchestrator run.

    Attributes:
        session_id: Identifier of the run
        iteration: Iterations started so far (incremented before each model call)
        running: Whether the loop is still running
        termination_reason: Set exactly once when the run stops
        result: Final result (output of the run)
        usage: Accumulated provider token usage
        tools_called: Extension names executed, in order
        digest_path: Where the session digest was written, if it was
        lesson: Lesson extracted after the run ("" when none)
    """

    session_id: str = ""
    iteration: int = 0
    running: bool = False
    termination_reason: TerminationReason | None = None
    result: ExecutionResult | None = None

    usage: TokenUsage = field(default_factory=TokenUsage)
    tools_called: list[str] = field(default_factory=list)
    started_at: datetime = field(default_factory=_utc_now)
    completed_at: datetime | None = None

    digest_path: str | None = None
    lesson: str = ""

    @property
    def status(self) -> RunStatus:
        if self.running:
            return RunStatus.RUNNING
        if self.termination_reason is None:
            return RunStatus.IDLE
        return RunStatus.STOPPED

    @property
    def success(self) -> bool:
        return self.result is not None and self.result.success

    @property
    def duration_ms(self) -> float:
        end = self.completed_at or _utc_now()
        return (end - self.started_at).total_seconds() * 1000

    def start(self) -> None:
        """idle -> running."""
        if self.status is not RunStatus.IDLE:
            raise StateTransitionError(f"Cannot start a run in state {self.status.value}")
        self.running = True
        self.started_at = _utc_now()

    def terminate(self, reason: TerminationReason, result: ExecutionResult | None = None) -> None:
        """running -> terminal. Allowed exactly once."""
        if self.termination_reason is not None:
            raise StateTransitionError(
                f"Run already terminated ({self.termination_reason.value}), "
                f"cannot terminate again with {reason.value}"
            )
        self.running = False
        self.termination_reason = reason
        if result is not None:
            self.result = result
        self.completed_at = _utc_now()

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "session_id": self.session_id,
            "iteration": self.iteration,
            "running": self.running,
            "termination_reason": self.termination_reason.value
            if self.termination_reason
            else None,
            "result": self.result.to_dict() if self.result else None,
            "usage": {
                "prompt_tokens": self.usage.prompt_tokens,
                "completion_tokens": self.usage.completion_tokens,
                "total_tokens": self.usage.total_tokens,
            },
            "tools_called": list(self.tools_called),
            "duration_ms": self.duration_ms,
            "digest_path": self.digest_path,
            "lesson": self.lesson,
        }


# =============================================================================
# Result Factories
# =============================================================================


def completed_result(output: str) -> ExecutionResult:
    """Result for a run the model or a finish signal completed."""
    return ExecutionResult.ok(output)


def max_iterations_result(max_iterations: int) -> ExecutionResult:
    """Result for a run that hit the iteration ceiling."""
    return ExecutionResult.failure(
        f"Agent reached maximum iterations ({max_iterations})",
        code="MAX_ITERATIONS",
        recoverable=True,
    )


def error_result(error: BaseException) -> ExecutionResult:
    """Non-recoverable result for an exception that escaped the loop body."""
    return ExecutionResult.failure(
        f"Orchestrator error: {error}",
        code="ORCHESTRATOR_ERROR",
        message=str(error),
        recoverable=False,
        stack="".join(traceback.format_exception(error)),
    )
