"""
Finish Extension - signal task completion.

The model emits ``<finish>summary of what was done</finish>`` when the task
is complete. The result carries the terminate signal, which ends the run
immediately; any actions after it in the same response are not executed.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .base import ExecutionResult, Extension, ParsedAction

if TYPE_CHECKING:
    from confucius.agent.context import RunContext


class FinishExtension(Extension):
    """Signals task completion to the orchestrator."""

    name = "finish"
    trigger_tag = "finish"
    description = (
        "Signal that the task is complete. Use when all requested work is done. "
        "The content becomes the final result message."
    )
    signals_continuation = False

    def parse(self, content: str) -> ParsedAction | None:
        message = content.strip()
        if not message:
            return None
        return ParsedAction(tool=self.name, parameters={"message": message}, raw_content=content)

    async def execute(self, action: ParsedAction, context: RunContext) -> ExecutionResult:
        message = str(action.parameters["message"])
        return ExecutionResult.ok(
            message,
            metadata={
                "terminate": True,
                "reason": "completed",
                "final_message": message,
            },
        )
