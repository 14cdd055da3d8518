"""
Think Extension - internal reasoning scratchpad.

``<think>...</think>`` lets the model plan before acting. The thought is
logged and shown to users, but the model-facing output is empty so it
does not pad working memory.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .base import ExecutionResult, Extension, ParsedAction

if TYPE_CHECKING:
    from confucius.agent.context import RunContext


class ThinkExtension(Extension):
    name = "think"
    trigger_tag = "think"
    description = (
        "Internal reasoning and planning. Use to think through problems before acting. "
        "Does not produce external output."
    )
    signals_continuation = False

    def parse(self, content: str) -> ParsedAction | None:
        return ParsedAction(
            tool=self.name,
            parameters={"thought": content.strip()},
            raw_content=content,
        )

    async def execute(self, action: ParsedAction, context: RunContext) -> ExecutionResult:
        thought = str(action.parameters.get("thought", ""))
        context.logger.debug(f"[think] {thought[:200]} ({len(thought)} chars)")
        return ExecutionResult.ok("", user_output=f"Thinking: {thought}")
