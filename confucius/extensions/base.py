"""
Extension Base Classes.

This module defines the core abstractions for agent extensions:
- Extension: Base class for all pluggable tools
- ParsedAction: A tool invocation parsed out of model output
- ExecutionResult: Outcome of running an action
- ExtensionError: Structured failure details
- Artifact: A file or resource produced by a tool
- ExtensionCapability: Optional hooks an extension implements

Design Principle:
    Extensions are the "hands" of the agent. Each one listens for a
    trigger tag in model output, parses the tag content into a
    ParsedAction, and executes it. Extensions never see working memory
    directly, only the mediated accessors on RunContext.

Tag Syntax:
    <trigger_tag optional="attrs">content</trigger_tag>

Usage:
    class EchoExtension(Extension):
        name = "echo"
        trigger_tag = "echo"
        description = "Echo the content back"

        def parse(self, content: str) -> ParsedAction | None:
            return ParsedAction(tool=self.name, parameters={"text": content})

        async def execute(self, action, context) -> ExecutionResult:
            return ExecutionResult.ok(action.parameters["text"])
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Flag, auto
from typing import TYPE_CHECKING, Any
from uuid import uuid4

if TYPE_CHECKING:
    from confucius.agent.context import RunContext
    from confucius.agent.memory import Message


class ExtensionCapability(Flag):
    """
    Optional lifecycle hooks an extension implements.

    Computed once at registration time by ExtensionRegistry so the
    callback pipelines never re-check extensions per call.
    """

    NONE = 0
    INPUT_MESSAGES = auto()
    LLM_OUTPUT = auto()


@dataclass(frozen=True, slots=True)
class ParsedAction:
    """
    A tool invocation extracted from model output.

    Produced by Extension.parse() and consumed by Extension.execute()
    within a single iteration.
    """

    tool: str
    parameters: dict[str, Any] = field(default_factory=dict)
    raw_content: str = ""


@dataclass(frozen=True, slots=True)
class ExtensionError:
    """
    Structured error from extension execution.

    Attributes:
        code: Error code for categorization (e.g. "EXECUTION_ERROR")
        message: Human-readable message
        recoverable: Whether the run can carry on after this error
        stack: Formatted traceback, if available
        suggestion: Suggested recovery action
    """

    code: str
    message: str
    recoverable: bool = True
    stack: str | None = None
    suggestion: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "code": self.code,
            "message": self.message,
            "recoverable": self.recoverable,
        }
        if self.suggestion:
            result["suggestion"] = self.suggestion
        return result


@dataclass(frozen=True, slots=True)
class Artifact:
    """A file or resource produced during execution."""

    name: str
    mime_type: str = "text/plain"
    id: str = field(default_factory=lambda: str(uuid4()))
    path: str | None = None
    content: str | bytes | None = None


@dataclass(frozen=True, slots=True)
class ExecutionResult:
    """
    Outcome of executing an action.

    ``output`` goes back into working memory for the model to read.
    ``user_output`` is a richer rendering for humans and is never shown
    to the model.

    Out-of-band signals travel in ``metadata``; ``{"terminate": True}``
    ends the run after this action.

    Example:
        ExecutionResult.ok("3 files changed")
        ExecutionResult.failure("File not found", code="NOT_FOUND")
        ExecutionResult.ok("Done", metadata={"terminate": True})
    """

    success: bool
    output: str
    user_output: str | None = None
    artifacts: tuple[Artifact, ...] = ()
    error: ExtensionError | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(
        cls,
        output: str,
        *,
        user_output: str | None = None,
        artifacts: tuple[Artifact, ...] = (),
        metadata: dict[str, Any] | None = None,
    ) -> ExecutionResult:
        """Create a successful result."""
        return cls(
            success=True,
            output=output,
            user_output=user_output,
            artifacts=artifacts,
            metadata=metadata or {},
        )

    @classmethod
    def failure(
        cls,
        output: str,
        *,
        code: str = "EXECUTION_ERROR",
        message: str | None = None,
        recoverable: bool = True,
        stack: str | None = None,
        suggestion: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> ExecutionResult:
        """Create a failed result with structured error details."""
        return cls(
            success=False,
            output=output,
            error=ExtensionError(
                code=code,
                message=message if message is not None else output,
                recoverable=recoverable,
                stack=stack,
                suggestion=suggestion,
            ),
            metadata=metadata or {},
        )

    @property
    def terminates(self) -> bool:
        """Whether this result carries the terminate signal."""
        return bool(self.metadata.get("terminate"))

    @property
    def final_message(self) -> str:
        """Message to report when this result terminates the run."""
        return str(self.metadata.get("final_message") or self.output)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        result: dict[str, Any] = {"success": self.success, "output": self.output}
        if self.user_output is not None:
            result["user_output"] = self.user_output
        if self.artifacts:
            result["artifacts"] = [a.id for a in self.artifacts]
        if self.error is not None:
            result["error"] = self.error.to_dict()
        if self.metadata:
            result["metadata"] = self.metadata
        return result


class Extension(ABC):
    """
    Base class for all extensions.

    Contract:
        - name: Globally unique identifier
        - trigger_tag: Globally unique tag the extension listens for
        - description: Shown to the model in the tool docs
        - parse: Turn tag content into a ParsedAction (or None to reject)
        - execute: Async method that performs the action

    Optional hooks (override to opt in):
        - on_input_messages: rewrite the messages sent to the model
        - on_llm_output: rewrite the raw model output before parsing

    signals_continuation defaults to True: most tools need the model to
    look at their result.
    """

    name: str
    trigger_tag: str
    description: str = ""
    signals_continuation: bool = True

    @abstractmethod
    def parse(self, content: str) -> ParsedAction | None:
        """
        Parse the content between this extension's tags.

        Args:
            content: Tag content, stripped of surrounding whitespace

        Returns:
            ParsedAction, or None if the content is not a valid invocation
        """
        ...

    @abstractmethod
    async def execute(self, action: ParsedAction, context: RunContext) -> ExecutionResult:
        """
        Execute a parsed action.

        Important:
            - Report expected failures with ExecutionResult.failure()
            - Exceptions are caught by the registry and turned into
              recoverable EXECUTION_ERROR results
        """
        ...

    def on_input_messages(self, messages: list[Message], context: RunContext) -> list[Message]:
        """Hook: rewrite messages before they are sent to the model."""
        return messages

    def on_llm_output(self, output: str, context: RunContext) -> str:
        """Hook: rewrite model output before it is parsed."""
        return output

    @property
    def capabilities(self) -> ExtensionCapability:
        """Hooks this extension overrides."""
        caps = ExtensionCapability.NONE
        cls = type(self)
        if cls.on_input_messages is not Extension.on_input_messages:
            caps |= ExtensionCapability.INPUT_MESSAGES
        if cls.on_llm_output is not Extension.on_llm_output:
            caps |= ExtensionCapability.LLM_OUTPUT
        return caps

    def to_doc(self) -> str:
        """Render this extension's block for the system prompt tool docs."""
        return f"## <{self.trigger_tag}>\n{self.description}\n"

    def __repr__(self) -> str:
        return f"<Extension {self.name} <{self.trigger_tag}>>"
