"""
Extension Registry.

The registry manages the extensions available to the orchestrator:
- Registration with duplicate name / trigger tag validation
- Routing of model output to the owning extension's parser
- Fault-isolated execution of parsed actions
- Input/output callback pipelines
- Tool documentation for the system prompt

Design Principle:
    Extensions are registered once at startup and reused across runs.
    A misconfigured registry (duplicate name or tag) fails at
    registration time; everything that happens at use time is recovered
    locally so one extension's fault never aborts an iteration.

Tag Scanning Policy:
    All registered tags are combined into one case-insensitive pattern
    and scanned left to right for non-overlapping matches of
    ``<tag attrs?>content</tag>``. Content is matched non-greedily, so the
    first closing tag of the same name ends the match. Nested same-name
    tags are not supported: ``<a>x<a>y</a>z</a>`` yields one action with
    content ``x<a>y`` and the trailing ``z</a>`` is ignored. Tags of other
    registered names inside a match are part of its content.

Usage:
    registry = ExtensionRegistry()
    registry.register(ThinkExtension())
    registry.register(FinishExtension())

    for extension, action in registry.parse_output(model_output):
        result = await registry.execute(extension, action, context)
"""

from __future__ import annotations

import logging
import re
import time
import traceback
from typing import TYPE_CHECKING, Any

from .base import ExecutionResult, ExtensionCapability

if TYPE_CHECKING:
    from collections.abc import Collection

    from confucius.agent.context import RunContext
    from confucius.agent.memory import Message

    from .base import Extension, ParsedAction

logger = logging.getLogger(__name__)


class ExtensionRegistryError(Exception):
    """Error in extension registry operations."""

    pass


class ExtensionRegistry:
    """
    Registry of extensions for the orchestrator.

    Extensions are kept in registration order; that order drives the
    callback pipelines and the generated tool docs.

    Example:
        registry = ExtensionRegistry()
        registry.register(ThinkExtension())

        actions = registry.parse_output("<think>plan</think>")
        extension, action = actions[0]
    """

    def __init__(self) -> None:
        self._extensions: dict[str, Extension] = {}
        self._by_tag: dict[str, Extension] = {}
        self._capabilities: dict[str, ExtensionCapability] = {}
        self._pattern: re.Pattern[str] | None = None

    # -------------------------------------------------------------------------
    # Registration
    # -------------------------------------------------------------------------

    def register(self, extension: Extension) -> None:
        """
        Register an extension.

        Args:
            extension: Extension instance to register

        Raises:
            ExtensionRegistryError: If the name or trigger tag is already taken,
                or the extension is missing a name or tag
        """
        self._validate_extension(extension)

        if extension.name in self._extensions:
            raise ExtensionRegistryError(
                f"Extension '{extension.name}' already registered. "
                f"Use a unique name or unregister first."
            )

        tag = extension.trigger_tag.lower()
        existing = self._by_tag.get(tag)
        if existing is not None:
            raise ExtensionRegistryError(
                f"Trigger tag <{tag}> already registered by extension '{existing.name}'"
            )

        self._extensions[extension.name] = extension
        self._by_tag[tag] = extension
        self._capabilities[extension.name] = extension.capabilities
        self._pattern = None

        logger.info(
            f"[extension_registry] Registered extension: {extension.name} <{tag}>"
        )

    def register_all(self, extensions: Collection[Extension]) -> None:
        """Register several extensions in order."""
        for extension in extensions:
            self.register(extension)

    def unregister(self, name: str) -> bool:
        """
        Unregister an extension by name.

        Returns:
            True if the extension was unregistered, False if not found
        """
        extension = self._extensions.pop(name, None)
        if extension is None:
            return False

        del self._by_tag[extension.trigger_tag.lower()]
        del self._capabilities[name]
        self._pattern = None
        logger.info(f"[extension_registry] Unregistered extension: {name}")
        return True

    def _validate_extension(self, extension: Extension) -> None:
        name = getattr(extension, "name", None)
        if not name or not isinstance(name, str):
            raise ExtensionRegistryError(f"Extension must have a valid name: {extension!r}")

        tag = getattr(extension, "trigger_tag", None)
        if not tag or not isinstance(tag, str):
            raise ExtensionRegistryError(f"Extension '{name}' must have a trigger tag")

        if not re.fullmatch(r"[A-Za-z_][\w.\-]*", tag):
            raise ExtensionRegistryError(
                f"Extension '{name}' has an invalid trigger tag: {tag!r}"
            )

    # -------------------------------------------------------------------------
    # Lookup
    # -------------------------------------------------------------------------

    def get(self, name: str) -> Extension | None:
        return self._extensions.get(name)

    def get_by_tag(self, tag: str) -> Extension | None:
        return self._by_tag.get(tag.lower())

    def get_required(self, name: str) -> Extension:
        """
        Get an extension by name, raising if not found.

        Raises:
            ExtensionRegistryError: If the extension is not registered
        """
        extension = self._extensions.get(name)
        if extension is None:
            available = list(self._extensions.keys())
            raise ExtensionRegistryError(
                f"Extension '{name}' not found. Available extensions: {available}"
            )
        return extension

    def capabilities(self, name: str) -> ExtensionCapability:
        """Capabilities recorded for an extension at registration."""
        return self._capabilities.get(name, ExtensionCapability.NONE)

    def list_extensions(self) -> list[Extension]:
        return list(self._extensions.values())

    def list_names(self) -> list[str]:
        return list(self._extensions.keys())

    def list_tags(self) -> list[str]:
        return list(self._by_tag.keys())

    # -------------------------------------------------------------------------
    # Parsing
    # -------------------------------------------------------------------------

    def parse_output(
        self,
        output: str,
        enabled: Collection[str] | None = None,
    ) -> list[tuple[Extension, ParsedAction]]:
        """
        Extract every tagged action from model output, in textual order.

        Unregistered (or disabled) tags are ignored. A match whose parser
        raises or returns None is dropped with a warning; scanning carries
        on with the next tag.

        Args:
            output: Raw model output
            enabled: Optional extension names to consider (None = all)

        Returns:
            Ordered list of (extension, action) pairs
        """
        pattern = self._tag_pattern()
        if pattern is None:
            return []

        actions: list[tuple[Extension, ParsedAction]] = []

        for match in pattern.finditer(output):
            tag, content = match.group(1).lower(), match.group(2)
            extension = self._by_tag.get(tag)
            if extension is None or not self._is_enabled(extension, enabled):
                continue

            start = time.perf_counter()
            try:
                action = extension.parse(content.strip())
            except Exception as e:
                logger.warning(
                    f"[extension_registry] Parse error in {extension.name}: {e} "
                    f"(content: {content[:200]!r})"
                )
                continue
            finally:
                duration = (time.perf_counter() - start) * 1000
                logger.debug(f"[extension_registry] parse:{extension.name} took {duration:.1f}ms")

            if action is None:
                logger.warning(
                    f"[extension_registry] {extension.name} rejected content: {content[:100]!r}"
                )
                continue

            actions.append((extension, action))
            logger.debug(
                f"[extension_registry] Parsed <{tag}> action for {extension.name}: "
                f"{action.parameters}"
            )

        return actions

    def _tag_pattern(self) -> re.Pattern[str] | None:
        if not self._by_tag:
            return None
        if self._pattern is None:
            # Longest tags first so a tag that prefixes another never shadows it
            tags = sorted(self._by_tag, key=len, reverse=True)
            alternation = "|".join(re.escape(t) for t in tags)
            self._pattern = re.compile(
                rf"<({alternation})(?:\s[^>]*)?>(.*?)</\1\s*>",
                re.IGNORECASE | re.DOTALL,
            )
        return self._pattern

    # -------------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------------

    async def execute(
        self,
        extension: Extension,
        action: ParsedAction,
        context: RunContext,
    ) -> ExecutionResult:
        """
        Execute an action through its extension.

        Any exception raised by the extension is converted into a failed,
        recoverable ExecutionResult (code EXECUTION_ERROR).
        """
        start = time.perf_counter()
        logger.info(f"[extension_registry] Executing {extension.name}: {action.parameters}")

        try:
            result = await extension.execute(action, context)
        except Exception as e:
            duration = (time.perf_counter() - start) * 1000
            logger.error(
                f"[extension_registry] Execution error in {extension.name} "
                f"after {duration:.1f}ms: {e}",
                exc_info=True,
            )
            return ExecutionResult.failure(
                f"Error executing {extension.name}: {e}",
                code="EXECUTION_ERROR",
                message=str(e),
                recoverable=True,
                stack=traceback.format_exc(),
            )

        duration = (time.perf_counter() - start) * 1000
        if not isinstance(result, ExecutionResult):
            logger.error(
                f"[extension_registry] {extension.name} returned "
                f"{type(result).__name__}, expected ExecutionResult"
            )
            return ExecutionResult.failure(
                f"Error executing {extension.name}: invalid result {type(result).__name__}",
                code="EXECUTION_ERROR",
                message=f"{extension.name} returned {type(result).__name__}",
                recoverable=True,
            )

        logger.info(
            f"[extension_registry] {extension.name} completed in {duration:.1f}ms "
            f"(success={result.success}): {result.output[:100]!r}"
        )
        return result

    # -------------------------------------------------------------------------
    # Callbacks
    # -------------------------------------------------------------------------

    def apply_input_callbacks(
        self,
        messages: list[Message],
        context: RunContext,
        enabled: Collection[str] | None = None,
    ) -> list[Message]:
        """
        Run every on_input_messages hook in registration order.

        A failing hook is logged and skipped; the messages it received are
        passed on unchanged.
        """
        result = messages
        for extension in self._extensions.values():
            if ExtensionCapability.INPUT_MESSAGES not in self._capabilities[extension.name]:
                continue
            if not self._is_enabled(extension, enabled):
                continue
            try:
                result = extension.on_input_messages(result, context)
            except Exception as e:
                logger.error(
                    f"[extension_registry] on_input_messages error in {extension.name}: {e}"
                )
        return result

    def apply_output_callbacks(
        self,
        output: str,
        context: RunContext,
        enabled: Collection[str] | None = None,
    ) -> str:
        """
        Run every on_llm_output hook in registration order.

        A failing hook is logged and skipped; the text it received is
        passed on unchanged.
        """
        result = output
        for extension in self._extensions.values():
            if ExtensionCapability.LLM_OUTPUT not in self._capabilities[extension.name]:
                continue
            if not self._is_enabled(extension, enabled):
                continue
            try:
                result = extension.on_llm_output(result, context)
            except Exception as e:
                logger.error(f"[extension_registry] on_llm_output error in {extension.name}: {e}")
        return result

    # -------------------------------------------------------------------------
    # Documentation
    # -------------------------------------------------------------------------

    def generate_tool_docs(self, enabled: Collection[str] | None = None) -> str:
        """
        Render tool documentation for the system prompt.

        One block per extension, in registration order.
        """
        docs = ["# Available Tools\n"]
        for extension in self._extensions.values():
            if self._is_enabled(extension, enabled):
                docs.append(extension.to_doc())
        return "\n".join(docs)

    def stats(self) -> dict[str, Any]:
        """Registry statistics for observability."""
        return {
            "extension_count": len(self._extensions),
            "extensions": [
                {"name": e.name, "tag": e.trigger_tag.lower()} for e in self._extensions.values()
            ],
        }

    @staticmethod
    def _is_enabled(extension: Extension, enabled: Collection[str] | None) -> bool:
        return enabled is None or extension.name in enabled

    def __len__(self) -> int:
        return len(self._extensions)

    def __contains__(self, name: str) -> bool:
        return name in self._extensions

    def __repr__(self) -> str:
        return f"<ExtensionRegistry extensions={list(self._extensions.keys())}>"
