"""
Confucius Extensions.

Extensions are the pluggable tools of the agent. Each listens for a
trigger tag in model output, parses it into a ParsedAction and executes it.

Usage:
    from confucius.extensions import ExtensionRegistry, FinishExtension, ThinkExtension

    registry = ExtensionRegistry()
    registry.register(ThinkExtension())
    registry.register(FinishExtension())
"""

from .base import (
    Artifact,
    ExecutionResult,
    Extension,
    ExtensionCapability,
    ExtensionError,
    ParsedAction,
)
from .finish import FinishExtension
from .registry import ExtensionRegistry, ExtensionRegistryError
from .think import ThinkExtension

__all__ = [
    # Base
    "Artifact",
    "ExecutionResult",
    "Extension",
    "ExtensionCapability",
    "ExtensionError",
    "ParsedAction",
    # Registry
    "ExtensionRegistry",
    "ExtensionRegistryError",
    # Built-ins
    "FinishExtension",
    "ThinkExtension",
]
