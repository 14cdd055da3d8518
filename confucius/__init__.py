"""
Confucius - an autonomous task agent that learns from its own sessions.

Confucius repeatedly invokes a language model, reads tagged tool
invocations out of its output, executes them and feeds the results back
until the task is done. Every run ends with a short self-review that
appends one learned rule to a knowledge file injected into later runs.

- **Orchestrator**: bounded iteration state machine
- **Extensions**: pluggable tools triggered by `<tag>...</tag>` in model output
- **Working Memory**: session / entry / runnable scopes with compression
- **Self-Improvement**: session digests, lesson extraction, knowledge store

Quick Start:
    >>> from confucius import create_orchestrator
    >>>
    >>> orchestrator = create_orchestrator()
    >>> state = await orchestrator.run("Write a haiku about tests")
    >>> print(state.termination_reason.value, state.result.output)
"""

__version__ = "0.1.0"

# Agent first: sub-agents import working memory from confucius.agent
from confucius.agent import (
    Message,
    Orchestrator,
    OrchestratorState,
    RunContext,
    TerminationReason,
    WorkingMemory,
    create_orchestrator,
)
from confucius.config import AgentSettings, ModelConfig, RunConfig, load_settings
from confucius.extensions import (
    ExecutionResult,
    Extension,
    ExtensionRegistry,
    ExtensionRegistryError,
    ParsedAction,
)
from confucius.knowledge import KnowledgeStore, SessionDigestStore

__all__ = [
    "__version__",
    # Agent
    "Message",
    "Orchestrator",
    "OrchestratorState",
    "RunContext",
    "TerminationReason",
    "WorkingMemory",
    "create_orchestrator",
    # Config
    "AgentSettings",
    "ModelConfig",
    "RunConfig",
    "load_settings",
    # Extensions
    "ExecutionResult",
    "Extension",
    "ExtensionRegistry",
    "ExtensionRegistryError",
    "ParsedAction",
    # Knowledge
    "KnowledgeStore",
    "SessionDigestStore",
]
