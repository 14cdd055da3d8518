"""
Confucius Agent Layer.

- Orchestrator: iteration state machine (model -> actions -> results -> loop)
- WorkingMemory: session / entry / runnable message scopes with token counters
- RunContext: run-scoped context handed to extensions
- OrchestratorState: what a run returns

Architecture:
    ┌──────────────────────────────────────────────────────┐
    │                    Orchestrator                       │
    │                        │                              │
    │   WorkingMemory: session ++ entry ++ runnable         │
    │                        │                              │
    │   [compress runnable if over threshold]               │
    │                        │                              │
    │   LLM invoke → ExtensionRegistry.parse_output         │
    │                        │                              │
    │              ┌─────────┴─────────┐                    │
    │              ▼                   ▼                    │
    │         no actions         actions (in order)         │
    │              │                   │                    │
    │          [Done]        execute → <result> message     │
    │                                  │                    │
    │                    [terminate? Done : loop back]      │
    └──────────────────────────────────────────────────────┘
                             │
          summarize → save digest → extract lesson → add rule

Usage:
    from confucius.agent import create_orchestrator

    orchestrator = create_orchestrator()
    state = await orchestrator.run("Fix the failing test")
"""

from .memory import (
    CharRatioEstimator,
    MemoryScope,
    Message,
    MessageRole,
    Note,
    TokenEstimator,
    WorkingMemory,
)
from .context import RunContext
from .state import (
    OrchestratorState,
    RunStatus,
    StateTransitionError,
    TerminationReason,
    completed_result,
    error_result,
    max_iterations_result,
)
from .orchestrator import (
    DEFAULT_SYSTEM_PROMPT,
    Orchestrator,
    create_orchestrator,
    create_provider,
    generate_session_id,
)

__all__ = [
    # Memory
    "CharRatioEstimator",
    "MemoryScope",
    "Message",
    "MessageRole",
    "Note",
    "TokenEstimator",
    "WorkingMemory",
    # Context
    "RunContext",
    # State
    "OrchestratorState",
    "RunStatus",
    "StateTransitionError",
    "TerminationReason",
    "completed_result",
    "error_result",
    "max_iterations_result",
    # Orchestrator
    "DEFAULT_SYSTEM_PROMPT",
    "Orchestrator",
    "create_orchestrator",
    "create_provider",
    "generate_session_id",
]
