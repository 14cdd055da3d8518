"""
Orchestrator (Iteration State Machine).

The Orchestrator runs the agent loop:
1. Invoke the model on session ++ entry ++ runnable memory
2. Parse tagged actions out of the reply
3. No actions -> done; otherwise execute them in order -> loop back

State Machine:
    idle -> running -> completed | max_iterations | error

Invariants:
    - Bounded iteration (max_iterations)
    - Actions of one reply execute sequentially, in the order their tags appear
    - A terminate signal ends the run immediately, skipping later actions
    - Continuation is advisory; only termination or a reply without
      actions stop the loop early
    - Exceptions escaping the loop body end the run with reason error;
      they are surfaced on the state, never raised to the caller

Every run ends with the self-improvement pipeline, whatever the outcome:
the Session Summarizer writes a digest, the Lesson Extractor turns it into
one rule, and the Knowledge Store appends that rule for the next run.

Usage:
    registry = ExtensionRegistry()
    registry.register_all([ThinkExtension(), FinishExtension()])

    orchestrator = Orchestrator(
        llm=OpenAIProvider(model="gpt-4o-mini"),
        registry=registry,
        config=RunConfig(
            max_iterations=10,
            compression_threshold=5000,
            model=ModelConfig(provider="openai", name="gpt-4o-mini", supports_tool_use=True),
        ),
        knowledge=KnowledgeStore(".ralph/knowledge.md"),
    )

    state = await orchestrator.run("Summarize the open issues")

    if state.success:
        print(state.result.output)
    else:
        print(f"Stopped: {state.termination_reason.value}")
"""

from __future__ import annotations

import asyncio
import logging
import secrets
import string
import time
from typing import TYPE_CHECKING

from confucius.artifacts import InMemoryArtifactStore
from confucius.providers.llm.base import ChatModel
from confucius.subagents import CompressionAgent, LessonExtractor, SessionSummarizer

from .context import RunContext
from .memory import Message, WorkingMemory
from .state import (
    OrchestratorState,
    TerminationReason,
    completed_result,
    error_result,
    max_iterations_result,
)

if TYPE_CHECKING:
    from confucius.artifacts import ArtifactStore
    from confucius.config import AgentSettings, RunConfig
    from confucius.extensions import ExecutionResult, ExtensionRegistry
    from confucius.knowledge import KnowledgeStore, SessionDigestStore
    from confucius.providers.llm.base import LLMProvider

    from .memory import TokenEstimator

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT = """You are Confucius, an autonomous software agent.

Work on the task step by step. To use a tool, write its tag with the input inside, e.g.:

<think>I should check the failing test first.</think>

Tool results come back to you wrapped in <result> tags.
When the task is done, use the finish tool, or reply with plain text and no tool tags."""

_BASE36 = string.digits + string.ascii_lowercase


def _base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36[remainder])
    return "".join(reversed(digits))


def generate_session_id() -> str:
    """Session id of the form session_<base36 ms>_<6 random chars>."""
    millis = int(time.time() * 1000)
    suffix = "".join(secrets.choice(_BASE36) for _ in range(6))
    return f"session_{_base36(millis)}_{suffix}"


def format_tool_result(output: str) -> str:
    return f"<result>{output}</result>"


class Orchestrator:
    """
    Runs the agent loop with bounded iteration.

    One Orchestrator may serve many runs; every run gets its own
    WorkingMemory and RunContext, so runs never share mutable state.

    Sub-agents without a model fall back to deterministic output. When
    the main model also implements ChatModel it is used for them unless
    explicit sub-agents are given.

    Example:
        orchestrator = Orchestrator(llm=llm, registry=registry, config=config)
        state = await orchestrator.run("Fix the failing test")

        for name in state.tools_called:
            print(name)
    """

    def __init__(
        self,
        *,
        llm: LLMProvider,
        registry: ExtensionRegistry,
        config: RunConfig,
        system_prompt: str = DEFAULT_SYSTEM_PROMPT,
        artifacts: ArtifactStore | None = None,
        compression: CompressionAgent | None = None,
        summarizer: SessionSummarizer | None = None,
        lesson_extractor: LessonExtractor | None = None,
        knowledge: KnowledgeStore | None = None,
        digests: SessionDigestStore | None = None,
        estimator: TokenEstimator | None = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            llm: Model invoked once per iteration
            registry: Extensions available to the model
            config: Iteration ceiling, compression threshold, enabled extensions
            system_prompt: Base system prompt (rules and tool docs are appended)
            artifacts: Sink for artifacts produced by successful actions
            compression: Compression agent for the runnable scope
            summarizer: End-of-run digest writer
            lesson_extractor: Digest -> rule extractor
            knowledge: Rule store (rules loaded at start, lesson appended at end)
            digests: Where session digests are written
            estimator: Token estimator for working memory
        """
        chat_model = llm if isinstance(llm, ChatModel) else None

        self._llm = llm
        self._registry = registry
        self._config = config
        self._system_prompt = system_prompt
        self._artifacts = artifacts if artifacts is not None else InMemoryArtifactStore()
        self._compression = compression or CompressionAgent(model=chat_model)
        self._summarizer = summarizer or SessionSummarizer(model=chat_model)
        self._lesson_extractor = lesson_extractor or LessonExtractor(model=chat_model)
        self._knowledge = knowledge
        self._digests = digests
        self._estimator = estimator

    @property
    def config(self) -> RunConfig:
        return self._config

    @property
    def registry(self) -> ExtensionRegistry:
        return self._registry

    async def run(self, task: str) -> OrchestratorState:
        """
        Run the agent loop until the task completes or a limit is hit.

        Args:
            task: What the agent should achieve (becomes the entry scope)

        Returns:
            Final OrchestratorState; termination_reason is always set

        Raises:
            asyncio.CancelledError: If the caller cancels the run
        """
        state = OrchestratorState(session_id=generate_session_id())
        memory = WorkingMemory(estimator=self._estimator)
        context = RunContext(
            session_id=state.session_id,
            config=self._config,
            artifacts=self._artifacts,
            memory=memory,
        )

        logger.info(
            f"[orchestrator] Starting run {state.session_id}. "
            f"Task: {task[:50]}... "
            f"Max iterations: {self._config.max_iterations}"
        )

        state.start()

        try:
            system_prompt = await self._build_system_prompt()
            memory.initialize_session(system_prompt)
            memory.set_entry(task)

            await self._loop(state, memory, context, system_prompt)

        except asyncio.CancelledError:
            logger.info(f"[orchestrator] Run {state.session_id} cancelled")
            if state.termination_reason is None:
                state.terminate(TerminationReason.USER_CANCELLED)
            raise

        except Exception as e:
            logger.error(f"[orchestrator] Unexpected error: {e}", exc_info=True)
            if state.termination_reason is None:
                state.terminate(TerminationReason.ERROR, error_result(e))

        logger.info(
            f"[orchestrator] Run {state.session_id} stopped: "
            f"{state.termination_reason.value} after {state.iteration} iterations "
            f"({state.duration_ms:.0f}ms)"
        )

        await self._reflect(state, memory)
        return state

    async def _loop(
        self,
        state: OrchestratorState,
        memory: WorkingMemory,
        context: RunContext,
        system_prompt: str,
    ) -> None:
        max_iterations = self._config.max_iterations
        enabled = self._config.extension_filter

        while True:
            if state.iteration >= max_iterations:
                logger.warning(f"[orchestrator] Max iterations ({max_iterations}) reached")
                state.terminate(
                    TerminationReason.MAX_ITERATIONS,
                    max_iterations_result(max_iterations),
                )
                return

            state.iteration += 1
            context.iteration = state.iteration
            logger.info(f"[orchestrator] Iteration {state.iteration}/{max_iterations}")

            if memory.needs_compression(self._config.compression_threshold):
                await self._compress(memory)

            messages = self._registry.apply_input_callbacks(
                memory.get_messages(), context, enabled
            )
            response = await self._llm.invoke(system_prompt, messages)
            state.usage = state.usage + response.usage
            output = self._registry.apply_output_callbacks(response.content, context, enabled)

            actions = self._registry.parse_output(output, enabled)

            if not actions:
                logger.info("[orchestrator] No actions in model output, run complete")
                memory.add_to_runnable(Message(role="assistant", content=output))
                state.terminate(TerminationReason.COMPLETED, completed_result(output))
                return

            memory.add_to_runnable(Message(role="assistant", content=output))
            logger.info(
                f"[orchestrator] Executing {len(actions)} action(s): "
                f"{[extension.name for extension, _ in actions]}"
            )

            for extension, action in actions:
                result = await self._registry.execute(extension, action, context)
                state.tools_called.append(extension.name)

                memory.add_to_runnable(
                    Message(
                        role="tool",
                        content=format_tool_result(result.output),
                        tool_name=extension.name,
                    )
                )

                if result.success:
                    await self._save_artifacts(result)
                else:
                    logger.warning(
                        f"[orchestrator] {extension.name} failed: "
                        f"{result.error.message if result.error else result.output}"
                    )

                if result.terminates:
                    logger.info(f"[orchestrator] {extension.name} signalled termination")
                    state.terminate(
                        TerminationReason.COMPLETED,
                        completed_result(result.final_message),
                    )
                    return

    async def _compress(self, memory: WorkingMemory) -> None:
        runnable = memory.runnable_messages
        before = memory.token_count()

        compressed = await self._compression.compress(runnable)
        if compressed == runnable:
            logger.debug("[orchestrator] Compression skipped, nothing to summarize")
            return

        memory.compress_runnable(compressed)
        logger.info(f"[orchestrator] Compressed memory: {before} -> {memory.token_count()} tokens")

    async def _save_artifacts(self, result: ExecutionResult) -> None:
        for artifact in result.artifacts:
            try:
                artifact_id = await self._artifacts.save(artifact)
                logger.debug(f"[orchestrator] Saved artifact {artifact.name} ({artifact_id})")
            except Exception as e:
                logger.error(f"[orchestrator] Failed to save artifact {artifact.name}: {e}")

    async def _build_system_prompt(self) -> str:
        """Base prompt, then learned rules (if any), then tool docs."""
        sections = [self._system_prompt.strip()]

        if self._knowledge is not None:
            rules = await self._knowledge.load_rules()
            if rules.strip():
                sections.append(f"# Learned Rules\n\n{rules.strip()}")
                logger.info("[orchestrator] Injected learned rules into system prompt")

        sections.append(self._registry.generate_tool_docs(self._config.extension_filter))
        return "\n\n".join(sections)

    async def _reflect(self, state: OrchestratorState, memory: WorkingMemory) -> None:
        """
        Summarize the run, persist the digest and learn one rule.

        Runs for every termination reason. Failures are logged and leave
        the run's outcome untouched.
        """
        try:
            digest = await self._summarizer.summarize(memory.get_messages(), state)
        except Exception as e:
            logger.error(f"[orchestrator] Session summary failed: {e}", exc_info=True)
            return

        if self._digests is not None:
            try:
                path = await self._digests.save(digest)
                state.digest_path = str(path)
            except Exception as e:
                logger.error(f"[orchestrator] Failed to save session digest: {e}")

        try:
            lesson = await self._lesson_extractor.extract_lesson(digest)
        except Exception as e:
            logger.error(f"[orchestrator] Lesson extraction failed: {e}", exc_info=True)
            return

        if not lesson:
            return

        state.lesson = lesson
        if self._knowledge is not None:
            try:
                await self._knowledge.add_rule(lesson)
            except Exception as e:
                logger.error(f"[orchestrator] Failed to persist lesson: {e}")


# =============================================================================
# Factory Functions
# =============================================================================


def create_provider(settings: AgentSettings) -> LLMProvider:
    """Build the model provider named by settings.provider."""
    from confucius.providers.llm import AnthropicProvider, OpenAIProvider

    if settings.provider == "anthropic":
        api_key = settings.anthropic_api_key
        return AnthropicProvider(
            api_key=api_key.get_secret_value() if api_key else None,
            model=settings.model,
        )

    # openai, openai-compatible and local endpoints all speak the OpenAI API
    api_key = settings.openai_api_key
    return OpenAIProvider(
        api_key=api_key.get_secret_value() if api_key else None,
        model=settings.model,
        base_url=settings.base_url,
    )


def create_orchestrator(
    settings: AgentSettings | None = None,
    *,
    registry: ExtensionRegistry | None = None,
    llm: LLMProvider | None = None,
    system_prompt: str = DEFAULT_SYSTEM_PROMPT,
    enabled_extensions: list[str] | None = None,
) -> Orchestrator:
    """
    Create a fully configured orchestrator.

    Args:
        settings: Process settings (default: load_settings() from the environment)
        registry: Extensions to expose (default: think and finish)
        llm: Model provider (default: built from settings)
        system_prompt: Base system prompt
        enabled_extensions: Extension names taking part in runs (default: all)

    Returns:
        Orchestrator wired with sub-agents, knowledge and digest stores

    Example:
        orchestrator = create_orchestrator()
        state = await orchestrator.run("Add a README")
    """
    from confucius.config import load_settings
    from confucius.extensions import ExtensionRegistry, FinishExtension, ThinkExtension
    from confucius.knowledge import KnowledgeStore, SessionDigestStore

    settings = settings or load_settings()

    if registry is None:
        registry = ExtensionRegistry()
        registry.register_all([ThinkExtension(), FinishExtension()])

    provider = llm or create_provider(settings)
    chat_model = provider if isinstance(provider, ChatModel) else None

    return Orchestrator(
        llm=provider,
        registry=registry,
        config=settings.run_config(enabled_extensions),
        system_prompt=system_prompt,
        compression=CompressionAgent(model=chat_model, keep_recent=settings.keep_recent),
        summarizer=SessionSummarizer(model=chat_model),
        lesson_extractor=LessonExtractor(model=chat_model),
        knowledge=KnowledgeStore(settings.resolved_knowledge_path()),
        digests=SessionDigestStore(settings.resolved_sessions_directory()),
    )
