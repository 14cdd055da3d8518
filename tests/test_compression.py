"""
Tests for the Compression Agent.

Tests cover:
- No-op compression for short scopes
- 1 + K result shape with the summary first
- Model-backed and fallback summaries
- Applying the result to working memory
"""

from unittest.mock import AsyncMock

import pytest

from confucius.agent.memory import MemoryScope, Message, WorkingMemory
from confucius.subagents.compression import (
    SUMMARY_PREFIX,
    CompressionAgent,
    build_summary_message,
)


def make_trace(count: int) -> list[Message]:
    messages = []
    for i in range(count):
        if i % 2 == 0:
            messages.append(Message(role="assistant", content=f"<bash>step {i}</bash>"))
        else:
            messages.append(
                Message(role="tool", content=f"<result>step {i} completed</result>", tool_name="bash")
            )
    return messages


class StubChatModel:
    """Returns a fixed reply and records prompts."""

    def __init__(self, reply: str = "- did things"):
        self.reply = reply
        self.calls: list[tuple[str, str]] = []

    async def chat(self, system_prompt: str, user_message: str) -> str:
        self.calls.append((system_prompt, user_message))
        return self.reply


# =============================================================================
# Compress Tests
# =============================================================================


class TestCompress:
    """Tests for CompressionAgent.compress."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("count", [0, 1, 2])
    async def test_two_or_fewer_messages_is_noop(self, count):
        model = StubChatModel()
        agent = CompressionAgent(model=model, keep_recent=0)
        messages = make_trace(count)

        result = await agent.compress(messages)

        assert result == messages
        assert model.calls == []

    @pytest.mark.asyncio
    async def test_not_more_than_keep_recent_is_noop(self):
        agent = CompressionAgent(model=StubChatModel(), keep_recent=4)
        messages = make_trace(4)

        assert await agent.compress(messages) == messages

    @pytest.mark.asyncio
    @pytest.mark.parametrize("count,keep", [(5, 4), (10, 4), (3, 0), (8, 2)])
    async def test_result_is_summary_plus_recent_tail(self, count, keep):
        agent = CompressionAgent(model=StubChatModel(), keep_recent=keep)
        messages = make_trace(count)

        result = await agent.compress(messages)

        assert len(result) == 1 + keep
        assert result[0].role == "system"
        assert result[0].content.startswith(SUMMARY_PREFIX)
        assert result[1:] == messages[count - keep :]

    @pytest.mark.asyncio
    async def test_keep_recent_override(self):
        agent = CompressionAgent(model=StubChatModel(), keep_recent=4)

        result = await agent.compress(make_trace(6), keep_recent=1)

        assert len(result) == 2

    @pytest.mark.asyncio
    async def test_only_older_messages_are_summarized(self):
        model = StubChatModel()
        agent = CompressionAgent(model=model, keep_recent=2)
        messages = make_trace(5)

        await agent.compress(messages)

        _, user_message = model.calls[0]
        assert "step 0" in user_message
        assert "step 2" in user_message
        assert "step 3" not in user_message

    def test_negative_keep_recent_rejected(self):
        with pytest.raises(ValueError):
            CompressionAgent(keep_recent=-1)


# =============================================================================
# Summarize Tests
# =============================================================================


class TestSummarize:
    """Tests for CompressionAgent.summarize."""

    @pytest.mark.asyncio
    async def test_uses_model_reply(self):
        agent = CompressionAgent(model=StubChatModel(reply="  - key decision  "))

        summary = await agent.summarize(make_trace(3))

        assert summary == "- key decision"

    @pytest.mark.asyncio
    async def test_fallback_without_model(self):
        agent = CompressionAgent()

        summary = await agent.summarize(make_trace(4))

        assert "Executed 4 steps" in summary
        assert "Tools used: bash" in summary
        assert "2 successful operations" in summary

    @pytest.mark.asyncio
    async def test_fallback_when_model_raises(self):
        model = AsyncMock()
        model.chat.side_effect = RuntimeError("rate limited")
        agent = CompressionAgent(model=model)

        summary = await agent.summarize(make_trace(3))

        assert "Executed 3 steps" in summary

    @pytest.mark.asyncio
    async def test_fallback_when_model_returns_blank(self):
        agent = CompressionAgent(model=StubChatModel(reply="   "))

        summary = await agent.summarize(make_trace(3))

        assert summary.startswith("• Executed 3 steps")

    def test_format_trace_truncates_long_content(self):
        trace = CompressionAgent.format_trace([Message(role="assistant", content="x" * 800)])

        assert "[1] ASSISTANT:" in trace
        assert "...[truncated]" in trace
        assert "x" * 501 not in trace

    def test_fallback_counts_errors(self):
        messages = [
            Message(role="tool", content="<result>Error: not found</result>", tool_name="read"),
            Message(role="tool", content="<result>ok</result>", tool_name="write"),
        ]

        summary = CompressionAgent.fallback_summary(messages)

        assert "0 successful operations, 1 errors" in summary
        assert "Tools used: read, write" in summary


# =============================================================================
# Memory Integration Tests
# =============================================================================


class TestCompressionWithMemory:
    """Compression result applied to working memory."""

    @pytest.mark.asyncio
    async def test_session_and_entry_untouched(self):
        memory = WorkingMemory()
        memory.initialize_session("system")
        memory.set_entry("task")
        for message in make_trace(7):
            memory.add_to_runnable(message)

        agent = CompressionAgent(keep_recent=4)
        memory.compress_runnable(await agent.compress(memory.runnable_messages))

        runnable = memory.runnable_messages
        assert len(runnable) == 5
        assert runnable[0].content.startswith(SUMMARY_PREFIX)
        assert [m.content for m in memory.get_messages_by_scope(MemoryScope.SESSION)] == ["system"]
        assert [m.content for m in memory.get_messages_by_scope(MemoryScope.ENTRY)] == ["task"]
        assert memory.token_count() == sum(
            memory.token_count(scope) for scope in MemoryScope
        )

    def test_build_summary_message(self):
        message = build_summary_message("- a\n- b")

        assert message.role == "system"
        assert message.content == f"{SUMMARY_PREFIX}\n- a\n- b"
