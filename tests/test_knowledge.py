"""
Tests for the Knowledge Store and Session Digest Store.
"""

import re
from datetime import UTC, datetime
from unittest.mock import patch

import pytest

from confucius.knowledge import (
    KNOWLEDGE_HEADER,
    KnowledgeStore,
    SessionDigestStore,
    digest_filename,
    format_rule,
)


@pytest.fixture
def store(tmp_path):
    return KnowledgeStore(tmp_path / ".ralph" / "knowledge.md")


class TestKnowledgeStore:
    """Tests for the append-only rule store."""

    @pytest.mark.asyncio
    async def test_fresh_store_loads_empty(self, store):
        assert await store.load_rules() == ""
        assert await store.has_rules() is False

    @pytest.mark.asyncio
    async def test_add_rule_then_load_contains_it(self, store):
        assert await store.add_rule("Always check X") is True

        rules = await store.load_rules()

        assert "Always check X" in rules
        assert await store.has_rules() is True

    @pytest.mark.asyncio
    async def test_first_write_creates_header_and_directories(self, store):
        await store.add_rule("Rule one")

        content = store.path.read_text(encoding="utf-8")

        assert content.startswith(KNOWLEDGE_HEADER)
        assert re.search(r"\n## Rule \([^)]+\)\nRule one\n", content)

    @pytest.mark.asyncio
    async def test_rules_are_appended_in_order_without_dedup(self, store):
        await store.add_rule("First")
        await store.add_rule("Second")
        await store.add_rule("First")

        content = await store.load_rules()

        assert content.count(KNOWLEDGE_HEADER) == 1
        assert content.count("## Rule (") == 3
        assert content.index("First") < content.index("Second")
        assert content.count("First") == 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize("rule", ["", "   ", "\n\t"])
    async def test_blank_rules_rejected(self, store, rule):
        assert await store.add_rule(rule) is False
        assert not store.path.exists()

    @pytest.mark.asyncio
    async def test_read_error_degrades_to_empty(self, tmp_path):
        directory = tmp_path / "is_a_directory"
        directory.mkdir()
        store = KnowledgeStore(directory)

        assert await store.load_rules() == ""

    @pytest.mark.asyncio
    async def test_undecodable_file_degrades_to_empty(self, store):
        store.path.parent.mkdir(parents=True)
        store.path.write_bytes(b"# KB\n\xff\xfe broken")

        assert await store.load_rules() == ""
        assert await store.has_rules() is False

    @pytest.mark.asyncio
    async def test_write_error_is_logged_not_raised(self, store):
        with patch.object(KnowledgeStore, "_append", side_effect=PermissionError("read-only")):
            assert await store.add_rule("Never written") is False

    @pytest.mark.asyncio
    async def test_clear_resets_to_header(self, store):
        await store.add_rule("Temporary")

        await store.clear()

        assert await store.load_rules() == KNOWLEDGE_HEADER
        assert await store.has_rules() is False

    def test_format_rule(self):
        timestamp = datetime(2026, 1, 2, 3, 4, 5, tzinfo=UTC)

        entry = format_rule("  Check exit codes  ", timestamp)

        assert entry == "\n## Rule (2026-01-02T03:04:05+00:00)\nCheck exit codes\n"


class TestSessionDigestStore:
    """Tests for session digest files."""

    def test_filename_has_no_colons_or_dots_in_timestamp(self):
        timestamp = datetime(2026, 1, 2, 3, 4, 5, 678000, tzinfo=UTC)

        name = digest_filename(timestamp)

        assert name == "session-2026-01-02T03-04-05-678000+00-00.md"

    @pytest.mark.asyncio
    async def test_save_writes_digest_verbatim(self, tmp_path):
        digests = SessionDigestStore(tmp_path / "sessions")

        path = await digests.save("# Session Summary\n\nAll good.")

        assert path.parent == tmp_path / "sessions"
        assert path.read_text(encoding="utf-8") == "# Session Summary\n\nAll good."
        assert await digests.list_digests() == [path]

    @pytest.mark.asyncio
    async def test_list_digests_on_missing_directory(self, tmp_path):
        digests = SessionDigestStore(tmp_path / "missing")

        assert await digests.list_digests() == []
