"""Tests for store/ and core/conversations.py."""

from __future__ import annotations

from pathlib import Path

import pytest

from relay.core.conversations import ConversationLedger
from relay.store import FileContextStore, MemoryContextStore, build_store
from relay.store.base import agent_chat_key, check_count_key


class TestKeys:
    def test_agent_chat_key(self):
        assert agent_chat_key("abc") == "agent_chat:abc"

    def test_check_count_key(self):
        assert check_count_key("c1") == "check_count:c1"


class TestMemoryContextStore:
    @pytest.mark.asyncio
    async def test_get_set_delete(self):
        store = MemoryContextStore()
        assert await store.get("k") is None
        await store.set("k", "v")
        assert await store.get("k") == "v"
        await store.delete("k")
        assert await store.get("k") is None

    @pytest.mark.asyncio
    async def test_delete_missing_is_noop(self):
        store = MemoryContextStore()
        await store.delete("missing")


class TestFileContextStore:
    @pytest.mark.asyncio
    async def test_persists_across_instances(self, tmp_path: Path):
        first = FileContextStore(tmp_path, "session-a")
        await first.set("agent_chat:x", "chat-1")

        second = FileContextStore(tmp_path, "session-a")
        assert await second.get("agent_chat:x") == "chat-1"
        assert (tmp_path / "session-a.yaml").exists()

    @pytest.mark.asyncio
    async def test_sessions_are_isolated(self, tmp_path: Path):
        await FileContextStore(tmp_path, "one").set("agent_chat:x", "chat-1")
        assert await FileContextStore(tmp_path, "two").get("agent_chat:x") is None

    @pytest.mark.asyncio
    async def test_delete(self, tmp_path: Path):
        store = FileContextStore(tmp_path, "s")
        await store.set("a", "1")
        await store.set("b", "2")
        await store.delete("a")
        assert await store.get("a") is None
        assert await store.get("b") == "2"

    @pytest.mark.asyncio
    async def test_corrupt_file_reads_as_empty(self, tmp_path: Path):
        (tmp_path / "s.yaml").write_text("agent_chat:x: [unclosed\n", encoding="utf-8")
        store = FileContextStore(tmp_path, "s")
        assert await store.get("agent_chat:x") is None

        await store.set("agent_chat:x", "chat-2")
        assert await FileContextStore(tmp_path, "s").get("agent_chat:x") == "chat-2"

    @pytest.mark.asyncio
    async def test_non_mapping_file_reads_as_empty(self, tmp_path: Path):
        (tmp_path / "s.yaml").write_text("- just\n- a list\n", encoding="utf-8")
        assert await FileContextStore(tmp_path, "s").get("0") is None

    @pytest.mark.asyncio
    async def test_write_leaves_no_temp_files(self, tmp_path: Path):
        store = FileContextStore(tmp_path, "s")
        await store.set("a", "1")
        await store.delete("a")
        assert sorted(p.name for p in tmp_path.iterdir()) == ["s.yaml"]

    def test_session_id_sanitized(self, tmp_path: Path):
        store = FileContextStore(tmp_path, "../../etc/passwd")
        assert store.path.parent == tmp_path


class TestBuildStore:
    def test_memory_backend(self):
        store = build_store({"store": {"backend": "memory"}}, "s")
        assert isinstance(store, MemoryContextStore)

    def test_file_backend_relative_to_project(self, tmp_path: Path):
        store = build_store({"store": {"backend": "file", "path": ".relay/sessions"}}, "s", tmp_path)
        assert isinstance(store, FileContextStore)
        assert store.path == tmp_path / ".relay" / "sessions" / "s.yaml"

    def test_unknown_backend_raises(self):
        with pytest.raises(ValueError, match="Unknown"):
            build_store({"store": {"backend": "redis"}}, "s")


class TestConversationLedger:
    @pytest.mark.asyncio
    async def test_remember_resets_count(self):
        store = MemoryContextStore({check_count_key("c1"): "7"})
        ledger = ConversationLedger(store)
        await ledger.remember("agent", "c1")
        assert await ledger.chat_id_for("agent") == "c1"
        assert await ledger.check_count("c1") == 0

    @pytest.mark.asyncio
    async def test_increment(self):
        ledger = ConversationLedger(MemoryContextStore())
        assert await ledger.increment_checks("c1") == 1
        assert await ledger.increment_checks("c1") == 2
        assert await ledger.check_count("c1") == 2

    @pytest.mark.asyncio
    async def test_bad_values_read_as_zero(self):
        store = MemoryContextStore({check_count_key("a"): "oops", check_count_key("b"): "-4"})
        ledger = ConversationLedger(store)
        assert await ledger.check_count("a") == 0
        assert await ledger.check_count("b") == 0

    @pytest.mark.asyncio
    async def test_forget_keeps_check_count(self):
        store = MemoryContextStore()
        ledger = ConversationLedger(store)
        await ledger.remember("agent", "c1")
        await ledger.forget("agent")
        assert await ledger.chat_id_for("agent") is None
        assert store.data[check_count_key("c1")] == "0"
