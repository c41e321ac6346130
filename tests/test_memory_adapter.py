"""
Tests for the memory adapter
"""

import pytest

from services.chat_service.exceptions import ForbiddenError
from services.chat_service.memory_adapter import MemoryAdapter
from services.chat_service.memory_store import InMemoryConversationStore
from services.chat_service.models import SUMMARY_PREFIX, Message, MessageRole, UserContext


USER = UserContext(device_id="device-1")


class TestMemoryAdapter:
    """Test loading and persisting the working set"""

    def setup_method(self):
        self.store = InMemoryConversationStore()
        self.adapter = MemoryAdapter(self.store, USER)

    def test_working_set_of_new_conversation_is_empty(self):
        self.store.create(USER, "c1")

        assert self.adapter.load_working_set("c1") == []

    def test_working_set_starts_with_summary(self):
        first = self.store.add_message(USER, "c1", MessageRole.USER, "old question")
        self.store.add_message(USER, "c1", MessageRole.AI, "recent answer")
        self.store.archive_and_summarize(USER, "c1", [first.id], "user asked an old question")

        working_set = self.adapter.load_working_set("c1")

        assert working_set[0].role is MessageRole.SYSTEM
        assert working_set[0].text == SUMMARY_PREFIX + "user asked an old question"
        assert [m.text for m in working_set[1:]] == ["recent answer"]

    def test_working_set_excludes_system_and_noise(self):
        self.store.add_message(USER, "c1", MessageRole.SYSTEM, "You are an old prompt.")
        self.store.add_message(USER, "c1", MessageRole.USER, "hello")
        self.store.add_message(USER, "c1", MessageRole.AI, "ToolExecutionResultMessage { id = 1 }")
        self.store.add_message(USER, "c1", MessageRole.AI, "   ")
        self.store.add_message(USER, "c1", MessageRole.AI, "hi there")

        working_set = self.adapter.load_working_set("c1")

        assert [m.text for m in working_set] == ["hello", "hi there"]

    def test_persist_new_turns_creates_conversation(self):
        persisted = self.adapter.persist_new_turns("c1", [Message.user("hello")])

        assert [m.text for m in persisted] == ["hello"]
        assert [m.text for m in self.store.get_active_messages(USER, "c1")] == ["hello"]

    def test_persist_new_turns_is_idempotent(self):
        messages = [Message.user("hello"), Message.ai("hi")]

        self.adapter.persist_new_turns("c1", messages)
        again = self.adapter.persist_new_turns("c1", messages + [Message.user("how are you?")])

        assert [m.text for m in again] == ["how are you?"]
        assert [m.text for m in self.store.get_active_messages(USER, "c1")] == [
            "hello", "hi", "how are you?"
        ]

    def test_repeated_turns_are_each_persisted(self):
        self.adapter.persist_new_turns("c1", [Message.user("ok"), Message.ai("sure")])

        self.adapter.persist_new_turns("c1", [
            Message.user("ok"), Message.ai("sure"), Message.user("ok"), Message.ai("sure")
        ])

        assert [m.text for m in self.store.get_active_messages(USER, "c1")] == ["ok", "sure", "ok", "sure"]

    def test_persist_skips_summary_system_and_noise(self):
        messages = [
            Message.summary("earlier talk"),
            Message.system("You are helpful."),
            Message.ai("ToolExecutionResultMessage { result = 42 }"),
            Message.user(""),
            Message.user("real question"),
        ]

        persisted = self.adapter.persist_new_turns("c1", messages)

        assert [m.text for m in persisted] == ["real question"]

    def test_archive_passes_through_to_store(self):
        first = self.store.add_message(USER, "c1", MessageRole.USER, "one")
        self.store.add_message(USER, "c1", MessageRole.AI, "two")

        self.adapter.archive("c1", [first.id], "summary")

        assert self.adapter.get_summary("c1") == "summary"
        assert self.adapter.get_active_message_ids("c1") == [
            m.id for m in self.store.get_active_messages(USER, "c1")
        ]
        assert len(self.adapter.get_full_history("c1")) == 2

    def test_adapter_enforces_ownership(self):
        self.store.add_message(USER, "c1", MessageRole.USER, "mine")
        intruder = MemoryAdapter(self.store, UserContext(device_id="someone-else"))

        with pytest.raises(ForbiddenError):
            intruder.load_working_set("c1")
        with pytest.raises(ForbiddenError):
            intruder.persist_new_turns("c1", [Message.user("hijack")])

    def test_clear(self):
        self.store.add_message(USER, "c1", MessageRole.USER, "one")

        self.adapter.clear("c1")

        assert self.adapter.load_working_set("c1") == []
