"""
Tests for chat turn orchestration
"""

from unittest.mock import Mock

import pytest
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

from config.app_config import AppConfig
from services.chat_service.chat_session import ChatSession
from services.chat_service.exceptions import ForbiddenError
from services.chat_service.memory_store import InMemoryConversationStore
from services.chat_service.models import Attachment, MessageRole, UserContext
from services.document_service.context_builder import DocumentContextBuilder


USER = UserContext(device_id="device-1")
DOC_URL = "https://files.example.com/cv.pdf"


class TestChatSession:
    """Test a full turn against the in-memory store"""

    def setup_method(self):
        self.store = InMemoryConversationStore()
        self.config = AppConfig()
        self.config.llm.system_prompt = "You are a careful assistant."
        self.config.llm.max_retries = 0
        self.config.memory.max_token_limit = 10000

        self.chat_model = Mock()
        self.chat_model.invoke.return_value = AIMessage(content="model reply")
        self.summarizer = Mock(return_value="summary of the chat")
        self.document_builder = Mock(spec=DocumentContextBuilder)
        self.document_builder.is_likely_document_question.return_value = False
        self.document_builder.build_context.return_value = "[1] Worked five years with Python."

    def make_session(self, user=USER, document_builder="default"):
        if document_builder == "default":
            document_builder = self.document_builder
        return ChatSession(
            store=self.store,
            user=user,
            chat_model=self.chat_model,
            token_estimator=lambda message: 10,
            summarizer=self.summarizer,
            document_builder=document_builder,
            config=self.config
        )

    def prompt(self, call_index=-1):
        return self.chat_model.invoke.call_args_list[call_index][0][0]

    def test_turn_persists_both_sides(self):
        session = self.make_session()

        reply = session.process_turn("c1", "Hello!")

        assert reply == "model reply"
        history = session.get_history("c1")
        assert [(m.role, m.text) for m in history] == [
            (MessageRole.USER, "Hello!"),
            (MessageRole.AI, "model reply"),
        ]

    def test_prompt_starts_with_live_system_prompt(self):
        session = self.make_session()
        session.process_turn("c1", "First question")

        session.process_turn("c1", "Second question")

        prompt = self.prompt()
        assert isinstance(prompt[0], SystemMessage)
        assert prompt[0].content == "You are a careful assistant."
        assert [type(m) for m in prompt[1:]] == [HumanMessage, AIMessage, HumanMessage]
        assert prompt[-1].content == "Second question"

    def test_uploaded_document_grounds_the_reply(self):
        session = self.make_session()
        attachment = Attachment(type="document", url=DOC_URL, mime_type="application/pdf")

        session.process_turn("c1", "Any thoughts?", attachments=[attachment])

        self.document_builder.build_context.assert_called_once_with(DOC_URL, "Any thoughts?")
        model_text = self.prompt()[-1].content
        assert model_text.startswith("Any thoughts?\n\nDocument source URL: " + DOC_URL)
        assert "Document context snippets:\n[1] Worked five years with Python." in model_text
        assert model_text.endswith("Use the provided document context to answer accurately.")

        # Storage keeps what the user typed, with the upload attached
        stored = session.get_history("c1")[0]
        assert stored.text == "Any thoughts?"
        assert [a.url for a in stored.attachments] == [DOC_URL]

    def test_document_from_history_is_used_for_document_questions(self):
        session = self.make_session()
        session.process_turn("c1", "Here is my resume " + DOC_URL)
        self.document_builder.is_likely_document_question.return_value = True

        session.process_turn("c1", "What does my CV say about Python?")

        self.document_builder.build_context.assert_called_with(DOC_URL, "What does my CV say about Python?")
        assert "Document source URL: " + DOC_URL in self.prompt()[-1].content

    def test_other_questions_are_not_grounded(self):
        session = self.make_session()
        session.process_turn("c1", "Here is a file " + DOC_URL)
        self.document_builder.build_context.reset_mock()
        self.document_builder.is_likely_document_question.return_value = False

        session.process_turn("c1", "Tell me a joke")

        self.document_builder.build_context.assert_not_called()
        assert self.prompt()[-1].content == "Tell me a joke"

    def test_unavailable_document_leaves_message_unchanged(self):
        self.document_builder.build_context.return_value = None
        session = self.make_session()

        session.process_turn("c1", "Summarize please", attachments=[Attachment(type="document", url=DOC_URL)])

        assert self.prompt()[-1].content == "Summarize please"

    def test_session_without_document_builder(self):
        session = self.make_session(document_builder=None)

        session.process_turn("c1", "Summarize " + DOC_URL)

        assert self.prompt()[-1].content == "Summarize " + DOC_URL

    def test_long_conversation_is_summarized(self):
        self.config.memory.max_token_limit = 40
        session = self.make_session()

        for i in range(4):
            session.process_turn("c1", f"question {i}")

        self.summarizer.assert_called()
        assert self.store.get_summary(USER, "c1") == "summary of the chat"
        prompt = self.prompt()
        assert prompt[1].content.startswith("Summary of earlier conversation:\n")
        # Full history still holds every message
        assert len(session.get_history("c1")) == 8

    def test_model_failure_propagates_after_user_message_is_saved(self):
        self.chat_model.invoke.side_effect = RuntimeError("model unavailable")
        session = self.make_session()

        with pytest.raises(RuntimeError):
            session.process_turn("c1", "Hello?")

        assert [m.text for m in session.get_history("c1")] == ["Hello?"]

    def test_other_user_cannot_continue_conversation(self):
        self.make_session().process_turn("c1", "private")
        intruder = self.make_session(user=UserContext(device_id="intruder"))

        with pytest.raises(ForbiddenError):
            intruder.process_turn("c1", "let me in")

        self.chat_model.invoke.assert_called_once()

    def test_clear(self):
        session = self.make_session()
        session.process_turn("c1", "Hello!")

        session.clear("c1")

        assert session.get_history("c1") == []
