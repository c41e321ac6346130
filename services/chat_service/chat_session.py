"""
Chat session - runs one conversational turn end to end.

Each turn rebuilds the memory adapter and summarizing window from the store,
so nothing but the ownership cache outlives a request.
"""

from typing import List, Optional

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage

from infrastructure.resilience.retry_service import retry_with_backoff
from services.ai_service.summarizer import response_text
from services.chat_service.attachment_extractor import extract_from_text
from services.chat_service.conversation_store import ConversationStore
from services.chat_service.memory_adapter import MemoryAdapter
from services.chat_service.models import Attachment, Message, MessageRole, UserContext
from services.chat_service.summarizing_window import SummarizingWindow
from services.document_service.context_builder import DocumentContextBuilder
from utils.logging_config import get_error_tracker, get_logger, log_model_usage


DOCUMENT_TYPE = "document"


def latest_attachment_of_type(attachments: Optional[List[Attachment]], attachment_type: str) -> Optional[Attachment]:
    """Last attachment of the given type that carries a URL"""
    for attachment in reversed(attachments or []):
        if attachment is not None and attachment.normalized_type == attachment_type and attachment.url:
            return attachment
    return None


class ChatSession:
    """
    Orchestrates a chat turn for one caller: memory, document grounding and the model call
    """

    def __init__(
        self,
        store: ConversationStore,
        user: UserContext,
        chat_model: BaseChatModel,
        token_estimator,
        summarizer,
        document_builder: Optional[DocumentContextBuilder] = None,
        config=None
    ):
        if config is None:
            from config.app_config import get_config
            config = get_config()

        self.logger = get_logger(__name__)
        self.store = store
        self.user = user
        self.chat_model = chat_model
        self.token_estimator = token_estimator
        self.summarizer = summarizer
        self.document_builder = document_builder
        self.config = config

    def process_turn(self, conversation_id: str, text: str,
                     attachments: Optional[List[Attachment]] = None) -> str:
        """
        Answer a user message and record both sides of the exchange

        Args:
            conversation_id: Conversation identifier, created on first use
            text: User message
            attachments: Attachments uploaded with this message

        Returns:
            Assistant reply text

        Raises:
            ForbiddenError: If the conversation belongs to someone else
            PersistenceError: If the store cannot be written
        """
        attachments = list(attachments or [])
        self.store.create(self.user, conversation_id)

        window = self._build_window(conversation_id)
        window.add(Message.user(text))
        if attachments:
            self.store.attach_to_latest_user_message(self.user, conversation_id, attachments)

        model_text = self._enrich_with_document_context(conversation_id, text, attachments)
        prompt = self._to_model_messages(window.messages(), model_text)

        try:
            response = retry_with_backoff(
                lambda: self.chat_model.invoke(prompt),
                max_retries=self.config.llm.max_retries
            )
        except Exception as e:
            get_error_tracker().track_error(e, "chat model call", conversation_id=conversation_id)
            raise

        usage = getattr(response, "usage_metadata", None) or {}
        if usage:
            log_model_usage(
                self.logger,
                getattr(self.chat_model, "model_name", type(self.chat_model).__name__),
                usage.get("total_tokens", 0),
                purpose="chat"
            )

        reply = response_text(response)
        window.add(Message.ai(reply))
        return reply

    def get_history(self, conversation_id: str) -> List[Message]:
        """Full conversation history for display, archived messages included"""
        return self.store.get_full_history(self.user, conversation_id)

    def clear(self, conversation_id: str) -> None:
        self.store.clear(self.user, conversation_id)

    def _build_window(self, conversation_id: str) -> SummarizingWindow:
        return SummarizingWindow(
            conversation_id,
            MemoryAdapter(self.store, self.user),
            self.token_estimator,
            self.summarizer,
            max_tokens=self.config.memory.max_token_limit
        )

    def _enrich_with_document_context(self, conversation_id: str, text: str,
                                      attachments: List[Attachment]) -> str:
        if self.document_builder is None:
            return text

        document_url = self._find_latest_document_url(conversation_id, text, attachments)
        if document_url is None:
            return text

        explicit_document = latest_attachment_of_type(attachments, DOCUMENT_TYPE) is not None
        if not explicit_document and not self.document_builder.is_likely_document_question(text):
            return text

        context = self.document_builder.build_context(document_url, text)
        if context is None:
            return text

        self.logger.info(f"Grounding reply in document {document_url} for conversation {conversation_id}")
        return (
            text
            + "\n\nDocument source URL: " + document_url
            + "\n\nDocument context snippets:\n" + context
            + "\n\nUse the provided document context to answer accurately."
        )

    def _find_latest_document_url(self, conversation_id: str, text: str,
                                  attachments: List[Attachment]) -> Optional[str]:
        # Uploaded with this turn, then linked in this message, then anywhere in history
        attachment = latest_attachment_of_type(attachments, DOCUMENT_TYPE)
        if attachment is None:
            attachment = latest_attachment_of_type(extract_from_text(text), DOCUMENT_TYPE)
        if attachment is not None:
            return attachment.url

        for message in reversed(self.store.get_full_history(self.user, conversation_id)):
            attachment = latest_attachment_of_type(message.attachments, DOCUMENT_TYPE)
            if attachment is not None:
                return attachment.url
        return None

    def _to_model_messages(self, messages: List[Message], model_text: str) -> List[BaseMessage]:
        """Live system prompt, then the working set with the newest user turn swapped for model_text"""
        last_user_index = max(
            (i for i, m in enumerate(messages) if m.role is MessageRole.USER), default=-1
        )

        result: List[BaseMessage] = [SystemMessage(content=self.config.llm.system_prompt)]
        for i, message in enumerate(messages):
            content = model_text if i == last_user_index else (message.text or "")
            if message.role is MessageRole.USER:
                result.append(HumanMessage(content=content))
            elif message.role is MessageRole.AI:
                result.append(AIMessage(content=content))
            else:
                result.append(SystemMessage(content=content))
        return result


def create_chat_session(user: UserContext) -> ChatSession:
    """
    Build a chat session wired to the configured store, models and document pipeline

    Args:
        user: Caller identity

    Returns:
        ChatSession ready to process turns
    """
    from infrastructure.external.openai_client import get_openai_client
    from services.ai_service.summarizer import ChatModelSummarizer
    from services.ai_service.token_estimator import TiktokenEstimator
    from services.chat_service.conversation_store import get_conversation_store
    from services.document_service.context_builder import get_document_context_builder

    return ChatSession(
        store=get_conversation_store(),
        user=user,
        chat_model=get_openai_client().get_chat_client(),
        token_estimator=TiktokenEstimator(),
        summarizer=ChatModelSummarizer(),
        document_builder=get_document_context_builder()
    )
