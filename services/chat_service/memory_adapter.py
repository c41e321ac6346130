"""
Memory adapter - bridges the durable conversation store to the linear message
list the model sees.

The adapter is bound to one caller identity and is cheap to build; create one
per request.
"""

from typing import List, Optional

from services.chat_service.conversation_store import ConversationStore
from services.chat_service.models import Message, MessageRole, UserContext
from utils.logging_config import get_logger


class MemoryAdapter:
    """
    Loads the working set (summary + active messages) and persists new turns.
    Archiving is driven by the summarizing window, not by this class.
    """

    def __init__(self, store: ConversationStore, user: UserContext):
        self.logger = get_logger(__name__)
        self.store = store
        self.user = user

    def load_working_set(self, conversation_id: str) -> List[Message]:
        """
        Build the list handed to the model

        Args:
            conversation_id: Conversation identifier

        Returns:
            Summary message (if any) followed by active, non-system, non-noise messages
        """
        result: List[Message] = []

        summary = self.store.get_summary(self.user, conversation_id)
        if summary:
            result.append(Message.summary(summary))

        # Persisted system prompts are skipped so stale prompt versions never come back;
        # the live system prompt is injected by the caller each turn.
        for message in self.store.get_active_messages(self.user, conversation_id):
            if message.role is MessageRole.SYSTEM or message.is_noise:
                continue
            result.append(message)

        return result

    def persist_new_turns(self, conversation_id: str, messages: List[Message]) -> List[Message]:
        """
        Store the turns of ``messages`` that the store does not hold yet

        Args:
            conversation_id: Conversation identifier
            messages: Full list the model framework now holds

        Returns:
            Messages that were actually written
        """
        # Writes create the conversation lazily, the same way add_message does
        self.store.create(self.user, conversation_id)
        # Each stored message accounts for one entry, so a repeated turn is still written
        unmatched = self.store.get_active_messages(self.user, conversation_id)
        persisted = []

        for message in messages:
            if message.is_summary or message.role is MessageRole.SYSTEM or message.is_noise:
                continue
            match = next(
                (i for i, existing in enumerate(unmatched) if existing.same_content(message)), None
            )
            if match is not None:
                del unmatched[match]
                continue
            stored = self.store.add_message(self.user, conversation_id, message.role, message.text)
            persisted.append(stored)

        if persisted:
            self.logger.debug(f"Persisted {len(persisted)} new message(s) to conversation {conversation_id}")
        return persisted

    def archive(self, conversation_id: str, message_ids: List[str], summary: str) -> None:
        """Archive summarized messages and replace the summary in one store operation"""
        self.store.archive_and_summarize(self.user, conversation_id, message_ids, summary)

    def get_active_message_ids(self, conversation_id: str) -> List[str]:
        return self.store.get_active_message_ids(self.user, conversation_id)

    def get_full_history(self, conversation_id: str) -> List[Message]:
        """Full history for UI display, archived messages included"""
        return self.store.get_full_history(self.user, conversation_id)

    def get_summary(self, conversation_id: str) -> Optional[str]:
        return self.store.get_summary(self.user, conversation_id)

    def clear(self, conversation_id: str) -> None:
        self.store.clear(self.user, conversation_id)
