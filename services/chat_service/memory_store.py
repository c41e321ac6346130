"""
In-process conversation store, used for development and tests.
All state lives behind a single re-entrant lock.
"""

from dataclasses import replace
import threading
import time
from typing import Callable, Dict, List, Optional

from services.chat_service.attachment_extractor import extract_from_text
from services.chat_service.conversation_store import (
    ConversationStore,
    check_owner,
    new_attachments,
    title_or_default,
)
from services.chat_service.exceptions import NotFoundError
from services.chat_service.models import (
    Attachment,
    Conversation,
    Message,
    MessageRole,
    UserContext,
    utc_now,
)
from utils.logging_config import log_conversation_event


class InMemoryConversationStore(ConversationStore):
    """
    Conversation store kept in dictionaries.
    Returned objects are copies, so callers cannot mutate stored state.
    """

    def __init__(self, owner_cache_ttl_seconds: float = 60.0,
                 clock: Callable[[], float] = time.monotonic):
        super().__init__(owner_cache_ttl_seconds, clock)
        self._conversations: Dict[str, Conversation] = {}
        self._messages: Dict[str, List[Message]] = {}
        self._lock = threading.RLock()

    def _require_owned(self, user: UserContext, conversation_id: str) -> Conversation:
        conversation = self._conversations.get(conversation_id)
        if conversation is None:
            raise NotFoundError(conversation_id)
        if not self.owner_cache.is_fresh(user.effective_id, conversation_id):
            check_owner(conversation.owner_id, user, conversation_id)
            self.owner_cache.mark(user.effective_id, conversation_id)
        return conversation

    def _insert_conversation(self, user: UserContext, conversation_id: str) -> bool:
        if conversation_id in self._conversations:
            return False
        self._conversations[conversation_id] = Conversation(
            id=conversation_id,
            owner_id=user.effective_id,
            title=conversation_id
        )
        self._messages[conversation_id] = []
        return True

    def create(self, user: UserContext, conversation_id: str) -> bool:
        with self._lock:
            created = self._insert_conversation(user, conversation_id)
            self._require_owned(user, conversation_id)

        if created:
            log_conversation_event(self.logger, "created", conversation_id, owner_id=user.effective_id)
        return created

    def list_for_owner(self, user: UserContext) -> List[Conversation]:
        with self._lock:
            owned = [c for c in self._conversations.values() if c.owner_id == user.effective_id]
            return [replace(c) for c in sorted(owned, key=lambda c: c.created_at)]

    def set_title(self, user: UserContext, conversation_id: str, title: str) -> None:
        with self._lock:
            conversation = self._require_owned(user, conversation_id)
            conversation.title = title_or_default(title, conversation_id)

    def get_full_history(self, user: UserContext, conversation_id: str) -> List[Message]:
        with self._lock:
            self._require_owned(user, conversation_id)
            return [_copy_message(m) for m in self._messages[conversation_id]]

    def get_active_messages(self, user: UserContext, conversation_id: str) -> List[Message]:
        with self._lock:
            self._require_owned(user, conversation_id)
            return [_copy_message(m) for m in self._messages[conversation_id] if not m.archived]

    def get_summary(self, user: UserContext, conversation_id: str) -> Optional[str]:
        with self._lock:
            return self._require_owned(user, conversation_id).summary

    def add_message(self, user: UserContext, conversation_id: str,
                    role: MessageRole, text: str) -> Message:
        message = Message(
            role=MessageRole.parse(role),
            text=text or "",
            conversation_id=conversation_id,
            attachments=extract_from_text(text)
        )
        with self._lock:
            self._insert_conversation(user, conversation_id)
            self._require_owned(user, conversation_id)
            self._messages[conversation_id].append(message)
        return _copy_message(message)

    def attach_to_latest(self, user: UserContext, conversation_id: str,
                         role: MessageRole, attachments: List[Attachment]) -> None:
        if not attachments:
            return
        role = MessageRole.parse(role)
        with self._lock:
            self._require_owned(user, conversation_id)
            latest = next(
                (m for m in reversed(self._messages[conversation_id]) if m.role is role),
                None
            )
            if latest is None:
                return
            latest.attachments.extend(new_attachments(latest.attachments, attachments))

    def archive_and_summarize(self, user: UserContext, conversation_id: str,
                              message_ids: List[str], new_summary: str) -> None:
        if not message_ids:
            return
        with self._lock:
            conversation = self._require_owned(user, conversation_id)
            wanted = set(message_ids)
            for message in self._messages[conversation_id]:
                if message.id in wanted:
                    message.archived = True
            conversation.summary = new_summary
            conversation.summary_updated_at = utc_now()

        log_conversation_event(self.logger, "archived", conversation_id, archived_count=len(message_ids))

    def clear(self, user: UserContext, conversation_id: str) -> None:
        with self._lock:
            conversation = self._require_owned(user, conversation_id)
            self._messages[conversation_id] = []
            conversation.summary = None
            conversation.summary_updated_at = None

        log_conversation_event(self.logger, "cleared", conversation_id)


def _copy_message(message: Message) -> Message:
    return replace(message, attachments=list(message.attachments))
