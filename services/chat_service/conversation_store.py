"""
Conversation store - ownership-scoped persistence for conversations, messages
and attachments.

Two backends implement the same contract and each provides its own
all-or-nothing archive: SQLite (one transaction per call) and an in-process
store guarded by a lock. The backend is picked once from configuration.
"""

from abc import ABC, abstractmethod
import threading
import time
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from services.chat_service.models import (
    Attachment,
    Conversation,
    Message,
    MessageRole,
    UserContext,
)
from services.chat_service.exceptions import ForbiddenError, NotFoundError
from utils.logging_config import get_logger


class OwnerCheckCache:
    """
    Remembers successful ownership checks for a short time.

    A revoked owner can keep access for at most ``ttl_seconds``.
    """

    def __init__(self, ttl_seconds: float = 60.0, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._expiry: Dict[Tuple[str, str], float] = {}
        self._lock = threading.Lock()

    def is_fresh(self, owner_id: str, conversation_id: str) -> bool:
        if self.ttl_seconds <= 0:
            return False
        with self._lock:
            expires_at = self._expiry.get((owner_id, conversation_id))
        return expires_at is not None and expires_at > self._clock()

    def mark(self, owner_id: str, conversation_id: str) -> None:
        if self.ttl_seconds <= 0:
            return
        with self._lock:
            now = self._clock()
            expired = [key for key, expires_at in self._expiry.items() if expires_at <= now]
            for key in expired:
                del self._expiry[key]
            self._expiry[(owner_id, conversation_id)] = now + self.ttl_seconds

    def clear(self) -> None:
        with self._lock:
            self._expiry.clear()


def check_owner(owner_id: Optional[str], user: UserContext, conversation_id: str) -> None:
    """Raise ForbiddenError unless the recorded owner is the caller"""
    if owner_id is None or owner_id != user.effective_id:
        raise ForbiddenError(conversation_id)


def title_or_default(title: Optional[str], conversation_id: str) -> str:
    if title is None or not title.strip():
        return conversation_id
    return title


def new_attachments(existing: Iterable[Attachment], incoming: Iterable[Attachment]) -> List[Attachment]:
    """
    Drop attachments already present on the message, keyed by (url, type)

    Args:
        existing: Attachments stored on the target message
        incoming: Attachments the caller wants to add

    Returns:
        Attachments to append, in input order
    """
    seen = {(a.url, a.normalized_type) for a in existing}
    result = []
    for attachment in incoming:
        if attachment is None or not attachment.url:
            continue
        key = (attachment.url, attachment.normalized_type)
        if key in seen:
            continue
        seen.add(key)
        result.append(attachment)
    return result


class ConversationStore(ABC):
    """
    Persistence contract shared by every backend.

    Every operation validates the caller against the conversation's recorded
    owner before touching data: a missing conversation raises NotFoundError,
    another owner raises ForbiddenError.
    """

    def __init__(self, owner_cache_ttl_seconds: float = 60.0,
                 clock: Callable[[], float] = time.monotonic):
        self.logger = get_logger(self.__class__.__module__)
        self.owner_cache = OwnerCheckCache(owner_cache_ttl_seconds, clock)

    @abstractmethod
    def create(self, user: UserContext, conversation_id: str) -> bool:
        """Create the conversation; False if the caller already owns it"""

    @abstractmethod
    def list_for_owner(self, user: UserContext) -> List[Conversation]:
        """Conversations owned by the caller, oldest first"""

    @abstractmethod
    def set_title(self, user: UserContext, conversation_id: str, title: str) -> None:
        """Rename a conversation; a blank title resets it to the id"""

    @abstractmethod
    def get_full_history(self, user: UserContext, conversation_id: str) -> List[Message]:
        """Every message, archived included, oldest first"""

    @abstractmethod
    def get_active_messages(self, user: UserContext, conversation_id: str) -> List[Message]:
        """Non-archived messages, oldest first"""

    @abstractmethod
    def get_summary(self, user: UserContext, conversation_id: str) -> Optional[str]:
        """Rolling summary of archived messages"""

    @abstractmethod
    def add_message(self, user: UserContext, conversation_id: str,
                    role: MessageRole, text: str) -> Message:
        """Append a message, creating the conversation if needed"""

    @abstractmethod
    def attach_to_latest(self, user: UserContext, conversation_id: str,
                         role: MessageRole, attachments: List[Attachment]) -> None:
        """Add attachments to the most recent message of the given role"""

    @abstractmethod
    def archive_and_summarize(self, user: UserContext, conversation_id: str,
                              message_ids: List[str], new_summary: str) -> None:
        """Atomically archive the messages and replace the summary"""

    @abstractmethod
    def clear(self, user: UserContext, conversation_id: str) -> None:
        """Atomically delete all messages and attachments and reset the summary"""

    def get_active_message_ids(self, user: UserContext, conversation_id: str) -> List[str]:
        """Ids of the active messages, in the same order as get_active_messages"""
        return [message.id for message in self.get_active_messages(user, conversation_id)]

    def attach_to_latest_user_message(self, user: UserContext, conversation_id: str,
                                      attachments: List[Attachment]) -> None:
        self.attach_to_latest(user, conversation_id, MessageRole.USER, attachments)

    def attach_to_latest_ai_message(self, user: UserContext, conversation_id: str,
                                    attachments: List[Attachment]) -> None:
        self.attach_to_latest(user, conversation_id, MessageRole.AI, attachments)


def create_conversation_store(config=None) -> ConversationStore:
    """
    Build the store selected by configuration

    Args:
        config: AppConfig to read; the global configuration when None

    Returns:
        A SQLite or in-memory conversation store
    """
    if config is None:
        from config.app_config import get_config
        config = get_config()

    backend = config.storage.backend.lower()
    ttl = config.memory.owner_cache_ttl_seconds

    if backend == "sqlite":
        from services.chat_service.sqlite_store import SqliteConversationStore
        return SqliteConversationStore(config.storage.db_path, owner_cache_ttl_seconds=ttl)
    elif backend == "memory":
        from services.chat_service.memory_store import InMemoryConversationStore
        return InMemoryConversationStore(owner_cache_ttl_seconds=ttl)

    raise ValueError(f"Unsupported storage backend: {config.storage.backend}")


# Global conversation store instance
_conversation_store: Optional[ConversationStore] = None


def get_conversation_store() -> ConversationStore:
    """Get the global conversation store instance"""
    global _conversation_store
    if _conversation_store is None:
        _conversation_store = create_conversation_store()
    return _conversation_store
