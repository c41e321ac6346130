"""
Chat service data models for conversations, messages and attachments.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional
import uuid


SUMMARY_PREFIX = "Summary of earlier conversation:\n"
TOOL_RESULT_MARKER = "ToolExecutionResultMessage"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class MessageRole(str, Enum):
    """Author of a message"""
    USER = "user"
    AI = "ai"
    SYSTEM = "system"

    @classmethod
    def parse(cls, value) -> 'MessageRole':
        """Parse a stored role; unknown values are read back as user messages"""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.USER


@dataclass(frozen=True)
class UserContext:
    """Identity of the caller that owns conversations"""
    device_id: str
    signed_in_id: Optional[str] = None
    is_premium: bool = False

    @property
    def effective_id(self) -> str:
        return self.signed_in_id or self.device_id


@dataclass(frozen=True)
class Attachment:
    """Structured attachment metadata for UI rendering"""
    type: str  # "image", "document", "link"
    url: str
    mime_type: Optional[str] = None
    title: Optional[str] = None

    @property
    def normalized_type(self) -> str:
        return (self.type or "").strip().lower()


@dataclass
class Message:
    """Individual message in a conversation"""
    role: MessageRole
    text: Optional[str]
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    conversation_id: Optional[str] = None
    archived: bool = False
    created_at: datetime = field(default_factory=utc_now)
    attachments: List[Attachment] = field(default_factory=list)

    @classmethod
    def user(cls, text: str) -> 'Message':
        return cls(role=MessageRole.USER, text=text)

    @classmethod
    def ai(cls, text: str) -> 'Message':
        return cls(role=MessageRole.AI, text=text)

    @classmethod
    def system(cls, text: str) -> 'Message':
        return cls(role=MessageRole.SYSTEM, text=text)

    @classmethod
    def summary(cls, summary_text: str) -> 'Message':
        """Synthetic system message carrying the rolling summary"""
        return cls(role=MessageRole.SYSTEM, text=SUMMARY_PREFIX + (summary_text or ""))

    @property
    def is_summary(self) -> bool:
        return self.role is MessageRole.SYSTEM and (self.text or "").startswith(SUMMARY_PREFIX)

    @property
    def summary_text(self) -> Optional[str]:
        if not self.is_summary:
            return None
        return self.text[len(SUMMARY_PREFIX):]

    @property
    def is_noise(self) -> bool:
        """Blank messages and leftover tool results never go back into model context"""
        text = self.text
        if text is None or not text.strip():
            return True
        return TOOL_RESULT_MARKER in text

    def same_content(self, other: 'Message') -> bool:
        """Structural equality used to detect already persisted turns"""
        return self.role is other.role and self.text == other.text


@dataclass
class Conversation:
    """Conversation metadata"""
    id: str
    owner_id: str
    title: str
    summary: Optional[str] = None
    summary_updated_at: Optional[datetime] = None
    created_at: datetime = field(default_factory=utc_now)
