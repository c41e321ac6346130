"""
Summarizing token window - keeps the working set under a token budget by
replacing the oldest messages with an LLM-written summary and archiving them.
"""

from typing import Callable, List, Optional

from services.chat_service.exceptions import SummarizationError
from services.chat_service.memory_adapter import MemoryAdapter
from services.chat_service.models import Message, MessageRole
from utils.logging_config import get_logger, log_execution_time


SUMMARIZATION_PROMPT = """Summarize the following conversation concisely, preserving key information,
decisions made, user preferences, and important context that would be needed
to continue the conversation naturally. Focus on facts, not the conversation flow.

Conversation to summarize:
{conversation}

Provide a concise summary:"""

ADDITIONAL_CONTEXT_MARKER = " [Additional context available]"
FALLBACK_SUMMARY = "[Conversation history available]"

ROLE_LABELS = {
    MessageRole.USER: "User",
    MessageRole.AI: "Assistant",
    MessageRole.SYSTEM: "System",
}


class SummarizingWindow:
    """
    Token-bounded conversation memory for a single turn.

    The buffer is seeded from the store when the window is built and thrown
    away when the turn ends. Evicted messages are archived, never deleted.
    """

    KEEP_COUNT = 2
    SUMMARY_OVERHEAD_TOKENS = 200

    def __init__(
        self,
        conversation_id: str,
        memory_adapter: MemoryAdapter,
        token_estimator: Callable[[Message], int],
        summarizer: Callable[[str], str],
        max_tokens: int = 4000
    ):
        """
        Initialize the window from the stored working set

        Args:
            conversation_id: Conversation identifier
            memory_adapter: Adapter bound to the caller's identity
            token_estimator: Deterministic per-message token counter
            summarizer: Callable turning a prompt into summary text; may raise
            max_tokens: Token budget that triggers summarization
        """
        self.logger = get_logger(__name__)
        self.conversation_id = conversation_id
        self.memory_adapter = memory_adapter
        self.token_estimator = token_estimator
        self.summarizer = summarizer
        self.max_tokens = max_tokens
        self._buffer: List[Message] = list(memory_adapter.load_working_set(conversation_id))

    def add(self, message: Message) -> None:
        """
        Append a message, persist it, then evict if the budget is exceeded

        Args:
            message: New user or assistant message
        """
        self._buffer.append(message)
        self.memory_adapter.persist_new_turns(self.conversation_id, list(self._buffer))
        self._ensure_capacity()

    def messages(self) -> List[Message]:
        """Copy of the current working set"""
        return list(self._buffer)

    def token_count(self) -> int:
        return self._count_tokens(self._buffer)

    def clear(self) -> None:
        self._buffer.clear()
        self.memory_adapter.clear(self.conversation_id)

    def _ensure_capacity(self) -> None:
        current_tokens = self._count_tokens(self._buffer)
        if current_tokens <= self.max_tokens:
            return

        summary_index = next(
            (i for i, message in enumerate(self._buffer) if message.is_summary), -1
        )
        start = summary_index + 1 if summary_index >= 0 else 0
        # Buffer positions after the summary are mapped onto the store's active ids by index.
        # Stored system or noise messages are not in the buffer, so with those present
        # the archived ids can drift from the evicted messages.
        active_ids = self.memory_adapter.get_active_message_ids(self.conversation_id)
        kept_summary = [self._buffer[summary_index]] if summary_index >= 0 else []

        to_summarize: List[Message] = []
        ids_to_archive: List[str] = []
        end = start
        i = start
        while i < len(self._buffer) - self.KEEP_COUNT:
            message = self._buffer[i]
            i += 1
            end = i
            if message.is_summary:
                continue

            to_summarize.append(message)
            position = i - 1 - start
            if position < len(active_ids):
                ids_to_archive.append(active_ids[position])

            # Stop as soon as the remainder fits: evict as little as possible
            remaining = kept_summary + self._buffer[i:]
            if self._count_tokens(remaining) + self.SUMMARY_OVERHEAD_TOKENS <= self.max_tokens:
                break

        if not to_summarize:
            return

        existing_summary = self._existing_summary()
        with log_execution_time(self.logger, "conversation summarization",
                                conversation_id=self.conversation_id,
                                evicted_count=len(to_summarize)):
            new_summary = self._generate_summary(existing_summary, to_summarize)

        if ids_to_archive:
            self.memory_adapter.archive(self.conversation_id, ids_to_archive, new_summary)

        remainder = [m for m in self._buffer[end:] if not m.is_summary]
        self._buffer = [Message.summary(new_summary)] + remainder

        self.logger.info(
            f"Summarized {len(to_summarize)} message(s) in conversation {self.conversation_id}: "
            f"{current_tokens} -> {self._count_tokens(self._buffer)} tokens"
        )

    def _existing_summary(self) -> Optional[str]:
        return next((m.summary_text for m in self._buffer if m.is_summary), None)

    def _generate_summary(self, existing_summary: Optional[str], messages: List[Message]) -> str:
        prompt = build_summarization_prompt(existing_summary, messages)
        try:
            summary = self.summarizer(prompt)
            if summary is None or not str(summary).strip():
                raise SummarizationError("Summarization returned no text")
            return str(summary).strip()
        except Exception as e:
            self.logger.warning(
                f"Summarization failed for conversation {self.conversation_id}, using fallback: {e}",
                exc_info=True
            )
            if existing_summary is not None:
                return existing_summary + ADDITIONAL_CONTEXT_MARKER
            return FALLBACK_SUMMARY

    def _count_tokens(self, messages: List[Message]) -> int:
        return sum(self.token_estimator(message) for message in messages if not message.is_noise)


def build_summarization_prompt(existing_summary: Optional[str], messages: List[Message]) -> str:
    """
    Render the previous summary and a role-tagged transcript into the summarization prompt

    Args:
        existing_summary: Summary being extended, if any
        messages: Messages to fold into the summary

    Returns:
        Prompt text for the summarization model
    """
    lines = []
    if existing_summary is not None:
        lines.append("Previous summary:\n" + existing_summary + "\n")
        lines.append("New messages to incorporate:")
    for message in messages:
        lines.append(f"{ROLE_LABELS[message.role]}: {message.text}")
    return SUMMARIZATION_PROMPT.format(conversation="\n".join(lines))
