"""
Error taxonomy for the conversation memory core.

NotFoundError, ForbiddenError and PersistenceError propagate to the caller.
TransientFetchError, ExtractionError and SummarizationError are absorbed where
they occur and only ever show up in the logs.
"""


class ChatMemoryError(Exception):
    """Base class for conversation memory errors"""
    pass


class NotFoundError(ChatMemoryError):
    """Referenced conversation does not exist"""

    def __init__(self, conversation_id: str):
        super().__init__(f"Conversation not found: {conversation_id}")
        self.conversation_id = conversation_id


class ForbiddenError(ChatMemoryError):
    """Caller does not own the conversation"""

    def __init__(self, conversation_id: str):
        super().__init__("Forbidden conversation access")
        self.conversation_id = conversation_id


class PersistenceError(ChatMemoryError):
    """A store read, write or transaction failed"""
    pass


class TransientFetchError(ChatMemoryError):
    """A document could not be downloaded"""
    pass


class ExtractionError(ChatMemoryError):
    """Document bytes could not be converted to text"""
    pass


class SummarizationError(ChatMemoryError):
    """The summarization model call failed"""
    pass
