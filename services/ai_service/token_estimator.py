"""
Token estimation for working-set messages.
"""

from typing import Optional, Protocol
import tiktoken

from services.chat_service.models import Message
from utils.logging_config import get_logger


class TokenEstimator(Protocol):
    def __call__(self, message: Message) -> int: ...


class TiktokenEstimator:
    """
    Counts tokens with the tokenizer of the configured model.
    Each message also pays a fixed framing overhead (role and separators).
    """

    MESSAGE_OVERHEAD_TOKENS = 4

    def __init__(self, model_name: Optional[str] = None):
        self.logger = get_logger(__name__)
        if model_name is None:
            from config.app_config import get_config
            model_name = get_config().memory.model_name
        self.model_name = model_name

        try:
            self.encoding = tiktoken.encoding_for_model(model_name)
        except KeyError:
            self.logger.warning(f"No tokenizer registered for {model_name}, using cl100k_base")
            self.encoding = tiktoken.get_encoding("cl100k_base")

    def count_text(self, text: Optional[str]) -> int:
        if not text:
            return 0
        return len(self.encoding.encode(text))

    def __call__(self, message: Message) -> int:
        return self.count_text(message.text) + self.MESSAGE_OVERHEAD_TOKENS
