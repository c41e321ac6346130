"""
Summarizer backed by a LangChain chat model.
"""

from typing import Optional, Protocol

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import HumanMessage

from infrastructure.resilience.retry_service import retry_with_backoff
from utils.logging_config import get_logger, log_model_usage


class Summarizer(Protocol):
    def __call__(self, prompt: str) -> str: ...


class ChatModelSummarizer:
    """
    Sends the summarization prompt to a chat model, retrying transient provider errors.
    Failures propagate; the summarizing window decides how to degrade.
    """

    def __init__(self, chat_model: Optional[BaseChatModel] = None, max_retries: Optional[int] = None):
        self.logger = get_logger(__name__)
        if chat_model is None or max_retries is None:
            from config.app_config import get_config
            config = get_config()
            if max_retries is None:
                max_retries = config.llm.max_retries
            if chat_model is None:
                from infrastructure.external.openai_client import get_openai_client
                chat_model = get_openai_client().get_summarization_client()
        self.chat_model = chat_model
        self.max_retries = max_retries

    def __call__(self, prompt: str) -> str:
        response = retry_with_backoff(
            lambda: self.chat_model.invoke([HumanMessage(content=prompt)]),
            max_retries=self.max_retries
        )

        usage = getattr(response, "usage_metadata", None) or {}
        if usage:
            log_model_usage(
                self.logger,
                getattr(self.chat_model, "model_name", type(self.chat_model).__name__),
                usage.get("total_tokens", 0),
                purpose="summarization"
            )

        return response_text(response)


def response_text(response) -> str:
    """Plain text of a chat model response, joining content parts when the provider returns a list"""
    content = response.content
    if isinstance(content, list):
        content = "".join(
            part.get("text", "") if isinstance(part, dict) else str(part) for part in content
        )
    return content
