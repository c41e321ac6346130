"""
OpenAI client adapter.
Builds the LangChain chat models used for answering and for summarization.
"""

from langchain_openai import ChatOpenAI
from typing import Optional

from config.app_config import get_config, get_openai_api_key
from utils.logging_config import get_logger


class OpenAIClient:
    """
    Adapter for OpenAI chat models.
    Provides a centralized way to build configured clients.
    """

    def __init__(self):
        self.logger = get_logger(__name__)
        self.config = get_config()
        self._chat_client = None
        self._summarization_client = None

    def _build(self, model_name: str, temperature: float) -> ChatOpenAI:
        api_key = get_openai_api_key()
        if not api_key:
            raise ValueError("OpenAI API key not configured")

        return ChatOpenAI(
            model=model_name,
            temperature=temperature,
            max_tokens=self.config.llm.max_tokens,
            api_key=api_key,
            # Retries are handled by the resilience layer
            max_retries=0
        )

    def get_chat_client(self) -> ChatOpenAI:
        """
        Get configured ChatOpenAI client for answering

        Returns:
            ChatOpenAI: Configured chat client
        """
        if self._chat_client is None:
            try:
                self._chat_client = self._build(self.config.llm.model_name, self.config.llm.temperature)
                self.logger.info(f"OpenAI chat client initialized: {self.config.llm.model_name}")
            except Exception as e:
                self.logger.error(f"Error initializing OpenAI chat client: {e}")
                raise

        return self._chat_client

    def get_summarization_client(self) -> ChatOpenAI:
        """
        Get ChatOpenAI client for conversation summaries (deterministic sampling)

        Returns:
            ChatOpenAI: Configured summarization client
        """
        if self._summarization_client is None:
            try:
                self._summarization_client = self._build(self.config.llm.summarization_model_name, 0.0)
                self.logger.info(
                    f"OpenAI summarization client initialized: {self.config.llm.summarization_model_name}"
                )
            except Exception as e:
                self.logger.error(f"Error initializing OpenAI summarization client: {e}")
                raise

        return self._summarization_client


# Global client instance
_openai_client: Optional[OpenAIClient] = None


def get_openai_client() -> OpenAIClient:
    """Get the global OpenAI client instance"""
    global _openai_client
    if _openai_client is None:
        _openai_client = OpenAIClient()
    return _openai_client
