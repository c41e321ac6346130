"""
Tests for the OpenAI client adapter and session wiring
"""

from unittest.mock import patch

import pytest

from config.app_config import reload_config
from infrastructure.external.openai_client import OpenAIClient


class TestOpenAIClient:
    """Test chat model construction"""

    def setup_method(self):
        self._patcher = patch("infrastructure.external.openai_client.ChatOpenAI")
        self.mock_chat_openai = self._patcher.start()

    def teardown_method(self):
        self._patcher.stop()
        reload_config()

    def test_chat_client_uses_configured_model(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "test-key")
        config = reload_config()

        client = OpenAIClient()
        chat_model = client.get_chat_client()

        assert chat_model is self.mock_chat_openai.return_value
        kwargs = self.mock_chat_openai.call_args.kwargs
        assert kwargs["model"] == config.llm.model_name
        assert kwargs["temperature"] == config.llm.temperature
        assert kwargs["api_key"] == "test-key"
        assert kwargs["max_retries"] == 0

    def test_clients_are_cached(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "test-key")
        reload_config()
        client = OpenAIClient()

        assert client.get_chat_client() is client.get_chat_client()
        assert self.mock_chat_openai.call_count == 1

    def test_summarization_client_is_deterministic(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "test-key")
        config = reload_config()

        OpenAIClient().get_summarization_client()

        kwargs = self.mock_chat_openai.call_args.kwargs
        assert kwargs["model"] == config.llm.summarization_model_name
        assert kwargs["temperature"] == 0.0

    def test_missing_api_key_raises(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "")
        reload_config()

        with pytest.raises(ValueError):
            OpenAIClient().get_chat_client()
