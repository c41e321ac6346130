"""
Unified Configuration System for the conversation memory backend

This module provides a centralized configuration system that consolidates all settings
for the conversation store, the summarizing memory window and the document context
pipeline, supports environment-based overrides, and provides type-safe configuration access.
"""

from dataclasses import dataclass, field
from typing import Dict, Any, Optional, List
import streamlit as st
import os
from pathlib import Path


@dataclass
class APIConfig:
    """API configuration settings"""
    openai_api_key: str = ""

    @classmethod
    def from_secrets(cls) -> 'APIConfig':
        """Load API config from Streamlit secrets"""
        # In test environment, prefer environment variables
        if os.getenv("PYTEST_CURRENT_TEST") is not None:
            return cls(openai_api_key=os.getenv("OPENAI_API_KEY", ""))

        try:
            return cls(openai_api_key=st.secrets.get("OPENAI_API_KEY", ""))
        except Exception:
            # Fallback to environment variables if secrets not available
            return cls(openai_api_key=os.getenv("OPENAI_API_KEY", ""))


@dataclass
class LLMConfig:
    """Language model configuration (chat and summarization)"""
    model_name: str = "gpt-4o-mini"
    summarization_model_name: str = "gpt-4o-mini"
    temperature: float = 0.5
    max_tokens: int = 1000
    max_retries: int = 3
    system_prompt: str = "You are a helpful assistant."

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for LangChain compatibility"""
        return {
            "model_name": self.model_name,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }


@dataclass
class MemoryConfig:
    """Memory management configuration"""
    max_token_limit: int = 4000
    model_name: str = "gpt-4o-mini"  # For token counting
    owner_cache_ttl_seconds: float = 60.0


@dataclass
class StorageConfig:
    """Conversation store configuration"""
    backend: str = "sqlite"  # "sqlite" or "memory"
    db_path: str = "conversations.db"


@dataclass
class DocumentConfig:
    """Document context pipeline configuration"""
    chunk_size: int = 1200
    chunk_overlap: int = 200
    retrieval_limit: int = 4
    context_char_budget: int = 5000
    fetch_timeout_seconds: float = 30.0
    user_agent: str = "chat-memory-backend"
    cache_backend: str = "filesystem"  # "filesystem", "memory" or "none"
    cache_directory: str = "document_cache"
    cache_namespace: str = "global"


@dataclass
class LoggingConfig:
    """Logging and monitoring configuration"""
    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    enable_file_logging: bool = True
    log_file: str = "logs/app.log"


@dataclass
class AppConfig:
    """Main application configuration"""
    api: APIConfig = field(default_factory=APIConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    memory: MemoryConfig = field(default_factory=MemoryConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    documents: DocumentConfig = field(default_factory=DocumentConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    # Environment settings
    environment: str = field(default_factory=lambda: os.getenv("APP_ENV", "development"))
    debug: bool = field(default_factory=lambda: os.getenv("DEBUG", "false").lower() == "true")

    @classmethod
    def load(cls) -> 'AppConfig':
        """Load configuration with environment overrides"""
        config = cls()

        # Load API configuration from secrets/environment
        config.api = APIConfig.from_secrets()

        # Storage locations can be redirected without touching code
        config.storage.backend = os.getenv("CHAT_STORE_BACKEND", config.storage.backend)
        config.storage.db_path = os.getenv("CHAT_DB_PATH", config.storage.db_path)
        config.documents.cache_directory = os.getenv(
            "DOCUMENT_CACHE_DIR", config.documents.cache_directory
        )

        # Apply environment-specific overrides
        if config.environment == "production":
            config.debug = False
            config.logging.level = "WARNING"
        elif config.environment == "development":
            config.debug = True
            config.logging.level = "DEBUG"

        return config

    def validate(self) -> List[str]:
        """Validate configuration and return list of errors"""
        errors = []

        # Check required API keys
        if not self.api.openai_api_key:
            errors.append("OpenAI API key is required")

        if self.storage.backend not in ("sqlite", "memory"):
            errors.append(f"Unknown storage backend: {self.storage.backend}")

        if self.documents.cache_backend not in ("filesystem", "memory", "none"):
            errors.append(f"Unknown document cache backend: {self.documents.cache_backend}")

        if self.documents.chunk_overlap >= self.documents.chunk_size:
            errors.append("Document chunk overlap must be smaller than chunk size")

        # Check file paths exist
        if self.storage.backend == "sqlite":
            Path(self.storage.db_path).parent.mkdir(parents=True, exist_ok=True)

        if self.logging.enable_file_logging:
            log_dir = Path(self.logging.log_file).parent
            if not log_dir.exists():
                log_dir.mkdir(parents=True, exist_ok=True)

        return errors


# Global configuration instance
_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Get the global configuration instance"""
    global _config
    if _config is None:
        _config = AppConfig.load()

        # Validate configuration
        errors = _config.validate()
        if errors:
            import warnings
            for error in errors:
                warnings.warn(f"Configuration error: {error}")

    return _config


def reload_config() -> AppConfig:
    """Reload configuration (useful for testing)"""
    global _config
    _config = None
    return get_config()


def get_openai_api_key() -> str:
    """Get OpenAI API key"""
    return get_config().api.openai_api_key
