"""
Development environment configuration overrides
"""

from dataclasses import dataclass
from config.app_config import AppConfig


@dataclass
class DevelopmentConfig(AppConfig):
    """Development environment configuration"""

    def __post_init__(self):
        # First load the base configuration (including API keys)
        base_config = AppConfig.load()

        # Copy base configuration
        self.api = base_config.api
        self.llm = base_config.llm
        self.memory = base_config.memory
        self.storage = base_config.storage
        self.documents = base_config.documents
        self.logging = base_config.logging

        # Development-specific overrides
        self.environment = "development"
        self.debug = True

        # More verbose logging in development
        self.logging.level = "DEBUG"
        self.logging.enable_file_logging = True
        self.logging.log_file = "logs/dev-app.log"

        # Keep documents in process so a dev run leaves no cache directory behind
        self.documents.cache_backend = "memory"


def get_development_config() -> DevelopmentConfig:
    """Get development-specific configuration"""
    return DevelopmentConfig()
