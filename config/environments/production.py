"""
Production environment configuration overrides
"""

from dataclasses import dataclass
from config.app_config import AppConfig


@dataclass
class ProductionConfig(AppConfig):
    """Production environment configuration"""

    def __post_init__(self):
        base_config = AppConfig.load()

        self.api = base_config.api
        self.llm = base_config.llm
        self.memory = base_config.memory
        self.storage = base_config.storage
        self.documents = base_config.documents
        self.logging = base_config.logging

        # Production-specific overrides
        self.environment = "production"
        self.debug = False

        # Production logging - less verbose, focus on errors
        self.logging.level = "INFO"
        self.logging.enable_file_logging = True
        self.logging.log_file = "logs/prod-app.log"

        # Production LLM settings - more conservative
        self.llm.temperature = 0.3
        self.llm.max_retries = 5

        # Persistent artifacts survive restarts
        self.storage.backend = "sqlite"
        self.documents.cache_backend = "filesystem"


def get_production_config() -> ProductionConfig:
    """Get production-specific configuration"""
    return ProductionConfig()
