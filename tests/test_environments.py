"""
Test environment-specific configurations
"""

import pytest
from config.environments import get_environment_config
from config.environments.development import get_development_config
from config.environments.production import get_production_config


class TestEnvironmentConfigs:
    """Test environment-specific configuration loading"""

    def test_development_config(self):
        """Test development configuration"""
        config = get_development_config()

        assert config.environment == "development"
        assert config.debug is True
        assert config.logging.level == "DEBUG"
        assert config.logging.log_file == "logs/dev-app.log"
        assert config.documents.cache_backend == "memory"

    def test_production_config(self):
        """Test production configuration"""
        config = get_production_config()

        assert config.environment == "production"
        assert config.debug is False
        assert config.logging.level == "INFO"
        assert config.llm.temperature == 0.3
        assert config.llm.max_retries == 5
        assert config.storage.backend == "sqlite"
        assert config.documents.cache_backend == "filesystem"

    @pytest.mark.parametrize("env,debug", [("development", True), ("production", False)])
    def test_environment_selection(self, monkeypatch, env, debug):
        """Test environment selection from APP_ENV"""
        monkeypatch.setenv("APP_ENV", env)

        config = get_environment_config()

        assert config.environment == env
        assert config.debug is debug

    def test_default_environment(self, monkeypatch):
        """Test default environment when APP_ENV is not set"""
        monkeypatch.delenv("APP_ENV", raising=False)

        assert get_environment_config().environment == "development"

    def test_unknown_environment_uses_base_config(self, monkeypatch):
        monkeypatch.setenv("APP_ENV", "staging")

        config = get_environment_config()

        assert config.environment == "staging"
        assert config.documents.cache_backend == "filesystem"

    def test_config_validation(self):
        """Test that all environment configs pass validation apart from the API key"""
        for config in (get_development_config(), get_production_config()):
            errors = [e for e in config.validate() if "API key" not in e]
            assert errors == []
