"""Tests for environment detection and settings overrides."""

import os
from unittest.mock import patch

import pytest
from common.config.settings import Environment, Settings, get_environment


class TestEnvironmentEnum:
    """Test Environment enum values."""

    def test_has_development(self):
        assert Environment.DEVELOPMENT == "development"

    def test_has_staging(self):
        assert Environment.STAGING == "staging"

    def test_has_production(self):
        assert Environment.PRODUCTION == "production"


class TestGetEnvironment:
    """Test environment detection function."""

    def test_raises_error_when_app_env_not_set(self):
        """Test that missing APP_ENV raises ValueError for production safety."""
        with patch.dict(os.environ, {}, clear=True):
            with pytest.raises(ValueError, match="APP_ENV environment variable must be set"):
                get_environment()

    def test_detects_development(self):
        with patch.dict(os.environ, {"APP_ENV": "development"}):
            assert get_environment() == Environment.DEVELOPMENT

    def test_detects_production(self):
        with patch.dict(os.environ, {"APP_ENV": "production"}):
            assert get_environment() == Environment.PRODUCTION

    def test_raises_error_for_invalid_value(self):
        with patch.dict(os.environ, {"APP_ENV": "invalid"}):
            with pytest.raises(ValueError, match="Invalid APP_ENV value 'invalid'"):
                get_environment()

    def test_case_insensitive(self):
        with patch.dict(os.environ, {"APP_ENV": "STAGING"}):
            assert get_environment() == Environment.STAGING


class TestProductionSafety:
    """Test production safety enforcement."""

    def test_production_forces_debug_false(self):
        with patch.dict(os.environ, {"APP_ENV": "production", "DEBUG": "true"}):
            settings = Settings()
            assert settings.debug is False

    def test_production_forces_warning_log_level(self):
        with patch.dict(
            os.environ, {"APP_ENV": "production", "SERVICE__LOG_LEVEL": "DEBUG"}
        ):
            settings = Settings()
            assert settings.service.log_level == "WARNING"

    def test_staging_defaults(self):
        with patch.dict(os.environ, {"APP_ENV": "staging"}):
            settings = Settings()
            assert settings.debug is True
            assert settings.service.log_level == "INFO"

    def test_development_defaults(self):
        with patch.dict(os.environ, {"APP_ENV": "development"}):
            settings = Settings()
            assert settings.debug is True
            assert settings.service.log_level == "DEBUG"


class TestUserProvidedValues:
    """User-provided values are respected in dev/staging but not production."""

    def test_development_respects_user_log_level(self):
        with patch.dict(
            os.environ, {"APP_ENV": "development", "SERVICE__LOG_LEVEL": "ERROR"}
        ):
            settings = Settings()
            assert settings.service.log_level == "ERROR"

    def test_staging_respects_user_debug_false(self):
        with patch.dict(os.environ, {"APP_ENV": "staging", "DEBUG": "false"}):
            settings = Settings()
            assert settings.debug is False


class TestNestedSettings:
    """Nested sections load from ``__``-delimited environment variables."""

    def test_database_url(self):
        with patch.dict(
            os.environ,
            {"APP_ENV": "development", "DATABASE__DATABASE_URL": "postgresql://x/y"},
        ):
            settings = Settings()
            assert settings.database.conninfo == "postgresql://x/y"

    def test_supervision_settings(self):
        with patch.dict(
            os.environ,
            {"APP_ENV": "development", "ENRICHMENT__MAX_RESTARTS": "4"},
        ):
            settings = Settings()
            assert settings.enrichment.max_restarts == 4
            assert settings.enrichment.restart_base_delay_seconds == 60.0

    def test_odesli_defaults(self):
        with patch.dict(os.environ, {"APP_ENV": "development"}):
            settings = Settings()
            assert settings.odesli.max_per_minute == 10
            assert settings.odesli.user_country == "US"
