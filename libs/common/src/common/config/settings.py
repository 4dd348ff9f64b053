"""Track Enrichment Service Configuration Settings."""

import os
from enum import Enum
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .database_config import DatabaseConfig
from .enrichment_config import EnrichmentConfig
from .provider_config import OdesliConfig, OpenAIConfig
from .service_config import ServiceConfig


class Environment(str, Enum):
    """Application environment types."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


def get_environment() -> Environment:
    """Detect environment from APP_ENV variable.

    Returns:
        Environment: Detected environment based on APP_ENV.

    Raises:
        ValueError: If APP_ENV is not set or contains an invalid value.
    """
    env_str = os.getenv("APP_ENV")
    if not env_str:
        raise ValueError(
            "APP_ENV environment variable must be set to one of: "
            "development, staging, production"
        )

    env_str = env_str.lower()

    match env_str:
        case "production":
            return Environment.PRODUCTION
        case "staging":
            return Environment.STAGING
        case "development":
            return Environment.DEVELOPMENT
        case _:
            raise ValueError(
                f"Invalid APP_ENV value '{env_str}'. "
                "Must be one of: development, staging, production"
            )


class Settings(BaseSettings):
    """Enrichment service settings with validation and type safety.

    Nested sections are read from environment variables using ``__`` as the
    delimiter, e.g. ``DATABASE__DATABASE_URL`` or
    ``ENRICHMENT__PACING__EMBEDDING__BATCH_SIZE``.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    environment: Environment = Field(
        default_factory=get_environment,
        description="Application environment (development/staging/production)",
    )
    debug: bool = Field(default=True, description="Enable debug mode")

    service: ServiceConfig = Field(default_factory=ServiceConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    enrichment: EnrichmentConfig = Field(default_factory=EnrichmentConfig)
    openai: OpenAIConfig = Field(default_factory=OpenAIConfig)
    odesli: OdesliConfig = Field(default_factory=OdesliConfig)

    def model_post_init(self, __context) -> None:
        """Apply environment-specific overrides after initialization."""
        self.apply_environment_settings()

    def apply_environment_settings(self) -> None:
        """Apply environment-specific settings with smart defaults.

        DEVELOPMENT:
            - Sets debug=True, log_level=DEBUG as defaults
            - Respects user-provided values

        STAGING:
            - Sets debug=True, log_level=INFO as defaults
            - Respects user-provided values

        PRODUCTION (ENFORCED):
            - ALWAYS enforces debug=False, log_level=WARNING
        """
        if self.environment == Environment.DEVELOPMENT:
            if os.getenv("DEBUG") is None:
                self.debug = True
            if os.getenv("SERVICE__LOG_LEVEL") is None:
                self.service.log_level = "DEBUG"

        elif self.environment == Environment.STAGING:
            if os.getenv("DEBUG") is None:
                self.debug = True
            if os.getenv("SERVICE__LOG_LEVEL") is None:
                self.service.log_level = "INFO"

        elif self.environment == Environment.PRODUCTION:
            self.debug = False
            self.service.log_level = "WARNING"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
