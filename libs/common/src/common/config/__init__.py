"""Configuration package for the enrichment service."""

from .database_config import DatabaseConfig
from .enrichment_config import EnrichmentConfig, PacingConfig
from .provider_config import OdesliConfig, OpenAIConfig
from .service_config import ServiceConfig
from .settings import Environment, Settings, get_settings

__all__ = [
    "DatabaseConfig",
    "EnrichmentConfig",
    "Environment",
    "OdesliConfig",
    "OpenAIConfig",
    "PacingConfig",
    "ServiceConfig",
    "Settings",
    "get_settings",
]
