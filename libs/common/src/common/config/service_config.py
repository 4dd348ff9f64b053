"""Service-level configuration."""

from pydantic import BaseModel, Field, field_validator


class ServiceConfig(BaseModel):
    """Configuration for the control API and runtime settings."""

    # Host & Port
    enrichment_service_host: str = Field(
        default="0.0.0.0", description="Enrichment service host address"
    )
    enrichment_service_port: int = Field(
        default=8010, ge=1, le=65535, description="Enrichment service port"
    )

    # API Metadata
    api_title: str = Field(
        default="Track Enrichment Service", description="API title"
    )
    api_version: str = Field(default="1.0.0", description="API version")
    api_description: str = Field(
        default="Background enrichment of track embeddings, platform links and release dates",
        description="API description",
    )

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log format string",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of: {valid_levels}")
        return v.upper()
