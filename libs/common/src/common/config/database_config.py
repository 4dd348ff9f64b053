"""Track store (PostgreSQL) configuration model."""

from pydantic import BaseModel, Field, model_validator


class DatabaseConfig(BaseModel):
    """Connection and pool settings for the PostgreSQL track store."""

    database_url: str | None = Field(
        default=None,
        description="Full libpq connection string; overrides the individual fields",
    )
    db_host: str = Field(default="localhost", description="Database host")
    db_port: int = Field(default=5432, ge=1, le=65535, description="Database port")
    db_name: str = Field(default="playlists", description="Database name")
    db_user: str = Field(default="postgres", description="Database user")
    db_password: str | None = Field(default=None, description="Database password")

    pool_min_size: int = Field(default=1, ge=0, description="Minimum pool size")
    pool_max_size: int = Field(default=5, ge=1, description="Maximum pool size")
    pool_timeout: float = Field(
        default=30.0, gt=0, description="Seconds to wait for a pooled connection"
    )
    connect_retries: int = Field(
        default=3, ge=1, description="Attempts to open the pool before giving up"
    )
    connect_retry_delay: float = Field(
        default=2.0, ge=0, description="Delay between pool open attempts in seconds"
    )

    @model_validator(mode="after")
    def validate_pool_sizes(self) -> "DatabaseConfig":
        """Ensure pool_min_size does not exceed pool_max_size."""
        if self.pool_min_size > self.pool_max_size:
            raise ValueError(
                f"pool_min_size ({self.pool_min_size}) must not exceed "
                f"pool_max_size ({self.pool_max_size})"
            )
        return self

    @property
    def conninfo(self) -> str:
        """libpq connection string built from the configured fields."""
        if self.database_url:
            return self.database_url
        parts = [
            f"host={self.db_host}",
            f"port={self.db_port}",
            f"dbname={self.db_name}",
            f"user={self.db_user}",
            f"connect_timeout={int(self.pool_timeout)}",
        ]
        if self.db_password:
            parts.append(f"password={self.db_password}")
        return " ".join(parts)
