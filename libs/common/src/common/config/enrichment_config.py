"""Enrichment pipeline configuration: batching, pacing and supervision."""

from pydantic import BaseModel, Field, model_validator

from common.models.task import EnrichmentKind


class PacingConfig(BaseModel):
    """Batch size and rate limits for one enrichment kind."""

    batch_size: int = Field(default=10, ge=1, description="Records per batch")
    batch_delay_seconds: float = Field(
        default=5.0, ge=0, description="Pause between consecutive batches"
    )
    max_per_interval: int = Field(
        default=1000, ge=1, description="Hard cap on external calls per interval"
    )
    interval_seconds: float = Field(
        default=3600.0, gt=0, description="Length of the rolling rate-limit interval"
    )

    @model_validator(mode="after")
    def validate_batch_fits_cap(self) -> "PacingConfig":
        """A single batch must fit inside the per-interval cap."""
        if self.batch_size > self.max_per_interval:
            raise ValueError(
                f"batch_size ({self.batch_size}) must not exceed "
                f"max_per_interval ({self.max_per_interval})"
            )
        return self


def _default_pacing() -> dict[EnrichmentKind, PacingConfig]:
    return {
        EnrichmentKind.EMBEDDING: PacingConfig(
            batch_size=20, batch_delay_seconds=5.0, max_per_interval=1000
        ),
        EnrichmentKind.PLATFORM_RESOLUTION: PacingConfig(
            batch_size=5, batch_delay_seconds=5.0, max_per_interval=500
        ),
        EnrichmentKind.RELEASE_DATE: PacingConfig(
            batch_size=10, batch_delay_seconds=1.0, max_per_interval=1000
        ),
    }


class EnrichmentConfig(BaseModel):
    """Configuration for enrichment runs and their supervisor."""

    pacing: dict[EnrichmentKind, PacingConfig] = Field(
        default_factory=_default_pacing,
        description="Per-kind batch size and rate limits",
    )
    embedding_dimensions: int = Field(
        default=1536, ge=1, description="Expected length of every embedding vector"
    )

    # Supervision
    restart_base_delay_seconds: float = Field(
        default=60.0, ge=0, description="Cooldown before the first restart after a failure"
    )
    restart_max_delay_seconds: float = Field(
        default=1800.0, ge=0, description="Upper bound for the restart backoff"
    )
    max_restarts: int = Field(
        default=10, ge=0, description="Consecutive failed runs before giving up"
    )
    rescan_interval_seconds: float | None = Field(
        default=None,
        gt=0,
        description="Idle time before rescanning after a completed run; None finishes instead",
    )
    autostart_kinds: list[EnrichmentKind] = Field(
        default_factory=list, description="Kinds started when the service boots"
    )
    history_size: int = Field(
        default=100, ge=0, description="Finished tasks kept for status queries"
    )

    @model_validator(mode="after")
    def validate_backoff(self) -> "EnrichmentConfig":
        """Ensure restart_base_delay_seconds does not exceed restart_max_delay_seconds."""
        if self.restart_base_delay_seconds > self.restart_max_delay_seconds:
            raise ValueError(
                f"restart_base_delay_seconds ({self.restart_base_delay_seconds}) must not "
                f"exceed restart_max_delay_seconds ({self.restart_max_delay_seconds})"
            )
        return self

    def pacing_for(self, kind: EnrichmentKind) -> PacingConfig:
        """Pacing for ``kind``, falling back to the defaults."""
        return self.pacing.get(kind) or _default_pacing()[kind]
