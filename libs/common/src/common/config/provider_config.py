"""External provider configuration (OpenAI and Odesli)."""

from pydantic import BaseModel, Field


class OpenAIConfig(BaseModel):
    """Configuration for the OpenAI-compatible client."""

    openai_api_key: str | None = Field(
        default=None,
        description="API key; when unset, embeddings fail and release dates use the heuristic only",
    )
    openai_base_url: str | None = Field(
        default=None, description="Optional OpenAI-compatible base URL"
    )
    embedding_model: str = Field(
        default="text-embedding-3-small", description="Embedding model name"
    )
    completion_model: str = Field(
        default="gpt-4o", description="Chat model used for release date estimation"
    )
    use_ai_release_dates: bool = Field(
        default=True, description="Try the AI estimate before the genre heuristic"
    )
    request_timeout: float = Field(
        default=30.0, gt=0, description="Per-request timeout in seconds"
    )


class OdesliConfig(BaseModel):
    """Configuration for the Odesli (song.link) link-resolution API."""

    odesli_base_url: str = Field(
        default="https://api.song.link/v1-alpha.1/links",
        description="Odesli links endpoint",
    )
    odesli_api_key: str | None = Field(
        default=None, description="Optional API key raising the public rate limit"
    )
    user_country: str = Field(default="US", description="Country used for lookups")
    timeout_seconds: float = Field(
        default=10.0, gt=0, description="Total request timeout in seconds"
    )
    min_interval_seconds: float = Field(
        default=1.0, ge=0, description="Minimum spacing between request starts"
    )
    max_per_minute: int = Field(
        default=10, ge=1, description="Maximum request starts per rolling minute"
    )
    max_rate_limit_retries: int = Field(
        default=3, ge=0, description="Retries after an HTTP 429 response"
    )
