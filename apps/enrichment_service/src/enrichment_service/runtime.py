"""Build runtime dependencies for enrichment_service.

This module defines the runtime container and startup factory used by
enrichment_service. It wires the track store, external API clients,
strategies, task registry and coordinator from settings.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from common.config import Settings
from common.models import EnrichmentKind
from enrichment import TaskCoordinator, TaskRegistry
from enrichment.api_helpers.odesli_client import OdesliClient
from enrichment.api_helpers.odesli_rate_limiter import RequestRateLimiter
from enrichment.strategies import (
    EmbeddingStrategy,
    EnrichmentStrategy,
    PlatformResolutionStrategy,
    ReleaseDateEstimationStrategy,
)
from openai import AsyncOpenAI
from track_store import PostgresTrackStore, TrackStore

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class EnrichmentRuntime:
    """Runtime dependencies owned by enrichment_service."""

    store: TrackStore
    registry: TaskRegistry
    coordinator: TaskCoordinator
    openai_client: AsyncOpenAI | None
    odesli_client: OdesliClient


def build_openai_client(settings: Settings) -> AsyncOpenAI | None:
    """Create the OpenAI client, or None when no API key is configured."""
    if not settings.openai.openai_api_key:
        logger.warning(
            "No OpenAI API key configured: embeddings are disabled and release "
            "dates use the genre heuristic only"
        )
        return None
    return AsyncOpenAI(
        api_key=settings.openai.openai_api_key,
        base_url=settings.openai.openai_base_url,
        timeout=settings.openai.request_timeout,
    )


def build_odesli_client(settings: Settings) -> OdesliClient:
    odesli = settings.odesli
    return OdesliClient(
        limiter=RequestRateLimiter(
            min_interval_seconds=odesli.min_interval_seconds,
            max_per_window=odesli.max_per_minute,
        ),
        base_url=odesli.odesli_base_url,
        api_key=odesli.odesli_api_key,
        user_country=odesli.user_country,
        timeout_seconds=odesli.timeout_seconds,
        max_rate_limit_retries=odesli.max_rate_limit_retries,
    )


def build_strategies(
    settings: Settings,
    openai_client: AsyncOpenAI | None,
    odesli_client: OdesliClient,
) -> dict[EnrichmentKind, EnrichmentStrategy]:
    """One strategy per kind that can run with the configured clients."""
    strategies: dict[EnrichmentKind, EnrichmentStrategy] = {
        EnrichmentKind.PLATFORM_RESOLUTION: PlatformResolutionStrategy(odesli_client),
        EnrichmentKind.RELEASE_DATE: ReleaseDateEstimationStrategy(
            openai_client,
            model=settings.openai.completion_model,
            use_ai=settings.openai.use_ai_release_dates,
        ),
    }
    if openai_client is not None:
        strategies[EnrichmentKind.EMBEDDING] = EmbeddingStrategy(
            openai_client,
            model=settings.openai.embedding_model,
            dimensions=settings.enrichment.embedding_dimensions,
        )
    return strategies


async def build_runtime(
    settings: Settings, store: TrackStore | None = None
) -> EnrichmentRuntime:
    """Initialize runtime state for enrichment_service.

    Opens the PostgreSQL store (and applies its schema additions) unless a
    store is passed in.

    Args:
        settings: Resolved application settings.
        store: Optional pre-built store.

    Returns:
        Runtime values used by route handlers.
    """
    if store is None:
        postgres = PostgresTrackStore(
            settings.database,
            embedding_dimensions=settings.enrichment.embedding_dimensions,
        )
        await postgres.open()
        try:
            await postgres.ensure_schema()
        except Exception:
            await postgres.close()
            raise
        store = postgres

    openai_client = build_openai_client(settings)
    odesli_client = build_odesli_client(settings)
    registry = TaskRegistry(history_size=settings.enrichment.history_size)
    coordinator = TaskCoordinator(
        store,
        registry,
        build_strategies(settings, openai_client, odesli_client),
        settings.enrichment,
    )
    return EnrichmentRuntime(
        store=store,
        registry=registry,
        coordinator=coordinator,
        openai_client=openai_client,
        odesli_client=odesli_client,
    )


async def close_runtime(runtime: EnrichmentRuntime) -> None:
    """Stop running tasks, then close clients and the store."""
    await runtime.coordinator.shutdown()
    try:
        await runtime.odesli_client.close()
    except Exception:
        logger.exception("Error closing Odesli client")
    if runtime.openai_client is not None:
        try:
            await runtime.openai_client.close()
        except Exception:
            logger.exception("Error closing OpenAI client")
    await runtime.store.close()
