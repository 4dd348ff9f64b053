"""Enrichment strategies, one per derived track attribute."""

from .base import EnrichmentStrategy
from .embedding import EmbeddingStrategy, build_embedding_text
from .platform_resolution import PlatformResolutionStrategy
from .release_date import ReleaseDateEstimationStrategy, heuristic_release_date

__all__ = [
    "EmbeddingStrategy",
    "EnrichmentStrategy",
    "PlatformResolutionStrategy",
    "ReleaseDateEstimationStrategy",
    "build_embedding_text",
    "heuristic_release_date",
]
