"""Track enrichment library.

This library contains the enrichment pipeline:
- Strategies that compute derived track attributes (embeddings, platform links, release dates)
- Batch scanning and pacing against the track store
- Task registry, coordinator and per-kind supervisor
- API helpers for external services
"""

from .coordinator import TaskCoordinator
from .pacer import Pacer
from .registry import TaskRegistry
from .scanner import BatchScanner
from .supervisor import EnrichmentSupervisor

__all__ = [
    "BatchScanner",
    "EnrichmentSupervisor",
    "Pacer",
    "TaskCoordinator",
    "TaskRegistry",
]
