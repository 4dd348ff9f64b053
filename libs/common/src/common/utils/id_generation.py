"""Identity generation utilities using ULID.

Task identifiers are opaque to callers but time-derived, so sorting them
orders tasks by creation time.
"""

from ulid import ULID

from common.models.task import EnrichmentKind


def generate_ulid(prefix: str) -> str:
    """Generate a new random, time-sortable ULID with a prefix.

    Args:
        prefix: Entity prefix without the trailing underscore (e.g. 'embedding').

    Returns:
        Prefixed ULID string (e.g., 'embedding_01ARZ3NDEKTSV4RRFFQ69G5FAV')
    """
    return f"{prefix}_{ULID()}"


def generate_task_id(kind: EnrichmentKind) -> str:
    """Generate a task identifier for an enrichment run of ``kind``."""
    return generate_ulid(kind.value)
