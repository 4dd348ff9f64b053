"""Shared domain models."""

from .task import (
    TASK_TRANSITIONS,
    TERMINAL_STATUSES,
    EnrichmentKind,
    Task,
    TaskStatus,
)
from .track import (
    PRIMARY_PLATFORM,
    CommitResult,
    CoverageStats,
    EnrichmentOutcome,
    Platform,
    PlatformLink,
    ReleaseDateEstimate,
    TrackAttribute,
    TrackRef,
)

__all__ = [
    "PRIMARY_PLATFORM",
    "TASK_TRANSITIONS",
    "TERMINAL_STATUSES",
    "CommitResult",
    "CoverageStats",
    "EnrichmentKind",
    "EnrichmentOutcome",
    "Platform",
    "PlatformLink",
    "ReleaseDateEstimate",
    "Task",
    "TaskStatus",
    "TrackAttribute",
    "TrackRef",
]
