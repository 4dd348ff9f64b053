"""Enrichment task lifecycle models."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from common.models.track import TrackAttribute


class EnrichmentKind(str, Enum):
    """Enrichment strategy a task runs."""

    EMBEDDING = "embedding"
    PLATFORM_RESOLUTION = "platform_resolution"
    RELEASE_DATE = "release_date"

    @property
    def attribute(self) -> TrackAttribute:
        """Track attribute filled in by this kind."""
        return _KIND_ATTRIBUTES[self]


_KIND_ATTRIBUTES: dict[EnrichmentKind, TrackAttribute] = {
    EnrichmentKind.EMBEDDING: TrackAttribute.EMBEDDING,
    EnrichmentKind.PLATFORM_RESOLUTION: TrackAttribute.PLATFORM_LINKS,
    EnrichmentKind.RELEASE_DATE: TrackAttribute.RELEASE_DATE,
}


class TaskStatus(str, Enum):
    """Task lifecycle state."""

    STARTING = "starting"
    COUNTING = "counting"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    STOPPING = "stopping"
    STOPPED = "stopped"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset(
    {TaskStatus.COMPLETED, TaskStatus.FAILED, TaskStatus.STOPPED}
)

# Allowed lifecycle edges; anything else is rejected by the registry.
TASK_TRANSITIONS: dict[TaskStatus, frozenset[TaskStatus]] = {
    TaskStatus.STARTING: frozenset(
        {TaskStatus.COUNTING, TaskStatus.FAILED, TaskStatus.STOPPING}
    ),
    TaskStatus.COUNTING: frozenset(
        {TaskStatus.PROCESSING, TaskStatus.FAILED, TaskStatus.STOPPING}
    ),
    TaskStatus.PROCESSING: frozenset(
        {TaskStatus.COMPLETED, TaskStatus.FAILED, TaskStatus.STOPPING}
    ),
    TaskStatus.STOPPING: frozenset({TaskStatus.STOPPED, TaskStatus.FAILED}),
    TaskStatus.COMPLETED: frozenset(),
    TaskStatus.FAILED: frozenset(),
    TaskStatus.STOPPED: frozenset(),
}


class Task(BaseModel):
    """One supervised run of an enrichment strategy."""

    id: str = Field(..., description="Time-sortable task identifier")
    kind: EnrichmentKind
    status: TaskStatus = TaskStatus.STARTING
    processed: int = Field(default=0, ge=0, description="Records attempted so far")
    total: int = Field(default=0, ge=0, description="Records missing at count time")
    failed: int = Field(default=0, ge=0, description="Per-record failures this run")
    start_time: datetime
    last_update: datetime
    last_error: str | None = None
    message: str | None = None
    restarts: int = Field(
        default=0, ge=0, description="Relaunches of this kind since the last success"
    )
    max_restarts: int = Field(default=0, ge=0)
