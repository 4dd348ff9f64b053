"""Enrichment task control endpoints.

Start, stop and observe background enrichment runs per kind, and report how
much of the catalogue already carries each derived attribute.
"""

import logging
from datetime import datetime

from common.models import CoverageStats, EnrichmentKind, Task, TaskStatus
from common.utils.datetime_utils import elapsed_seconds
from enrichment import TaskCoordinator
from enrichment.exceptions import EnrichmentError
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from ..dependencies import get_coordinator

logger = logging.getLogger(__name__)

router = APIRouter()


class TaskResponse(BaseModel):
    """Response model for a task snapshot."""

    task_id: str = Field(..., description="Task identifier")
    kind: EnrichmentKind = Field(..., description="Enrichment kind")
    status: TaskStatus = Field(..., description="Lifecycle state")
    processed: int = Field(..., description="Records attempted so far")
    total: int = Field(..., description="Records missing at count time")
    failed: int = Field(..., description="Per-record failures in this run")
    progress_percent: float = Field(..., description="processed / total as a percentage")
    start_time: datetime
    last_update: datetime
    elapsed_seconds: float = Field(..., description="Seconds since the task started")
    restarts: int = Field(..., description="Relaunches since the last successful run")
    max_restarts: int
    last_error: str | None = None
    message: str | None = None

    @classmethod
    def from_task(cls, task: Task) -> "TaskResponse":
        progress = round(task.processed / task.total * 100, 2) if task.total else 0.0
        end = task.last_update if task.status.is_terminal else None
        return cls(
            task_id=task.id,
            kind=task.kind,
            status=task.status,
            processed=task.processed,
            total=task.total,
            failed=task.failed,
            progress_percent=progress,
            start_time=task.start_time,
            last_update=task.last_update,
            elapsed_seconds=round(elapsed_seconds(task.start_time, end), 3),
            restarts=task.restarts,
            max_restarts=task.max_restarts,
            last_error=task.last_error,
            message=task.message,
        )


class StartResponse(BaseModel):
    """Response model for a start request."""

    task_id: str
    status: TaskStatus
    already_running: bool = Field(
        ..., description="True when an existing run of this kind was returned"
    )


class StopResponse(BaseModel):
    """Response model for a stop request."""

    task_id: str
    acknowledged: bool = Field(..., description="False if the task had already finished")
    status: TaskStatus


class TaskListResponse(BaseModel):
    """Response model for the task listing."""

    active: list[TaskResponse]
    history: list[TaskResponse] | None = None


def _task_of_kind(coordinator: TaskCoordinator, kind: EnrichmentKind, task_id: str) -> Task:
    task = coordinator.status(task_id)
    if task is None or task.kind != kind:
        raise HTTPException(
            status_code=404, detail=f"No {kind.value} task with id {task_id}"
        )
    return task


@router.post("/{kind}/start", response_model=StartResponse)
async def start_enrichment(
    kind: EnrichmentKind,
    coordinator: TaskCoordinator = Depends(get_coordinator),
) -> StartResponse:
    """Start a supervised enrichment run for ``kind``.

    Only one run per kind is active at a time; a second start returns the
    running task.

    Raises:
        HTTPException: 503 if the kind cannot run with the current
            configuration, 500 on unexpected errors.
    """
    try:
        task, already_running = await coordinator.start(kind)
    except EnrichmentError as e:
        raise HTTPException(status_code=503, detail=str(e)) from e
    except Exception as e:
        logger.exception(f"Failed to start {kind.value} enrichment")
        raise HTTPException(
            status_code=500, detail=f"Failed to start enrichment: {str(e)}"
        ) from e

    return StartResponse(
        task_id=task.id, status=task.status, already_running=already_running
    )


@router.get("/{kind}/status/{task_id}", response_model=TaskResponse)
async def get_task_status(
    kind: EnrichmentKind,
    task_id: str,
    coordinator: TaskCoordinator = Depends(get_coordinator),
) -> TaskResponse:
    """Return a snapshot of one task.

    Raises:
        HTTPException: 404 if the task is unknown or belongs to another kind.
    """
    return TaskResponse.from_task(_task_of_kind(coordinator, kind, task_id))


@router.post("/{kind}/stop/{task_id}", response_model=StopResponse)
async def stop_task(
    kind: EnrichmentKind,
    task_id: str,
    coordinator: TaskCoordinator = Depends(get_coordinator),
) -> StopResponse:
    """Request a stop; the run ends at its next batch boundary.

    Raises:
        HTTPException: 404 if the task is unknown or belongs to another kind.
    """
    task = _task_of_kind(coordinator, kind, task_id)
    acknowledged = await coordinator.stop(task_id)
    current = coordinator.status(task_id) or task
    return StopResponse(task_id=task_id, acknowledged=acknowledged, status=current.status)


@router.get("/tasks", response_model=TaskListResponse)
async def list_tasks(
    include_history: bool = False,
    coordinator: TaskCoordinator = Depends(get_coordinator),
) -> TaskListResponse:
    """List active tasks, and optionally recently finished ones."""
    active = [TaskResponse.from_task(t) for t in coordinator.list_active()]
    history = (
        [TaskResponse.from_task(t) for t in coordinator.list_history()]
        if include_history
        else None
    )
    return TaskListResponse(active=active, history=history)


@router.get("/{kind}/stats", response_model=CoverageStats)
async def get_coverage_stats(
    kind: EnrichmentKind,
    coordinator: TaskCoordinator = Depends(get_coordinator),
) -> CoverageStats:
    """Return how many tracks already carry the attribute filled in by ``kind``.

    Raises:
        HTTPException: 500 if the statistics cannot be retrieved.
    """
    try:
        return await coordinator.coverage(kind)
    except Exception as e:
        logger.exception(f"Failed to get {kind.value} coverage")
        raise HTTPException(
            status_code=500, detail=f"Failed to retrieve coverage statistics: {str(e)}"
        ) from e
