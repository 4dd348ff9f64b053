"""In-process registry of enrichment tasks and their lifecycle."""

import asyncio
import logging
from collections import deque
from typing import Any

from common.models import TASK_TRANSITIONS, EnrichmentKind, Task, TaskStatus
from common.utils.datetime_utils import utc_now
from common.utils.id_generation import generate_task_id

from .exceptions import InvalidTransitionError, TaskNotFoundError

logger = logging.getLogger(__name__)


class TaskRegistry:
    """Holds active tasks plus a bounded history of finished ones.

    Mutations go through an ``asyncio.Lock`` and validate the lifecycle, so
    concurrent route handlers and runners see consistent task state. Reads
    return copies.

    Args:
        history_size: Number of finished tasks kept for status queries.
    """

    def __init__(self, history_size: int = 100) -> None:
        self._lock = asyncio.Lock()
        self._active: dict[str, Task] = {}
        self._history: deque[Task] = deque(maxlen=history_size)
        self._stop_events: dict[str, asyncio.Event] = {}

    async def create(
        self,
        kind: EnrichmentKind,
        *,
        restarts: int = 0,
        max_restarts: int = 0,
        message: str | None = None,
    ) -> Task:
        """Register a new task in ``starting``."""
        now = utc_now()
        task = Task(
            id=generate_task_id(kind),
            kind=kind,
            start_time=now,
            last_update=now,
            restarts=restarts,
            max_restarts=max_restarts,
            message=message,
        )
        async with self._lock:
            self._active[task.id] = task
            self._stop_events[task.id] = asyncio.Event()
        logger.info(f"Created task {task.id} ({kind.value}, restart {restarts})")
        return task.model_copy()

    def _find(self, task_id: str) -> Task | None:
        task = self._active.get(task_id)
        if task is not None:
            return task
        return next((t for t in self._history if t.id == task_id), None)

    def get(self, task_id: str) -> Task | None:
        task = self._find(task_id)
        return task.model_copy() if task else None

    async def transition(self, task_id: str, status: TaskStatus, **fields: Any) -> Task:
        """Move a task to ``status``, updating any extra fields.

        Raises:
            TaskNotFoundError: The task is not active.
            InvalidTransitionError: The lifecycle does not allow the change.
        """
        async with self._lock:
            task = self._active.get(task_id)
            if task is None:
                raise TaskNotFoundError(task_id)
            if status not in TASK_TRANSITIONS[task.status]:
                raise InvalidTransitionError(
                    f"Task {task_id}: {task.status.value} -> {status.value} is not allowed"
                )
            updated = task.model_copy(
                update={**fields, "status": status, "last_update": utc_now()}
            )
            if status.is_terminal:
                del self._active[task_id]
                self._stop_events.pop(task_id, None)
                self._history.append(updated)
            else:
                self._active[task_id] = updated

        logger.info(f"Task {task_id}: {task.status.value} -> {status.value}")
        return updated.model_copy()

    async def update_progress(
        self,
        task_id: str,
        *,
        processed: int,
        failed: int,
        total: int | None = None,
        message: str | None = None,
    ) -> Task:
        """Record progress counters; ``total`` never drops below ``processed``."""
        async with self._lock:
            task = self._active.get(task_id)
            if task is None:
                raise TaskNotFoundError(task_id)
            new_total = task.total if total is None else total
            update: dict[str, Any] = {
                "processed": processed,
                "failed": failed,
                "total": max(new_total, processed),
                "last_update": utc_now(),
            }
            if message is not None:
                update["message"] = message
            updated = task.model_copy(update=update)
            self._active[task_id] = updated
        return updated.model_copy()

    async def request_stop(self, task_id: str) -> bool:
        """Ask a task to stop; False when it is unknown or already finished.

        The task moves to ``stopping`` right away and reaches ``stopped`` once
        its runner observes the request.
        """
        async with self._lock:
            event = self._stop_events.get(task_id)
            task = self._active.get(task_id)
            if event is None or task is None:
                return False
            event.set()
            if task.status != TaskStatus.STOPPING:
                self._active[task_id] = task.model_copy(
                    update={"status": TaskStatus.STOPPING, "last_update": utc_now()}
                )
        logger.info(f"Stop requested for task {task_id}: {task.status.value} -> stopping")
        return True

    def stop_event(self, task_id: str) -> asyncio.Event:
        """Event set when a stop is requested for an active task."""
        event = self._stop_events.get(task_id)
        if event is None:
            raise TaskNotFoundError(task_id)
        return event

    def list_active(self) -> list[Task]:
        return [task.model_copy() for task in self._active.values()]

    def list_history(self) -> list[Task]:
        """Finished tasks, most recent first."""
        return [task.model_copy() for task in reversed(self._history)]

    def active_for_kind(self, kind: EnrichmentKind) -> Task | None:
        return next(
            (t.model_copy() for t in self._active.values() if t.kind == kind), None
        )
