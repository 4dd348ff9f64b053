"""Supervised, self-restarting enrichment runs for one kind."""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from common.config import EnrichmentConfig
from common.models import EnrichmentKind, Task, TaskStatus

from .pacer import Pacer
from .registry import TaskRegistry

logger = logging.getLogger(__name__)

TaskRunner = Callable[[str, Pacer], Awaitable[Task]]


def backoff_delay(restarts: int, base: float, maximum: float) -> float:
    """Delay before restart number ``restarts`` (1-based): ``base * 2**(n-1)``, capped."""
    if restarts < 1:
        return 0.0
    return min(base * 2 ** (restarts - 1), maximum)


class EnrichmentSupervisor:
    """Runs enrichment tasks of one kind until stopped or out of retries.

    After a failed run the next task is created right away in ``starting``
    and launched once the backoff delay has passed; stopping that waiting
    task ends the supervisor. After a completed run the supervisor finishes,
    or, when ``rescan_interval_seconds`` is set, schedules the next pass the
    same way. The pacer is shared by every run of the kind, so the rate cap
    holds across restarts.
    """

    def __init__(
        self,
        kind: EnrichmentKind,
        runner: TaskRunner,
        registry: TaskRegistry,
        config: EnrichmentConfig,
        pacer: Pacer,
    ) -> None:
        self.kind = kind
        self.runner = runner
        self.registry = registry
        self.config = config
        self.pacer = pacer
        self.restarts = 0
        self.current_task_id: str | None = None
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> Task:
        """Create the first task and start supervising it in the background."""
        if self.running:
            raise RuntimeError(f"Supervisor for {self.kind.value} is already running")
        task = await self.registry.create(
            self.kind, restarts=0, max_restarts=self.config.max_restarts
        )
        self.current_task_id = task.id
        self._task = asyncio.create_task(
            self._supervise(task.id, delay=0.0), name=f"enrichment-{self.kind.value}"
        )
        return task

    async def _wait_before_run(self, task_id: str, delay: float) -> bool:
        """Sleep ``delay`` seconds; False when the task is stopped meanwhile."""
        if delay <= 0:
            return True
        stop_event = self.registry.stop_event(task_id)
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=delay)
        except TimeoutError:
            return True
        return False

    async def _supervise(self, task_id: str, delay: float) -> None:
        while True:
            await self._wait_before_run(task_id, delay)
            # A stop during the wait is observed by the runner itself
            final = await self.runner(task_id, self.pacer)

            if final.status == TaskStatus.STOPPED:
                logger.info(f"{self.kind.value}: task {task_id} stopped, supervisor exiting")
                return

            if final.status == TaskStatus.FAILED:
                self.restarts += 1
                if self.restarts > self.config.max_restarts:
                    logger.error(
                        f"{self.kind.value}: giving up after {self.restarts - 1} restarts "
                        f"(last error: {final.last_error})"
                    )
                    return
                delay = backoff_delay(
                    self.restarts,
                    self.config.restart_base_delay_seconds,
                    self.config.restart_max_delay_seconds,
                )
                message = f"Restarting in {delay:.0f}s after failure: {final.last_error}"
                logger.warning(f"{self.kind.value}: task {task_id} failed, {message}")
            else:
                self.restarts = 0
                if self.config.rescan_interval_seconds is None:
                    logger.info(f"{self.kind.value}: task {task_id} completed")
                    return
                delay = self.config.rescan_interval_seconds
                message = f"Next scan in {delay:.0f}s"

            task = await self.registry.create(
                self.kind,
                restarts=self.restarts,
                max_restarts=self.config.max_restarts,
                message=message,
            )
            task_id = task.id
            self.current_task_id = task_id

    async def stop(self) -> bool:
        """Stop the current task, and with it the supervisor."""
        if not self.running or self.current_task_id is None:
            return False
        return await self.registry.request_stop(self.current_task_id)

    async def wait(self, timeout: float | None = None) -> bool:
        """Wait for the supervisor to exit; cancels it after ``timeout`` seconds.

        Returns:
            True if it exited on its own.
        """
        if self._task is None:
            return True
        done, _ = await asyncio.wait({self._task}, timeout=timeout)
        if done:
            return True
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        return False
