"""Coordination of enrichment runs: one task lifecycle per run, one supervisor per kind."""

import asyncio
import logging
from collections.abc import Callable, Mapping

from common.config import EnrichmentConfig
from common.models import CoverageStats, EnrichmentKind, Task, TaskStatus
from track_store import TrackStore

from .exceptions import EnrichmentError, InvalidTransitionError, TaskNotFoundError
from .pacer import Pacer
from .registry import TaskRegistry
from .scanner import BatchScanner
from .strategies import EnrichmentStrategy
from .supervisor import EnrichmentSupervisor

logger = logging.getLogger(__name__)

PacerFactory = Callable[[EnrichmentKind], Pacer]


class TaskCoordinator:
    """Starts, runs, stops and reports on enrichment tasks.

    Args:
        store: Record store scanned and written by every run.
        registry: Task registry shared with the control surface.
        strategies: Strategy per enrichment kind.
        config: Batching, pacing and supervision settings.
        pacer_factory: Builds the pacer for a kind; defaults to the configured pacing.
    """

    def __init__(
        self,
        store: TrackStore,
        registry: TaskRegistry,
        strategies: Mapping[EnrichmentKind, EnrichmentStrategy],
        config: EnrichmentConfig,
        pacer_factory: PacerFactory | None = None,
    ) -> None:
        self.store = store
        self.registry = registry
        self.strategies = dict(strategies)
        self.config = config
        self.pacer_factory = pacer_factory or (
            lambda kind: Pacer.from_config(config.pacing_for(kind))
        )
        self._supervisors: dict[EnrichmentKind, EnrichmentSupervisor] = {}
        self._pacers: dict[EnrichmentKind, Pacer] = {}
        self._start_lock = asyncio.Lock()

    def pacer(self, kind: EnrichmentKind) -> Pacer:
        """The pacer shared by every run of ``kind`` for the life of the coordinator."""
        if kind not in self._pacers:
            self._pacers[kind] = self.pacer_factory(kind)
        return self._pacers[kind]

    def _strategy(self, kind: EnrichmentKind) -> EnrichmentStrategy:
        strategy = self.strategies.get(kind)
        if strategy is None:
            raise EnrichmentError(f"No strategy configured for {kind.value}")
        return strategy

    async def start(self, kind: EnrichmentKind) -> tuple[Task, bool]:
        """Start a supervised run for ``kind`` unless one is already going.

        Returns:
            The current task for the kind and whether it was already running.
        """
        self._strategy(kind)
        async with self._start_lock:
            supervisor = self._supervisors.get(kind)
            if supervisor is not None and supervisor.running:
                current = self.registry.active_for_kind(kind) or self.registry.get(
                    supervisor.current_task_id or ""
                )
                if current is not None:
                    logger.info(f"{kind.value} already running as {current.id}")
                    return current, True

            supervisor = EnrichmentSupervisor(
                kind, self.run, self.registry, self.config, self.pacer(kind)
            )
            self._supervisors[kind] = supervisor
            task = await supervisor.start()
        logger.info(f"Started {kind.value} enrichment as task {task.id}")
        return task, False

    def status(self, task_id: str) -> Task | None:
        return self.registry.get(task_id)

    async def stop(self, task_id: str) -> bool:
        """Request a stop; the run ends at the next batch boundary or pacing wait."""
        for supervisor in self._supervisors.values():
            if supervisor.current_task_id == task_id and supervisor.running:
                return await supervisor.stop()
        return await self.registry.request_stop(task_id)

    def list_active(self) -> list[Task]:
        return self.registry.list_active()

    def list_history(self) -> list[Task]:
        return self.registry.list_history()

    async def coverage(self, kind: EnrichmentKind) -> CoverageStats:
        return await self.store.coverage(kind.attribute)

    async def shutdown(self, timeout: float = 30.0) -> None:
        """Stop every supervisor and wait for in-flight batches to finish."""
        supervisors = [s for s in self._supervisors.values() if s.running]
        for supervisor in supervisors:
            await supervisor.stop()
        results = await asyncio.gather(*(s.wait(timeout) for s in supervisors))
        for supervisor, clean in zip(supervisors, results, strict=True):
            if not clean:
                logger.warning(
                    f"{supervisor.kind.value} did not stop within {timeout}s and was cancelled"
                )

    async def run(self, task_id: str, pacer: Pacer) -> Task:
        """Execute one enrichment run to a terminal state.

        Store failures and other unexpected errors end the run as ``failed``;
        per-record failures only count towards ``failed``.
        """
        task = self.registry.get(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        kind = task.kind
        strategy = self._strategy(kind)
        attribute = kind.attribute
        batch_size = self.config.pacing_for(kind).batch_size
        stop_event = self.registry.stop_event(task_id)
        processed = failed = 0

        try:
            if stop_event.is_set():
                return await self._finish_stopped(task_id, processed)

            await self.registry.transition(task_id, TaskStatus.COUNTING)
            total = await self.store.count(attribute)
            if stop_event.is_set():
                return await self._finish_stopped(task_id, processed)
            await self.registry.transition(
                task_id,
                TaskStatus.PROCESSING,
                total=total,
                message=f"{total} tracks missing {attribute.value}",
            )
            logger.info(f"Task {task_id}: {total} tracks missing {attribute.value}")

            scanner = BatchScanner(self.store, attribute, batch_size)
            while True:
                # Pace before every scan; the pacer carries calls across runs
                if not await pacer.wait(batch_size, stop_event):
                    return await self._finish_stopped(task_id, processed)

                batch = await scanner.next()
                if stop_event.is_set():
                    return await self._finish_stopped(task_id, processed)
                if not batch:
                    logger.info(
                        f"Task {task_id}: completed, {processed} processed, {failed} failed"
                    )
                    return await self.registry.transition(
                        task_id,
                        TaskStatus.COMPLETED,
                        message=f"Processed {processed} tracks, {failed} failed",
                    )

                outcomes = await strategy.resolve(batch)
                pacer.record(len(batch))

                batch_failed = 0
                for outcome in outcomes:
                    if not outcome.ok:
                        batch_failed += 1
                        continue
                    await self.store.commit(
                        outcome.track_id, attribute, strategy.commit_value(outcome.result)
                    )
                scanner.mark_unresolved(batch_failed)

                processed += len(batch)
                failed += batch_failed
                current = await self.registry.update_progress(
                    task_id, processed=processed, failed=failed
                )
                logger.info(
                    f"Task {task_id}: {current.processed}/{current.total} processed "
                    f"({batch_failed} failed in this batch)"
                )

        except asyncio.CancelledError:
            await self._finish_stopped(task_id, processed)
            raise
        except Exception as e:
            logger.exception(f"Task {task_id} failed")
            return await self._finish_failed(task_id, e)

    async def _finish_stopped(self, task_id: str, processed: int) -> Task:
        current = self.registry.get(task_id)
        if current is None:
            raise TaskNotFoundError(task_id)
        if current.status.is_terminal:
            return current
        if current.status != TaskStatus.STOPPING:
            await self.registry.transition(task_id, TaskStatus.STOPPING)
        logger.info(f"Task {task_id}: stopped after {processed} tracks")
        return await self.registry.transition(
            task_id, TaskStatus.STOPPED, message=f"Stopped after {processed} tracks"
        )

    async def _finish_failed(self, task_id: str, error: Exception) -> Task:
        message = f"{type(error).__name__}: {error}"
        try:
            return await self.registry.transition(
                task_id, TaskStatus.FAILED, last_error=message, message="Run failed"
            )
        except (InvalidTransitionError, TaskNotFoundError):
            logger.warning(f"Task {task_id} already finished, dropping error: {message}")
            current = self.registry.get(task_id)
            if current is None:
                raise
            return current
