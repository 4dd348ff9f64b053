"""End-to-end tests for enrichment runs against the in-memory store."""

import asyncio
from datetime import date

import pytest
from common.config import EnrichmentConfig, PacingConfig
from common.models import EnrichmentKind, Platform, PlatformLink, TaskStatus
from track_store import TrackStoreConnectionError

from enrichment.coordinator import TaskCoordinator
from enrichment.exceptions import EnrichmentError
from enrichment.pacer import Pacer
from enrichment.registry import TaskRegistry
from enrichment.strategies import EnrichmentStrategy

from tests.conftest import InMemoryTrackStore, make_track


class FakeReleaseDates(EnrichmentStrategy):
    """Gives every track 2000-01-01 unless told to fail it."""

    kind = EnrichmentKind.RELEASE_DATE

    def __init__(self, fail_ids=(), fail_once_ids=()):
        self.fail_ids = set(fail_ids)
        self.fail_once_ids = set(fail_once_ids)
        self.calls: list[int] = []
        self.gate: asyncio.Event | None = None
        self.entered = asyncio.Event()

    async def resolve_one(self, track):
        self.calls.append(track.id)
        self.entered.set()
        if self.gate is not None:
            await self.gate.wait()
        if track.id in self.fail_ids:
            raise RuntimeError(f"cannot resolve {track.id}")
        if track.id in self.fail_once_ids:
            self.fail_once_ids.discard(track.id)
            raise RuntimeError(f"transient failure for {track.id}")
        return date(2000, 1, 1)


class FakePlatforms(EnrichmentStrategy):
    kind = EnrichmentKind.PLATFORM_RESOLUTION

    async def resolve_one(self, track):
        if track.id % 2:
            return [PlatformLink(track_id=track.id, platform=Platform.DEEZER, platform_id=str(track.id))]
        return []


def _coordinator(store, strategy, config):
    registry = TaskRegistry()
    return TaskCoordinator(store, registry, {strategy.kind: strategy}, config), registry


def _pacer(config, kind=EnrichmentKind.RELEASE_DATE):
    return Pacer.from_config(config.pacing_for(kind))


async def _run(coordinator, registry, config, kind=EnrichmentKind.RELEASE_DATE):
    task = await registry.create(kind)
    return await coordinator.run(task.id, _pacer(config, kind))


async def _wait_until(predicate, timeout=2.0):
    async def _poll():
        while not predicate():
            await asyncio.sleep(0.005)

    await asyncio.wait_for(_poll(), timeout)


@pytest.mark.asyncio
async def test_run_processes_all_missing_tracks_in_batches(fast_config):
    store = InMemoryTrackStore([make_track(i) for i in range(1, 26)])
    strategy = FakeReleaseDates()
    coordinator, registry = _coordinator(store, strategy, fast_config)

    final = await _run(coordinator, registry, fast_config)

    assert final.status == TaskStatus.COMPLETED
    assert final.processed == 25
    assert final.total == 25
    assert final.failed == 0
    assert len(store.release_dates) == 25
    # three batches (10, 10, 5) and a final empty scan
    assert [limit for _, limit, _ in store.scan_calls] == [10, 10, 10, 10]
    assert await store.count(EnrichmentKind.RELEASE_DATE.attribute) == 0


@pytest.mark.asyncio
async def test_empty_store_completes_immediately(fast_config):
    store = InMemoryTrackStore()
    coordinator, registry = _coordinator(store, FakeReleaseDates(), fast_config)

    final = await _run(coordinator, registry, fast_config)

    assert final.status == TaskStatus.COMPLETED
    assert (final.processed, final.total) == (0, 0)


@pytest.mark.asyncio
async def test_tracks_processed_in_priority_order(fast_config):
    store = InMemoryTrackStore(
        [make_track(1, popularity=5), make_track(2), make_track(3, popularity=80), make_track(4, popularity=80)]
    )
    strategy = FakeReleaseDates()
    coordinator, registry = _coordinator(store, strategy, fast_config)

    await _run(coordinator, registry, fast_config)

    assert strategy.calls == [3, 4, 1, 2]


@pytest.mark.asyncio
async def test_failed_records_counted_and_not_retried_within_run(fast_config):
    store = InMemoryTrackStore([make_track(i) for i in range(1, 26)])
    strategy = FakeReleaseDates(fail_ids={3, 12})
    coordinator, registry = _coordinator(store, strategy, fast_config)

    final = await _run(coordinator, registry, fast_config)

    assert final.status == TaskStatus.COMPLETED
    assert final.failed == 2
    assert final.processed == 25
    assert strategy.calls.count(3) == 1
    assert strategy.calls.count(12) == 1
    assert set(store.release_dates) == set(range(1, 26)) - {3, 12}


@pytest.mark.asyncio
async def test_transient_failures_converge_on_next_run(fast_config):
    store = InMemoryTrackStore([make_track(i) for i in range(1, 11)])
    strategy = FakeReleaseDates(fail_once_ids={2, 7})
    coordinator, registry = _coordinator(store, strategy, fast_config)

    first = await _run(coordinator, registry, fast_config)
    second = await _run(coordinator, registry, fast_config)

    assert first.failed == 2
    assert second.processed == 2
    assert second.failed == 0
    assert len(store.release_dates) == 10


@pytest.mark.asyncio
async def test_rerun_is_idempotent(fast_config):
    store = InMemoryTrackStore([make_track(i) for i in range(1, 6)])
    coordinator, registry = _coordinator(store, FakeReleaseDates(), fast_config)

    await _run(coordinator, registry, fast_config)
    commits_after_first = len(store.commit_calls)
    second = await _run(coordinator, registry, fast_config)

    assert second.status == TaskStatus.COMPLETED
    assert second.processed == 0
    assert len(store.commit_calls) == commits_after_first


@pytest.mark.asyncio
async def test_platform_run_marks_every_attempt(fast_config):
    store = InMemoryTrackStore([make_track(i) for i in range(1, 5)] + [make_track(9, spotify_id=None)])
    coordinator, registry = _coordinator(store, FakePlatforms(), fast_config)

    final = await _run(coordinator, registry, fast_config, EnrichmentKind.PLATFORM_RESOLUTION)

    assert final.processed == 4
    assert store.platforms_resolved == {1, 2, 3, 4}
    assert Platform.DEEZER.value in store.links[1]
    assert Platform.DEEZER.value not in store.links[2]
    assert await store.count(EnrichmentKind.PLATFORM_RESOLUTION.attribute) == 0


@pytest.mark.asyncio
async def test_store_failure_fails_task_with_error(fast_config):
    store = InMemoryTrackStore([make_track(1)])
    store.scan_error = TrackStoreConnectionError("connection refused")
    coordinator, registry = _coordinator(store, FakeReleaseDates(), fast_config)

    final = await _run(coordinator, registry, fast_config)

    assert final.status == TaskStatus.FAILED
    assert "connection refused" in final.last_error


@pytest.mark.asyncio
async def test_commit_failure_fails_task(fast_config):
    store = InMemoryTrackStore([make_track(1)])
    store.commit_error = TrackStoreConnectionError("write failed")
    coordinator, registry = _coordinator(store, FakeReleaseDates(), fast_config)

    final = await _run(coordinator, registry, fast_config)

    assert final.status == TaskStatus.FAILED
    assert "write failed" in final.last_error


@pytest.mark.asyncio
async def test_stop_finishes_in_flight_batch_then_stops(fast_config):
    store = InMemoryTrackStore([make_track(i) for i in range(1, 26)])
    strategy = FakeReleaseDates()
    strategy.gate = asyncio.Event()
    coordinator, registry = _coordinator(store, strategy, fast_config)
    task = await registry.create(EnrichmentKind.RELEASE_DATE)

    runner = asyncio.create_task(coordinator.run(task.id, _pacer(fast_config)))
    await asyncio.wait_for(strategy.entered.wait(), 1.0)
    assert await coordinator.stop(task.id) is True
    assert registry.get(task.id).status == TaskStatus.STOPPING
    strategy.gate.set()
    final = await asyncio.wait_for(runner, 1.0)

    assert final.status == TaskStatus.STOPPED
    assert final.processed == 10
    assert len(store.release_dates) == 10


@pytest.mark.asyncio
async def test_stop_interrupts_pacing_wait():
    config = EnrichmentConfig(
        pacing={
            EnrichmentKind.RELEASE_DATE: PacingConfig(
                batch_size=2, batch_delay_seconds=3600, max_per_interval=100
            )
        }
    )
    store = InMemoryTrackStore([make_track(i) for i in range(1, 10)])
    coordinator, registry = _coordinator(store, FakeReleaseDates(), config)
    task = await registry.create(EnrichmentKind.RELEASE_DATE)

    runner = asyncio.create_task(coordinator.run(task.id, _pacer(config)))
    await _wait_until(lambda: registry.get(task.id).processed == 2)
    await coordinator.stop(task.id)
    final = await asyncio.wait_for(runner, 1.0)

    assert final.status == TaskStatus.STOPPED
    assert final.processed == 2


@pytest.mark.asyncio
async def test_stop_before_start_skips_counting(fast_config):
    store = InMemoryTrackStore([make_track(1)])
    coordinator, registry = _coordinator(store, FakeReleaseDates(), fast_config)
    task = await registry.create(EnrichmentKind.RELEASE_DATE)
    await registry.request_stop(task.id)

    final = await coordinator.run(task.id, _pacer(fast_config))

    assert final.status == TaskStatus.STOPPED
    assert store.scan_calls == []


@pytest.mark.asyncio
async def test_start_is_single_flight_per_kind(fast_config):
    store = InMemoryTrackStore([make_track(i) for i in range(1, 5)])
    strategy = FakeReleaseDates()
    strategy.gate = asyncio.Event()
    coordinator, registry = _coordinator(store, strategy, fast_config)

    first, already = await coordinator.start(EnrichmentKind.RELEASE_DATE)
    second, again = await coordinator.start(EnrichmentKind.RELEASE_DATE)

    assert already is False
    assert again is True
    assert second.id == first.id

    strategy.gate.set()
    await _wait_until(lambda: coordinator.status(first.id).status.is_terminal)
    assert coordinator.status(first.id).status == TaskStatus.COMPLETED
    assert [t.id for t in coordinator.list_history()] == [first.id]

    third, running = await coordinator.start(EnrichmentKind.RELEASE_DATE)
    assert running is False
    assert third.id != first.id
    await coordinator.shutdown(timeout=1.0)


@pytest.mark.asyncio
async def test_runs_of_one_kind_share_a_pacer(fast_config):
    store = InMemoryTrackStore([make_track(i) for i in range(1, 4)])
    coordinator, _ = _coordinator(store, FakeReleaseDates(), fast_config)

    first, _ = await coordinator.start(EnrichmentKind.RELEASE_DATE)
    await _wait_until(lambda: coordinator.status(first.id).status.is_terminal)
    pacer = coordinator.pacer(EnrichmentKind.RELEASE_DATE)
    assert pacer.calls_in_window() == 3

    second, _ = await coordinator.start(EnrichmentKind.RELEASE_DATE)
    await _wait_until(lambda: coordinator.status(second.id).status.is_terminal)

    assert coordinator.pacer(EnrichmentKind.RELEASE_DATE) is pacer
    assert pacer.calls_in_window() == 3


@pytest.mark.asyncio
async def test_start_without_strategy_raises(fast_config):
    coordinator, _ = _coordinator(InMemoryTrackStore(), FakeReleaseDates(), fast_config)

    with pytest.raises(EnrichmentError):
        await coordinator.start(EnrichmentKind.EMBEDDING)


@pytest.mark.asyncio
async def test_shutdown_stops_running_tasks(fast_config):
    store = InMemoryTrackStore([make_track(i) for i in range(1, 30)])
    strategy = FakeReleaseDates()
    strategy.gate = asyncio.Event()
    coordinator, registry = _coordinator(store, strategy, fast_config)
    task, _ = await coordinator.start(EnrichmentKind.RELEASE_DATE)
    await asyncio.wait_for(strategy.entered.wait(), 1.0)

    strategy.gate.set()
    await coordinator.shutdown(timeout=1.0)

    assert coordinator.status(task.id).status == TaskStatus.STOPPED
    assert coordinator.list_active() == []


@pytest.mark.asyncio
async def test_coverage(fast_config):
    store = InMemoryTrackStore([make_track(i) for i in range(1, 5)])
    store.release_dates[1] = date(1990, 1, 1)
    coordinator, _ = _coordinator(store, FakeReleaseDates(), fast_config)

    stats = await coordinator.coverage(EnrichmentKind.RELEASE_DATE)

    assert stats.total_tracks == 4
    assert stats.missing == 3
    assert stats.percent_complete == 25.0
