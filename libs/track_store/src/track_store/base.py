"""Abstract base class for track stores."""

from abc import ABC, abstractmethod
from typing import Any

from common.models import CommitResult, CoverageStats, TrackAttribute, TrackRef


class TrackStore(ABC):
    """Record store surface consumed by the enrichment pipeline.

    Implementations must re-evaluate the missing-attribute predicate on every
    call and make ``commit`` idempotent: scalar attributes are only written
    while still NULL, and platform links are inserted with skip-if-present
    semantics.
    """

    @abstractmethod
    async def scan_missing(
        self, attribute: TrackAttribute, *, limit: int, offset: int = 0
    ) -> list[TrackRef]:
        """Return up to ``limit`` tracks lacking ``attribute``, highest priority first."""

    @abstractmethod
    async def count(self, attribute: TrackAttribute) -> int:
        """Return how many tracks currently lack ``attribute``."""

    @abstractmethod
    async def commit(
        self, track_id: int, attribute: TrackAttribute, value: Any
    ) -> CommitResult:
        """Persist a derived value for one track."""

    @abstractmethod
    async def coverage(self, attribute: TrackAttribute) -> CoverageStats:
        """Return coverage statistics for ``attribute``."""

    async def open(self) -> None:
        """Acquire resources. No-op by default."""

    async def close(self) -> None:
        """Release resources. No-op by default."""

    async def __aenter__(self) -> "TrackStore":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
