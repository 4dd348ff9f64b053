"""Live, offset-aware scanning of records that still lack an attribute."""

import logging

from common.models import TrackAttribute, TrackRef
from track_store import TrackStore

logger = logging.getLogger(__name__)


class BatchScanner:
    """Pulls batches of unresolved tracks from the store.

    Every call re-runs the missing-attribute query, so records resolved
    elsewhere drop out on their own. Records that failed in this pass still
    match the predicate and sort first; the scanner skips them with an offset
    equal to the number of failures so far, which keeps one pass from
    re-requesting them.
    """

    def __init__(self, store: TrackStore, attribute: TrackAttribute, batch_size: int):
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        self.store = store
        self.attribute = attribute
        self.batch_size = batch_size
        self.unresolved = 0

    async def next(self) -> list[TrackRef]:
        """Next batch of at most ``batch_size`` tracks; empty when the pass is done."""
        return await self.store.scan_missing(
            self.attribute, limit=self.batch_size, offset=self.unresolved
        )

    def mark_unresolved(self, count: int) -> None:
        """Skip ``count`` more records that failed and still match the predicate."""
        if count > 0:
            self.unresolved += count
            logger.debug(
                f"{self.attribute.value}: {self.unresolved} unresolved records skipped this pass"
            )
