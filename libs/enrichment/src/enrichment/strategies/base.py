"""Common contract for enrichment strategies."""

import logging
from abc import ABC, abstractmethod
from typing import Any

from common.models import EnrichmentKind, EnrichmentOutcome, TrackAttribute, TrackRef

from ..exceptions import TransientEnrichmentError

logger = logging.getLogger(__name__)


class EnrichmentStrategy(ABC):
    """Resolves one derived attribute for a batch of tracks.

    Subclasses implement ``resolve_one``. ``resolve`` owns the failure policy:
    records are resolved one after another, and an exception for one record
    becomes an error outcome for that record only.
    """

    kind: EnrichmentKind

    @property
    def attribute(self) -> TrackAttribute:
        return self.kind.attribute

    @abstractmethod
    async def resolve_one(self, track: TrackRef) -> Any:
        """Compute the attribute value for one track.

        Raises:
            Exception: Any failure; it is turned into an error outcome.
        """

    async def resolve(self, batch: list[TrackRef]) -> list[EnrichmentOutcome]:
        """Resolve every track in ``batch``, one outcome per track in input order."""
        outcomes: list[EnrichmentOutcome] = []
        for track in batch:
            try:
                result = await self.resolve_one(track)
            except TransientEnrichmentError as e:
                logger.warning(
                    f"{self.kind.value}: track {track.id} will be retried later: {e}"
                )
                outcomes.append(EnrichmentOutcome(track_id=track.id, error=str(e)))
                continue
            except Exception as e:
                logger.exception(f"{self.kind.value}: failed to resolve track {track.id}")
                outcomes.append(
                    EnrichmentOutcome(
                        track_id=track.id, error=f"{type(e).__name__}: {e}"
                    )
                )
                continue
            outcomes.append(EnrichmentOutcome(track_id=track.id, result=result))
        return outcomes

    def commit_value(self, result: Any) -> Any:
        """Value handed to the store for a successful ``result``."""
        return result
