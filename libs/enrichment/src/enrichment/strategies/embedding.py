"""Semantic embedding of track text via an OpenAI-compatible embeddings API."""

import logging

from openai import AsyncOpenAI

from common.models import EnrichmentKind, TrackRef

from ..exceptions import MalformedResponseError
from .base import EnrichmentStrategy

logger = logging.getLogger(__name__)

DEFAULT_EMBEDDING_MODEL = "text-embedding-3-small"
DEFAULT_EMBEDDING_DIMENSIONS = 1536


def build_embedding_text(track: TrackRef) -> str:
    """Text embedded for a track: title, artists and, when known, genres."""
    text = f"Track: {track.title}\nArtist: {', '.join(track.artist_names)}\n"
    if track.genres:
        text += f"Genres: {', '.join(track.genres)}"
    return text


class EmbeddingStrategy(EnrichmentStrategy):
    """Fills in ``embedding`` with a fixed-dimension float vector."""

    kind = EnrichmentKind.EMBEDDING

    def __init__(
        self,
        client: AsyncOpenAI,
        *,
        model: str = DEFAULT_EMBEDDING_MODEL,
        dimensions: int = DEFAULT_EMBEDDING_DIMENSIONS,
    ) -> None:
        self.client = client
        self.model = model
        self.dimensions = dimensions

    async def resolve_one(self, track: TrackRef) -> list[float]:
        response = await self.client.embeddings.create(
            model=self.model,
            input=build_embedding_text(track),
            encoding_format="float",
        )
        if not response.data:
            raise MalformedResponseError(f"Empty embedding response for track {track.id}")

        vector = [float(v) for v in response.data[0].embedding]
        if len(vector) != self.dimensions:
            raise ValueError(
                f"Embedding for track {track.id} has {len(vector)} dimensions, "
                f"expected {self.dimensions}"
            )
        logger.debug(f"Embedded track {track.id} ({len(vector)} dimensions)")
        return vector
