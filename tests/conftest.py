"""
Root test configuration for all tests.

Sets a development environment for settings and provides an in-memory track
store that mirrors the PostgreSQL store's predicates and commit semantics.
"""

import os
from datetime import date
from typing import Any

import pytest

os.environ.setdefault("APP_ENV", "development")

from common.config import EnrichmentConfig, PacingConfig  # noqa: E402
from common.models import (  # noqa: E402
    PRIMARY_PLATFORM,
    CommitResult,
    CoverageStats,
    EnrichmentKind,
    PlatformLink,
    TrackAttribute,
    TrackRef,
)
from track_store import TrackStore  # noqa: E402


def make_track(
    track_id: int,
    *,
    popularity: int | None = None,
    genres: list[str] | None = None,
    spotify_id: str | None = "sp",
    title: str | None = None,
    artists: list[str] | None = None,
    album: str | None = None,
) -> TrackRef:
    """Build a TrackRef with sensible defaults for tests."""
    return TrackRef(
        id=track_id,
        title=title or f"Track {track_id}",
        popularity=popularity,
        album_title=album,
        artist_names=artists if artists is not None else [f"Artist {track_id}"],
        genres=genres or [],
        primary_platform_id=f"{spotify_id}{track_id}" if spotify_id else None,
    )


class InMemoryTrackStore(TrackStore):
    """Track store backed by dicts, with the same predicates as PostgresTrackStore."""

    def __init__(self, tracks: list[TrackRef] | None = None, dimensions: int = 3):
        self.tracks: dict[int, TrackRef] = {}
        self.embeddings: dict[int, list[float]] = {}
        self.release_dates: dict[int, date] = {}
        self.links: dict[int, dict[str, PlatformLink]] = {}
        self.platforms_resolved: set[int] = set()
        self.dimensions = dimensions
        self.scan_calls: list[tuple[TrackAttribute, int, int]] = []
        self.commit_calls: list[tuple[int, TrackAttribute]] = []
        self.scan_error: Exception | None = None
        self.commit_error: Exception | None = None
        for track in tracks or []:
            self.add(track)

    def add(self, track: TrackRef) -> None:
        self.tracks[track.id] = track
        if track.primary_platform_id:
            self.links[track.id] = {
                PRIMARY_PLATFORM.value: PlatformLink(
                    track_id=track.id,
                    platform=PRIMARY_PLATFORM,
                    platform_id=track.primary_platform_id,
                )
            }

    def _missing(self, attribute: TrackAttribute, track: TrackRef) -> bool:
        match attribute:
            case TrackAttribute.EMBEDDING:
                return track.id not in self.embeddings
            case TrackAttribute.RELEASE_DATE:
                return track.id not in self.release_dates
            case TrackAttribute.PLATFORM_LINKS:
                links = self.links.get(track.id, {})
                return (
                    PRIMARY_PLATFORM.value in links
                    and len(links) == 1
                    and track.id not in self.platforms_resolved
                )

    def _ordered_missing(self, attribute: TrackAttribute) -> list[TrackRef]:
        missing = [t for t in self.tracks.values() if self._missing(attribute, t)]
        return sorted(
            missing,
            key=lambda t: (t.popularity is None, -(t.popularity or 0), t.id),
        )

    async def scan_missing(
        self, attribute: TrackAttribute, *, limit: int, offset: int = 0
    ) -> list[TrackRef]:
        self.scan_calls.append((attribute, limit, offset))
        if self.scan_error is not None:
            raise self.scan_error
        return self._ordered_missing(attribute)[offset : offset + limit]

    async def count(self, attribute: TrackAttribute) -> int:
        return len(self._ordered_missing(attribute))

    async def coverage(self, attribute: TrackAttribute) -> CoverageStats:
        return CoverageStats.from_counts(
            attribute, len(self.tracks), await self.count(attribute)
        )

    async def commit(
        self, track_id: int, attribute: TrackAttribute, value: Any
    ) -> CommitResult:
        self.commit_calls.append((track_id, attribute))
        if self.commit_error is not None:
            raise self.commit_error
        match attribute:
            case TrackAttribute.EMBEDDING:
                if len(value) != self.dimensions:
                    raise ValueError("wrong embedding dimension")
                if track_id in self.embeddings:
                    return CommitResult.SKIPPED
                self.embeddings[track_id] = list(value)
                return CommitResult.WRITTEN
            case TrackAttribute.RELEASE_DATE:
                if track_id in self.release_dates:
                    return CommitResult.SKIPPED
                self.release_dates[track_id] = value
                return CommitResult.WRITTEN
            case TrackAttribute.PLATFORM_LINKS:
                existing = self.links.setdefault(track_id, {})
                written = 0
                for link in value:
                    if link.platform.value not in existing:
                        existing[link.platform.value] = link
                        written += 1
                first_attempt = track_id not in self.platforms_resolved
                self.platforms_resolved.add(track_id)
                return (
                    CommitResult.WRITTEN
                    if written or first_attempt
                    else CommitResult.SKIPPED
                )


@pytest.fixture
def memory_store() -> InMemoryTrackStore:
    return InMemoryTrackStore()


@pytest.fixture
def fast_config() -> EnrichmentConfig:
    """Enrichment config without delays, for running whole tasks in tests."""
    pacing = {
        kind: PacingConfig(batch_size=10, batch_delay_seconds=0, max_per_interval=1000)
        for kind in EnrichmentKind
    }
    return EnrichmentConfig(
        pacing=pacing,
        embedding_dimensions=3,
        restart_base_delay_seconds=0,
        restart_max_delay_seconds=0,
        max_restarts=2,
    )
