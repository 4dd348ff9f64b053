"""Pydantic models for tracks and the derived attributes filled in by enrichment."""

from datetime import date
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class TrackAttribute(str, Enum):
    """Derived track attribute that an enrichment run fills in."""

    EMBEDDING = "embedding"
    PLATFORM_LINKS = "platform_links"
    RELEASE_DATE = "release_date"


class Platform(str, Enum):
    """Streaming platform classification (mirrors the ``platform`` enum in the store)."""

    SPOTIFY = "spotify"
    DEEZER = "deezer"
    APPLE_MUSIC = "apple_music"
    AMAZON_MUSIC = "amazon_music"
    TIDAL = "tidal"
    YOUTUBE = "youtube"


PRIMARY_PLATFORM = Platform.SPOTIFY


class TrackRef(BaseModel):
    """Read-only projection of a track handed to enrichment strategies."""

    model_config = ConfigDict(frozen=True)

    id: int = Field(..., description="Immutable track identity")
    title: str = Field(..., description="Track title")
    popularity: int | None = Field(
        default=None, description="Custom popularity score used as scan priority"
    )
    album_title: str | None = Field(default=None, description="Album title")
    artist_names: list[str] = Field(default_factory=list, description="Artist names")
    genres: list[str] = Field(default_factory=list, description="Genre names")
    primary_platform_id: str | None = Field(
        default=None, description="Identifier on the primary platform (Spotify)"
    )


class PlatformLink(BaseModel):
    """A track's identity on one streaming platform, unique per (track_id, platform)."""

    model_config = ConfigDict(frozen=True)

    track_id: int
    platform: Platform
    platform_id: str = Field(..., min_length=1)
    platform_url: str | None = None


class ReleaseDateEstimate(BaseModel):
    """Estimated release date and where it came from."""

    release_date: date
    confidence: float | None = Field(default=None, ge=0.0, le=1.0)
    source: Literal["ai", "heuristic"]


class EnrichmentOutcome(BaseModel):
    """Per-record result of resolving one track: either a result or an error."""

    track_id: int
    result: Any = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class CommitResult(str, Enum):
    """Effect of an idempotent commit."""

    WRITTEN = "written"
    SKIPPED = "skipped"


class CoverageStats(BaseModel):
    """How many tracks already carry a derived attribute."""

    attribute: TrackAttribute
    total_tracks: int = Field(..., ge=0)
    missing: int = Field(..., ge=0)
    percent_complete: float = Field(..., ge=0.0, le=100.0)

    @classmethod
    def from_counts(
        cls, attribute: TrackAttribute, total_tracks: int, missing: int
    ) -> "CoverageStats":
        """Build stats from raw counts, clamping ``missing`` to ``total_tracks``."""
        missing = min(missing, total_tracks)
        percent = (
            round((total_tracks - missing) / total_tracks * 100, 2)
            if total_tracks
            else 100.0
        )
        return cls(
            attribute=attribute,
            total_tracks=total_tracks,
            missing=missing,
            percent_complete=percent,
        )
