"""Release date estimation: an AI estimate first, a deterministic genre heuristic second."""

import json
import logging
from datetime import date
from typing import Any

from openai import AsyncOpenAI, OpenAIError

from common.models import EnrichmentKind, ReleaseDateEstimate, TrackRef

from ..exceptions import EnrichmentError
from .base import EnrichmentStrategy

logger = logging.getLogger(__name__)

DEFAULT_COMPLETION_MODEL = "gpt-4o"

# Used when no genre matches
FALLBACK_DECADES: tuple[int, ...] = (
    1960, 1965, 1970, 1975, 1980, 1985, 1990, 1995,
    2000, 2005, 2010, 2015, 2020, 2022, 2023, 2024,
)

# Genre substring -> plausible release years, checked in order
GENRE_ERAS: dict[str, tuple[int, ...]] = {
    # Classic genres
    "rock": (1965, 1970, 1975, 1980, 1985, 1990),
    "classical": (1700, 1750, 1800, 1850, 1900, 1950),
    "jazz": (1940, 1950, 1960, 1970),
    "blues": (1930, 1940, 1950, 1960),
    "folk": (1950, 1960, 1970, 1980),
    # Modern genres
    "electronic": (1990, 1995, 2000, 2005, 2010, 2015, 2020),
    "dance": (1990, 1995, 2000, 2005, 2010, 2015, 2020),
    "hip hop": (1985, 1990, 1995, 2000, 2005, 2010, 2015, 2020),
    "pop": (1970, 1980, 1990, 2000, 2010, 2020),
    "r&b": (1960, 1970, 1980, 1990, 2000, 2010, 2020),
    # Recent genres
    "trap": (2010, 2015, 2020, 2022, 2023),
    "edm": (2010, 2015, 2020),
    "k-pop": (2010, 2015, 2020, 2022, 2023),
    "indie": (2000, 2005, 2010, 2015, 2020),
}

SYSTEM_PROMPT = (
    "You are a music database specialist with extensive knowledge of music release "
    "dates from all eras and genres. Provide only the JSON object requested with no "
    "additional text."
)


def day_for(track_id: int) -> int:
    return track_id % 28 + 1


def heuristic_release_date(track: TrackRef) -> date:
    """Deterministic release date guess from the track's genres and id.

    The first genre containing a known genre name picks the era table,
    otherwise the fallback decades are used. The track id selects the year,
    month and day so the same track always gets the same date.
    """
    years = FALLBACK_DECADES
    for genre in track.genres:
        name = genre.lower()
        matched = next((eras for key, eras in GENRE_ERAS.items() if key in name), None)
        if matched:
            years = matched
            break

    year = years[track.id % len(years)]
    month = (track.id * 7) % 12 + 1
    return date(year, month, day_for(track.id))


def build_release_date_prompt(track: TrackRef) -> str:
    artists = f"by {', '.join(track.artist_names)}" if track.artist_names else ""
    album = f'from the album "{track.album_title}"' if track.album_title else ""
    genres = f"Genres: {', '.join(track.genres)}" if track.genres else ""
    return (
        f'Estimate the release year and month of the song "{track.title}" '
        f"{artists} {album}. {genres}\n\n"
        "Please respond with only a JSON object with format:\n"
        "{\n"
        '  "year": [year as number],\n'
        '  "month": [month as number from 1-12],\n'
        '  "confidence": [confidence score from 0.0-1.0]\n'
        "}\n\n"
        "If you're not sure, provide your best estimate with a lower confidence score."
    )


def parse_release_date_response(
    content: str | None, track_id: int, today: date | None = None
) -> ReleaseDateEstimate | None:
    """Validate a model reply; returns None when it is unusable."""
    if not content:
        return None
    try:
        data: Any = json.loads(content)
    except json.JSONDecodeError:
        logger.warning(f"Release date reply for track {track_id} is not JSON: {content!r}")
        return None
    if not isinstance(data, dict):
        return None

    year, month, confidence = data.get("year"), data.get("month"), data.get("confidence")
    numbers = (year, month, confidence)
    if any(isinstance(v, bool) or not isinstance(v, int | float) for v in numbers):
        logger.warning(f"Invalid release date reply for track {track_id}: {content!r}")
        return None

    max_year = (today or date.today()).year + 1
    if int(year) != year or int(month) != month:
        return None
    if not (1000 <= year <= max_year and 1 <= month <= 12 and 0 <= confidence <= 1):
        logger.warning(f"Out of range release date reply for track {track_id}: {content!r}")
        return None

    return ReleaseDateEstimate(
        release_date=date(int(year), int(month), day_for(track_id)),
        confidence=float(confidence),
        source="ai",
    )


class ReleaseDateEstimationStrategy(EnrichmentStrategy):
    """Fills in ``release_date``; every track ends up with a date."""

    kind = EnrichmentKind.RELEASE_DATE

    def __init__(
        self,
        client: AsyncOpenAI | None = None,
        *,
        model: str = DEFAULT_COMPLETION_MODEL,
        use_ai: bool = True,
    ) -> None:
        self.client = client
        self.model = model
        self.use_ai = use_ai and client is not None

    async def estimate_with_ai(self, track: TrackRef) -> ReleaseDateEstimate | None:
        """Ask the completion model; None when the call fails or the reply is unusable.

        Raises:
            EnrichmentError: No OpenAI client is configured.
        """
        if self.client is None:
            raise EnrichmentError("No OpenAI client configured for release date estimates")
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": build_release_date_prompt(track)},
                ],
                temperature=0.1,
                max_tokens=150,
                response_format={"type": "json_object"},
            )
        except OpenAIError as e:
            logger.warning(f"AI release date estimate failed for track {track.id}: {e}")
            return None

        content = response.choices[0].message.content if response.choices else None
        return parse_release_date_response(content, track.id)

    async def resolve_one(self, track: TrackRef) -> ReleaseDateEstimate:
        if self.use_ai:
            estimate = await self.estimate_with_ai(track)
            if estimate is not None:
                logger.info(
                    f"Track {track.id}: AI estimated {estimate.release_date} "
                    f"(confidence {estimate.confidence:.0%})"
                )
                return estimate

        estimate = ReleaseDateEstimate(
            release_date=heuristic_release_date(track), source="heuristic"
        )
        logger.debug(f"Track {track.id}: heuristic date {estimate.release_date}")
        return estimate

    def commit_value(self, result: ReleaseDateEstimate) -> date:
        return result.release_date
