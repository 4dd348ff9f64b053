"""Cross-platform link resolution through Odesli (song.link)."""

import logging

from common.models import EnrichmentKind, PlatformLink, TrackRef

from ..api_helpers.odesli_client import OdesliClient
from ..exceptions import MalformedResponseError, OdesliNotFoundError
from ..platform_ids import extract_platform_links
from .base import EnrichmentStrategy

logger = logging.getLogger(__name__)


class PlatformResolutionStrategy(EnrichmentStrategy):
    """Resolves a track's identities on other platforms from its Spotify id.

    A successful result is a possibly empty list of links. Odesli not knowing
    the track is final and also yields an empty list, so the attempt is
    recorded and the track is not requested again.
    """

    kind = EnrichmentKind.PLATFORM_RESOLUTION

    def __init__(self, client: OdesliClient) -> None:
        self.client = client

    async def resolve_one(self, track: TrackRef) -> list[PlatformLink]:
        if not track.primary_platform_id:
            raise ValueError(f"Track {track.id} has no Spotify id")

        try:
            payload = await self.client.get_links(track.primary_platform_id)
        except OdesliNotFoundError:
            logger.info(f"Odesli has no entry for track {track.id}, recording no links")
            return []

        try:
            links = extract_platform_links(track.id, payload)
        except ValueError as e:
            raise MalformedResponseError(str(e)) from e

        logger.debug(
            f"Track {track.id}: found {len(links)} links "
            f"({', '.join(link.platform.value for link in links) or 'none'})"
        )
        return links
