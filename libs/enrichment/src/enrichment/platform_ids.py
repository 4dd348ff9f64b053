"""
Platform ID extraction for streaming-platform links.
Programmatic, table-driven extraction of platform IDs from URLs - no ad hoc parsing.
Adding a platform means adding a table entry, not code.
"""

import logging
import re
from collections.abc import Callable, Collection
from typing import Any

from common.models import PRIMARY_PLATFORM, Platform, PlatformLink

logger = logging.getLogger(__name__)

UrlParser = Callable[[str], str | None]


def regex_parser(*patterns: str) -> UrlParser:
    """Build a pure ``url -> identifier | None`` parser trying ``patterns`` in order.

    Each pattern must capture the identifier in group 1.
    """
    compiled = [re.compile(pattern, re.IGNORECASE) for pattern in patterns]

    def parse(url: str) -> str | None:
        if not url:
            return None
        for regex in compiled:
            match = regex.search(url)
            if match:
                return match.group(1)
        return None

    return parse


# Per-platform URL parsers
PLATFORM_URL_PARSERS: dict[Platform, UrlParser] = {
    Platform.SPOTIFY: regex_parser(r"open\.spotify\.com/(?:intl-[a-z]+/)?track/([A-Za-z0-9]+)"),
    Platform.YOUTUBE: regex_parser(r"[?&]v=([^&#]+)", r"youtu\.be/([^/?#]+)"),
    Platform.APPLE_MUSIC: regex_parser(r"[?&]i=(\d+)", r"/song/[^/]+/(\d+)"),
    Platform.AMAZON_MUSIC: regex_parser(r"[?&]trackAsin=([A-Z0-9]+)", r"/tracks?/([^/?#]+)"),
    Platform.TIDAL: regex_parser(r"/track/(\d+)"),
    Platform.DEEZER: regex_parser(r"/track/(\d+)"),
}

# Odesli ``linksByPlatform`` keys, in order of preference when two keys map to
# the same platform.
ODESLI_PLATFORM_KEYS: dict[str, Platform] = {
    "spotify": Platform.SPOTIFY,
    "youtubeMusic": Platform.YOUTUBE,
    "youtube": Platform.YOUTUBE,
    "appleMusic": Platform.APPLE_MUSIC,
    "amazonMusic": Platform.AMAZON_MUSIC,
    "tidal": Platform.TIDAL,
    "deezer": Platform.DEEZER,
}


def extract_platform_id(platform: Platform, url: str) -> str | None:
    """Extract the platform-native identifier from ``url`` using the parser table."""
    parser = PLATFORM_URL_PARSERS.get(platform)
    if parser is None:
        return None
    try:
        return parser(url)
    except Exception as e:
        logger.warning(f"Error extracting {platform.value} ID from {url}: {e}")
        return None


def _entity_suffix(entity_unique_id: str | None) -> str | None:
    """Return the native id from an Odesli ``PROVIDER_SONG::id`` entity key."""
    if not entity_unique_id or "::" not in entity_unique_id:
        return None
    return entity_unique_id.rsplit("::", 1)[-1] or None


def extract_platform_links(
    track_id: int,
    payload: dict[str, Any],
    exclude: Collection[Platform] = (PRIMARY_PLATFORM,),
) -> list[PlatformLink]:
    """
    Build platform links from an Odesli links document.

    Args:
        track_id: Track the links belong to
        payload: Decoded Odesli response with a ``linksByPlatform`` mapping
        exclude: Platforms to skip (the one already known)

    Returns:
        One link per recognized platform with a usable identifier

    Raises:
        ValueError: If ``linksByPlatform`` is missing or not a mapping
    """
    links_by_platform = payload.get("linksByPlatform")
    if not isinstance(links_by_platform, dict):
        raise ValueError("Odesli payload has no linksByPlatform mapping")

    links: list[PlatformLink] = []
    seen: set[Platform] = set(exclude)
    for key, platform in ODESLI_PLATFORM_KEYS.items():
        if platform in seen:
            continue
        entry = links_by_platform.get(key)
        if not isinstance(entry, dict):
            continue
        url = entry.get("url") or ""
        platform_id = extract_platform_id(platform, url) or _entity_suffix(
            entry.get("entityUniqueId")
        )
        if not platform_id:
            logger.debug(f"No {platform.value} ID found for track {track_id} in {url}")
            continue
        links.append(
            PlatformLink(
                track_id=track_id,
                platform=platform,
                platform_id=platform_id,
                platform_url=url or None,
            )
        )
        seen.add(platform)

    return links
