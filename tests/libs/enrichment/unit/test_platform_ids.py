"""Tests for the declarative platform URL parser table."""

import pytest
from common.models import Platform

from enrichment.platform_ids import (
    ODESLI_PLATFORM_KEYS,
    PLATFORM_URL_PARSERS,
    extract_platform_id,
    extract_platform_links,
)


@pytest.mark.parametrize(
    ("platform", "url", "expected"),
    [
        (Platform.SPOTIFY, "https://open.spotify.com/track/4uLU6hMCjMI75M1A2tKUQC", "4uLU6hMCjMI75M1A2tKUQC"),
        (Platform.YOUTUBE, "https://music.youtube.com/watch?v=dQw4w9WgXcQ&list=x", "dQw4w9WgXcQ"),
        (Platform.YOUTUBE, "https://youtu.be/dQw4w9WgXcQ", "dQw4w9WgXcQ"),
        (Platform.APPLE_MUSIC, "https://music.apple.com/us/album/x/1440857781?i=1440857786&uo=4", "1440857786"),
        (Platform.APPLE_MUSIC, "https://music.apple.com/us/song/never-gonna/1440857786", "1440857786"),
        (Platform.AMAZON_MUSIC, "https://music.amazon.com/albums/B01?trackAsin=B00TRACK01", "B00TRACK01"),
        (Platform.TIDAL, "https://listen.tidal.com/track/1434321", "1434321"),
        (Platform.DEEZER, "https://www.deezer.com/track/781592622", "781592622"),
    ],
)
def test_extract_platform_id(platform, url, expected):
    assert extract_platform_id(platform, url) == expected


def test_unparseable_url_returns_none():
    assert extract_platform_id(Platform.DEEZER, "https://www.deezer.com/album/1") is None
    assert extract_platform_id(Platform.TIDAL, "") is None


def test_every_platform_has_a_parser():
    assert set(PLATFORM_URL_PARSERS) == set(Platform)


def test_every_odesli_key_maps_to_a_known_platform():
    assert set(ODESLI_PLATFORM_KEYS.values()) <= set(Platform)


def _payload():
    return {
        "entityUniqueId": "SPOTIFY_SONG::abc",
        "linksByPlatform": {
            "spotify": {"url": "https://open.spotify.com/track/abc", "entityUniqueId": "SPOTIFY_SONG::abc"},
            "deezer": {"url": "https://www.deezer.com/track/111", "entityUniqueId": "DEEZER_SONG::111"},
            "youtubeMusic": {"url": "https://music.youtube.com/watch?v=ytm1", "entityUniqueId": "YOUTUBE_VIDEO::ytm1"},
            "youtube": {"url": "https://www.youtube.com/watch?v=yt2", "entityUniqueId": "YOUTUBE_VIDEO::yt2"},
            "tidal": {"url": "https://listen.tidal.com/unexpected", "entityUniqueId": "TIDAL_SONG::222"},
            "napster": {"url": "https://napster.com/track/1", "entityUniqueId": "NAPSTER_SONG::1"},
        },
    }


def test_extract_platform_links_skips_primary_and_unknown_platforms():
    links = extract_platform_links(5, _payload())
    by_platform = {link.platform: link for link in links}

    assert Platform.SPOTIFY not in by_platform
    assert set(by_platform) == {Platform.DEEZER, Platform.YOUTUBE, Platform.TIDAL}
    assert all(link.track_id == 5 for link in links)


def test_youtube_music_preferred_over_youtube():
    links = extract_platform_links(5, _payload())
    youtube = next(link for link in links if link.platform == Platform.YOUTUBE)
    assert youtube.platform_id == "ytm1"


def test_entity_id_used_when_url_does_not_parse():
    links = extract_platform_links(5, _payload())
    tidal = next(link for link in links if link.platform == Platform.TIDAL)
    assert tidal.platform_id == "222"


def test_empty_links_by_platform_gives_no_links():
    assert extract_platform_links(5, {"linksByPlatform": {}}) == []


def test_missing_links_by_platform_raises():
    with pytest.raises(ValueError):
        extract_platform_links(5, {"entityUniqueId": "x"})
