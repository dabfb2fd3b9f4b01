"""Tests for the backup resolution pipeline."""

import asyncio
from urllib.parse import unquote

import pytest

from backup_pipeline import (
    TRACKERS,
    BackupResolver,
    TorrentCandidate,
    build_magnet_link,
    pick_best_torrent,
    resolution_rank,
)
from errors import StreamConversionError
from session_store import MediaType
from stream_selector import ManifestStream


class FakeTMDB:
    def __init__(self, imdb_id):
        self.imdb_id = imdb_id
        self.calls = 0

    async def get_imdb_id(self, media_type, tmdb_id):
        self.calls += 1
        return self.imdb_id


class FakeTorrentio:
    def __init__(self, streams):
        self.streams = streams
        self.calls = []

    async def get_streams(self, media_type, imdb_id, season_num=None, episode_num=None):
        self.calls.append((media_type, imdb_id, season_num, episode_num))
        return self.streams


class FakeConverter:
    def __init__(self, m3u8_link=None, error=None):
        self.m3u8_link = m3u8_link
        self.error = error
        self.magnets = []

    async def fetch_m3u8(self, magnet_link):
        self.magnets.append(magnet_link)
        if self.error is not None:
            raise self.error
        return self.m3u8_link


def candidate(title=None, name=None, info_hash="abc"):
    return TorrentCandidate(info_hash=info_hash, name=name, title=title)


def test_resolution_rank_uses_highest_priority_token():
    assert resolution_rank(candidate(title="Movie.2160p.HDR")) == 6
    assert resolution_rank(candidate(title="Movie 4K")) == 5
    assert resolution_rank(candidate(name="Torrentio\n1080p")) == 4
    assert resolution_rank(candidate(title="Movie 1080p 720p")) == 4
    assert resolution_rank(candidate(title="Movie CAM")) == -1


def test_pick_best_torrent_prefers_higher_resolution():
    best = pick_best_torrent([
        candidate("Movie 720p", info_hash="a"),
        candidate("Movie 2160p", info_hash="b"),
        candidate("Movie 1080p", info_hash="c"),
    ])
    assert best.info_hash == "b"


def test_pick_best_torrent_first_wins_ties():
    best = pick_best_torrent([candidate("A 1080p", info_hash="a"), candidate("B 1080p", info_hash="b")])
    assert best.info_hash == "a"


def test_pick_best_torrent_without_tokens_keeps_first():
    best = pick_best_torrent([candidate("Movie", info_hash="a"), candidate("Other", info_hash="b")])
    assert best.info_hash == "a"


def test_pick_best_torrent_empty():
    assert pick_best_torrent([]) is None


def test_build_magnet_link_encodes_name_and_trackers():
    magnet = build_magnet_link("deadbeef", "Big Buck Bunny (2008) [1080p]")
    assert magnet.startswith("magnet:?xt=urn:btih:deadbeef&dn=Big%20Buck%20Bunny%20(2008)%20%5B1080p%5D")
    trackers = [unquote(part[len("tr="):]) for part in magnet.split("&") if part.startswith("tr=")]
    assert trackers == TRACKERS
    assert "&tr=udp%3A%2F%2Ftracker.opentrackr.org%3A1337%2Fannounce" in magnet


def test_build_magnet_link_without_name():
    assert "&dn=" not in build_magnet_link("deadbeef", None)


def test_missing_imdb_id_stops_pipeline():
    tmdb, torrentio, converter = FakeTMDB(None), FakeTorrentio([]), FakeConverter("x")
    resolver = BackupResolver(tmdb, torrentio, converter)

    assert asyncio.run(resolver.resolve(MediaType.MOVIE, "603")) is None
    assert torrentio.calls == []
    assert converter.magnets == []


def test_no_torrent_candidates_returns_none():
    converter = FakeConverter("x")
    resolver = BackupResolver(FakeTMDB("tt0133093"), FakeTorrentio(None), converter)
    assert asyncio.run(resolver.resolve(MediaType.MOVIE, "603")) is None
    assert converter.magnets == []


def test_successful_resolution_builds_manifest_stream():
    torrentio = FakeTorrentio([
        {"infoHash": "aaa", "name": "Torrentio\n720p", "title": "The Matrix 720p"},
        {"infoHash": "bbb", "name": "Torrentio\n4k", "title": "The Matrix 2160p"},
    ])
    converter = FakeConverter("https://hls.example.com/bbb/master.m3u8")
    resolver = BackupResolver(FakeTMDB("tt0133093"), torrentio, converter)

    result = asyncio.run(resolver.resolve(MediaType.SERIES, "1399", 2, 3))

    assert result == ManifestStream("https://hls.example.com/bbb/master.m3u8", [])
    assert torrentio.calls == [(MediaType.SERIES, "tt0133093", 2, 3)]
    assert converter.magnets[0].startswith("magnet:?xt=urn:btih:bbb&dn=Torrentio%0A4k")


def test_conversion_without_playlist_is_a_hard_error():
    converter = FakeConverter(error=StreamConversionError("No m3u8Link in fetchHls response"))
    resolver = BackupResolver(FakeTMDB("tt0133093"), FakeTorrentio([{"infoHash": "a", "title": "x"}]), converter)

    with pytest.raises(StreamConversionError):
        asyncio.run(resolver.resolve(MediaType.MOVIE, "603"))
