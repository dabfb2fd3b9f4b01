"""Tests for provider output decoding and best-stream selection."""

import asyncio

from session_store import MediaType
from stream_selector import (
    EmptyOutput,
    FileStream,
    ManifestStream,
    ProviderListOutput,
    ProviderResult,
    SingleStreamOutput,
    StreamResolver,
    decode_provider_output,
    highest_file_resolution,
    pick_best_stream,
    unify,
)


def hls(url="https://cdn.example.com/master.m3u8"):
    return {"type": "hls", "playlist": url, "captions": []}


def file_stream(*labels):
    return {"type": "file", "qualities": {label: {"url": f"https://cdn.example.com/{label}.mp4"} for label in labels}}


def test_manifest_beats_file_regardless_of_order():
    providers = unify([
        {"id": "a", "name": "A", "streams": [file_stream("720")]},
        {"id": "b", "name": "B", "streams": [hls()]},
    ])
    best = pick_best_stream(providers)
    assert isinstance(best, ManifestStream)

    providers = unify([
        {"id": "b", "name": "B", "streams": [hls()]},
        {"id": "a", "name": "A", "streams": [file_stream("4k")]},
    ])
    assert isinstance(pick_best_stream(providers), ManifestStream)


def test_highest_file_quality_wins():
    providers = unify([{"id": "a", "name": "A", "streams": [file_stream("480"), file_stream("4k")]}])
    best = pick_best_stream(providers)
    assert "4k" in best.qualities


def test_first_stream_wins_ties():
    first = file_stream("720")
    first["qualities"]["720"]["url"] = "https://first.example.com/720.mp4"
    providers = unify([
        {"id": "a", "name": "A", "streams": [first]},
        {"id": "b", "name": "B", "streams": [file_stream("720")]},
    ])
    best = pick_best_stream(providers)
    assert best.qualities["720"]["url"] == "https://first.example.com/720.mp4"


def test_first_manifest_wins_among_manifests():
    providers = unify([{"id": "a", "name": "A", "streams": [hls("https://one/m.m3u8"), hls("https://two/m.m3u8")]}])
    assert pick_best_stream(providers).manifest_url == "https://one/m.m3u8"


def test_unknown_quality_is_never_chosen():
    providers = unify([{"id": "a", "name": "A", "streams": [file_stream("unknown")]}])
    assert pick_best_stream(providers) is None


def test_empty_input_yields_no_stream():
    assert unify([]) == []
    assert pick_best_stream([]) is None
    assert pick_best_stream(unify(None)) is None


def test_object_without_streams_yields_no_stream():
    assert unify({"sourceId": "x"}) == []
    assert unify("garbage") == []
    assert pick_best_stream(unify([{"id": "a", "name": "A"}])) is None


def test_single_embedded_stream_is_wrapped():
    output = decode_provider_output({"sourceId": "autoembed", "embedId": "autoembed-english", "stream": hls()})
    assert isinstance(output, SingleStreamOutput)

    providers = unify({"sourceId": "autoembed", "embedId": "autoembed-english", "stream": hls()})
    assert len(providers) == 1
    assert providers[0].provider_id == "autoembed"
    assert providers[0].provider_name == "autoembed-english"
    assert isinstance(providers[0].streams[0], ManifestStream)


def test_single_stream_defaults_ids():
    providers = unify({"stream": file_stream("1080")})
    assert providers[0].provider_id == "unknown"
    assert providers[0].provider_name == "Unnamed"


def test_object_with_streams_is_wrapped():
    output = decode_provider_output({"id": "p", "name": "P", "streams": [hls()]})
    assert isinstance(output, ProviderListOutput)
    assert output.providers[0].provider_id == "p"


def test_falsy_input_decodes_to_empty():
    assert isinstance(decode_provider_output(None), EmptyOutput)
    assert isinstance(decode_provider_output({}), EmptyOutput)


def test_already_normalized_input_is_kept():
    normalized = [ProviderResult("p", "P", [ManifestStream("https://x/m.m3u8")])]
    assert unify(normalized) == normalized


def test_unsupported_stream_types_are_skipped():
    providers = unify([{"id": "a", "name": "A", "streams": [{"type": "embed", "url": "x"}, file_stream("360")]}])
    assert len(providers[0].streams) == 1
    assert isinstance(providers[0].streams[0], FileStream)


def test_highest_file_resolution():
    assert highest_file_resolution({"480": {}, "1080": {}}) == 1080
    assert highest_file_resolution({"weird": {}}) == 0
    assert highest_file_resolution(None) == 0


def test_selection_does_not_mutate_input():
    raw = [{"id": "a", "name": "A", "streams": [file_stream("720"), hls()]}]
    providers = unify(raw)
    before = [list(p.streams) for p in providers]
    pick_best_stream(providers)
    assert [list(p.streams) for p in providers] == before


def test_to_dict_matches_wire_shape():
    assert ManifestStream("https://x/m.m3u8").to_dict() == {
        "type": "hls",
        "playlist": "https://x/m.m3u8",
        "captions": [],
    }
    assert FileStream({"720": {"url": "u"}}).to_dict()["type"] == "file"


class FakeProviders:
    def __init__(self, payload):
        self.payload = payload
        self.calls = []

    async def run_all(self, media_type, tmdb_id, season_num=None, episode_num=None):
        self.calls.append((media_type, tmdb_id, season_num, episode_num))
        return self.payload


def test_resolver_picks_best_from_aggregator():
    providers = FakeProviders([{"id": "a", "name": "A", "streams": [file_stream("720"), hls()]}])
    resolver = StreamResolver(providers)
    best = asyncio.run(resolver.resolve(MediaType.SERIES, "1399", 1, 2))
    assert isinstance(best, ManifestStream)
    assert providers.calls == [(MediaType.SERIES, "1399", 1, 2)]


def test_resolver_returns_none_when_aggregator_fails():
    resolver = StreamResolver(FakeProviders(None))
    assert asyncio.run(resolver.resolve(MediaType.MOVIE, "603")) is None


def test_quality_labels_are_case_sensitive():
    assert highest_file_resolution({"4K": {}}) == 0
    assert pick_best_stream(unify([{"streams": [{"type": "file", "qualities": {"4K": {}}}]}])) is None
    assert "4k" in pick_best_stream(unify([{"streams": [{"type": "file", "qualities": {"4K": {}, "4k": {}}}]}])).qualities


def test_manifest_without_playlist_is_skipped():
    providers = unify([{"id": "a", "name": "A", "streams": [{"type": "hls", "playlist": ""}, {"type": "hls"}]}])
    assert providers[0].streams == []
    assert pick_best_stream(providers) is None

    providers = unify([{"id": "a", "name": "A", "streams": [{"type": "hls"}, file_stream("720")]}])
    assert isinstance(pick_best_stream(providers), FileStream)
