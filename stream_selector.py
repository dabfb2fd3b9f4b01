# stream_selector.py

"""
Decoding and ranking of provider aggregator output.

The aggregator answers in one of several loose shapes. They are decoded once,
at the boundary, into ``EmptyOutput``, ``SingleStreamOutput`` or
``ProviderListOutput``; everything past ``unify`` works on ``ProviderResult``
lists only.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

# Configure logging for this module
logger = logging.getLogger("watchbot.stream_selector")
logger.setLevel(logging.INFO)

# Quality label -> score. Labels outside the table score 0 as well.
RESOLUTION_RANKING: Dict[str, int] = {
    "4k": 4000,
    "1080": 1080,
    "720": 720,
    "480": 480,
    "360": 360,
    "unknown": 0,
}

MANIFEST_SCORE = 9999


@dataclass(frozen=True)
class ManifestStream:
    """An adaptive bitrate (HLS) playlist."""
    manifest_url: str
    captions: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"type": "hls", "playlist": self.manifest_url, "captions": list(self.captions)}


@dataclass(frozen=True)
class FileStream:
    """Fixed-quality files keyed by quality label."""
    qualities: Dict[str, Dict[str, Any]]
    captions: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"type": "file", "qualities": dict(self.qualities), "captions": list(self.captions)}


CandidateStream = Union[ManifestStream, FileStream]


@dataclass(frozen=True)
class ProviderResult:
    provider_id: str
    provider_name: str
    streams: List[CandidateStream] = field(default_factory=list)


@dataclass(frozen=True)
class EmptyOutput:
    pass


@dataclass(frozen=True)
class SingleStreamOutput:
    source_id: str
    embed_id: str
    stream: Optional[CandidateStream]


@dataclass(frozen=True)
class ProviderListOutput:
    providers: List[ProviderResult]


ProviderOutput = Union[EmptyOutput, SingleStreamOutput, ProviderListOutput]


def parse_stream(raw: Any) -> Optional[CandidateStream]:
    """Decode one wire stream, or None for shapes we cannot play."""
    if isinstance(raw, (ManifestStream, FileStream)):
        return raw
    if not isinstance(raw, dict):
        return None
    captions = raw.get("captions") or []
    if not isinstance(captions, list):
        captions = []
    # A manifest without a playlist URL has nothing to play.
    if raw.get("type") == "hls" and raw.get("playlist"):
        return ManifestStream(manifest_url=raw["playlist"], captions=captions)
    if raw.get("type") == "file":
        qualities = raw.get("qualities") or {}
        if not isinstance(qualities, dict):
            qualities = {}
        return FileStream(qualities=qualities, captions=captions)
    logger.debug(f"Skipping stream of unsupported type: {raw.get('type')!r}")
    return None


def parse_provider(raw: Any) -> ProviderResult:
    """Decode one provider entry; entries without a ``streams`` list contribute nothing."""
    if isinstance(raw, ProviderResult):
        return raw
    if not isinstance(raw, dict):
        return ProviderResult(provider_id="unknown", provider_name="Unnamed")
    raw_streams = raw.get("streams")
    streams = []
    if isinstance(raw_streams, list):
        streams = [s for s in (parse_stream(item) for item in raw_streams) if s is not None]
    return ProviderResult(
        provider_id=str(raw.get("id") or "unknown"),
        provider_name=str(raw.get("name") or "Unnamed"),
        streams=streams,
    )


def decode_provider_output(raw: Any) -> ProviderOutput:
    """Classify an aggregator payload into one of the three output shapes."""
    if not raw:
        return EmptyOutput()
    if isinstance(raw, (list, tuple)):
        return ProviderListOutput([parse_provider(item) for item in raw])
    if isinstance(raw, ProviderResult):
        return ProviderListOutput([raw])
    if isinstance(raw, dict):
        if raw.get("stream"):
            return SingleStreamOutput(
                source_id=str(raw.get("sourceId") or "unknown"),
                embed_id=str(raw.get("embedId") or "Unnamed"),
                stream=parse_stream(raw["stream"]),
            )
        if raw.get("streams"):
            return ProviderListOutput([parse_provider(raw)])
    return EmptyOutput()


def unify(raw: Any) -> List[ProviderResult]:
    """Normalize any aggregator payload into a list of ``ProviderResult``."""
    output = decode_provider_output(raw)
    if isinstance(output, ProviderListOutput):
        return output.providers
    if isinstance(output, SingleStreamOutput):
        streams = [output.stream] if output.stream is not None else []
        return [ProviderResult(provider_id=output.source_id, provider_name=output.embed_id, streams=streams)]
    return []


def highest_file_resolution(qualities: Optional[Dict[str, Any]]) -> int:
    """Score a file-based stream by the best quality label it offers.

    Labels must match the ranking table exactly; anything else scores 0.
    """
    best = 0
    for label in (qualities or {}):
        score = RESOLUTION_RANKING.get(label, 0)
        if score > best:
            best = score
    return best


def score_stream(stream: CandidateStream) -> int:
    if isinstance(stream, ManifestStream):
        return MANIFEST_SCORE
    return highest_file_resolution(stream.qualities)


def pick_best_stream(providers: List[ProviderResult]) -> Optional[CandidateStream]:
    """
    Pick the single best stream across all providers.

    Manifest streams outrank every file stream; file streams are ranked by
    their highest quality label. Only a strictly greater score replaces the
    current choice, so the first stream wins ties and a file stream scoring
    0 is never picked. Returns None when nothing qualifies.
    """
    chosen: Optional[CandidateStream] = None
    chosen_score = 0
    for provider in providers:
        for stream in provider.streams:
            score = score_stream(stream)
            if score > chosen_score:
                chosen_score = score
                chosen = stream
    return chosen


class StreamResolver:
    """Primary resolution: ask the aggregator, then pick the best stream."""

    def __init__(self, providers_client):
        self.providers = providers_client

    async def resolve(
        self, media_type, tmdb_id: str, season_num: Optional[int] = None, episode_num: Optional[int] = None
    ) -> Optional[CandidateStream]:
        raw_output = await self.providers.run_all(media_type, tmdb_id, season_num, episode_num)
        provider_results = unify(raw_output)
        if not provider_results:
            logger.info(f"No provider outputs for {media_type.value} {tmdb_id}")
            return None

        logger.debug(f"Unified {len(provider_results)} provider result(s) for {tmdb_id}")
        best_stream = pick_best_stream(provider_results)
        if best_stream is None:
            logger.info(f"No playable stream among providers for {media_type.value} {tmdb_id}")
        return best_stream
