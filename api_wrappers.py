# api_wrappers.py

import asyncio
import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import aiohttp

from bot_config import BotConfig
from errors import APIError, DataError, NetworkError, StreamConversionError, TMDBAPIError

# Configure logging for this module
logger = logging.getLogger("watchbot.api_wrappers")
logger.setLevel(logging.INFO)


class JsonApiClient:
    """Shared aiohttp session handling and JSON GET for the wrappers below."""

    name = "API"
    error_class = APIError

    def __init__(self, request_timeout: float = BotConfig.API_REQUEST_TIMEOUT) -> None:
        self.timeout = aiohttp.ClientTimeout(total=request_timeout)
        self.session: Optional[aiohttp.ClientSession] = None

    async def initialize(self) -> None:
        """Asynchronous initializer to set up aiohttp ClientSession."""
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession(timeout=self.timeout)
            logger.info(f"aiohttp ClientSession initialized for {self.name}.")

    async def close(self) -> None:
        """Close the aiohttp ClientSession."""
        if self.session and not self.session.closed:
            await self.session.close()
            logger.info(f"aiohttp ClientSession closed for {self.name}.")

    async def get_json(self, url: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """
        GET ``url`` and decode the JSON body.

        Raises ``error_class`` for non-success statuses, ``NetworkError`` for
        transport failures and timeouts, and ``DataError`` for bodies that are
        not JSON.
        """
        await self.initialize()
        try:
            async with self.session.get(url, params=params) as response:
                if response.status != 200:
                    raise self.error_class(f"{self.name} returned {response.status} {response.reason}")
                try:
                    return await response.json(content_type=None)
                except ValueError as e:
                    raise DataError(f"{self.name} returned invalid JSON: {e}") from e
        except asyncio.TimeoutError as e:
            raise NetworkError(f"{self.name} request timed out") from e
        except aiohttp.ClientError as e:
            raise NetworkError(f"{self.name} request failed: {e}") from e


class TMDB(JsonApiClient):
    name = "TMDB"
    error_class = TMDBAPIError

    def __init__(self, api_key: str, request_timeout: float = BotConfig.API_REQUEST_TIMEOUT) -> None:
        super().__init__(request_timeout)
        logger.info("Initializing TMDB wrapper.")
        self.api_key = api_key
        self.tmdb_api_url = "https://api.themoviedb.org/3/"

    async def search(self, media_type, query: str) -> List[Dict[str, Any]]:
        """Search movies or TV shows by title; failures yield an empty list."""
        if not query:
            error_msg = "Query string is required for search."
            logger.error(error_msg)
            raise ValueError(error_msg)

        params = {
            "api_key": self.api_key,
            "language": "en-US",
            "query": query,
            "page": 1,
            "include_adult": "false",
        }
        try:
            data = await self.get_json(self.tmdb_api_url + f"search/{media_type.value}", params)
        except (APIError, NetworkError, DataError) as e:
            logger.error(f"Failed to get {media_type.value} search results: {e}")
            return []
        results = data.get("results") if isinstance(data, dict) else None
        return results or []

    async def get_details(self, media_type, tmdb_id) -> Optional[Dict[str, Any]]:
        """Fetch movie or TV details, or None if TMDB does not answer."""
        if tmdb_id is None:
            logger.error("tmdb_id is required; see TMDB API Reference.")
            return None
        params = {"api_key": self.api_key, "language": "en-US"}
        try:
            return await self.get_json(self.tmdb_api_url + f"{media_type.value}/{tmdb_id}", params)
        except (APIError, NetworkError, DataError) as e:
            logger.error(f"Failed to get {media_type.value} details for {tmdb_id}: {e}")
            return None

    async def get_imdb_id(self, media_type, tmdb_id) -> Optional[str]:
        """Resolve a TMDB id to its IMDB id through the external_ids endpoint."""
        url = self.tmdb_api_url + f"{media_type.value}/{tmdb_id}/external_ids"
        logger.debug(f"Looking up external ids for {media_type.value} {tmdb_id}")
        try:
            data = await self.get_json(url, {"api_key": self.api_key})
        except (APIError, NetworkError, DataError) as e:
            logger.error(f"Failed to get external ids for {tmdb_id}: {e}")
            return None
        imdb_id = data.get("imdb_id") if isinstance(data, dict) else None
        if not imdb_id:
            logger.warning(f"IMDB id not found in external_ids payload for {tmdb_id}")
            return None
        return imdb_id


class StreamProviders(JsonApiClient):
    """Client for the multi-provider stream aggregation service."""

    name = "Stream providers"

    def __init__(self, api_url: str, request_timeout: float = BotConfig.API_REQUEST_TIMEOUT) -> None:
        super().__init__(request_timeout)
        self.api_url = api_url
        if not api_url:
            logger.warning("No provider aggregator configured, primary streams are disabled.")

    async def run_all(
        self, media_type, tmdb_id: str, season_num: Optional[int] = None, episode_num: Optional[int] = None
    ) -> Any:
        """Return the raw aggregator payload, or None on any failure."""
        if not self.api_url:
            return None
        params = {"type": media_type.value, "tmdbId": tmdb_id}
        if season_num is not None:
            params["season"] = season_num
        if episode_num is not None:
            params["episode"] = episode_num
        logger.debug(f"Running all providers for {params}")
        try:
            return await self.get_json(self.api_url, params)
        except (APIError, NetworkError, DataError) as e:
            logger.error(f"Provider aggregation failed for {tmdb_id}: {e}")
            return None


class Torrentio(JsonApiClient):
    name = "Torrentio"

    PROVIDERS = (
        "providers=yts,eztv,rarbg,1337x,thepiratebay,kickasstorrents,torrentgalaxy,"
        "magnetdl,horriblesubs,nyaasi,tokyotosho,anidex"
    )

    def __init__(
        self, base_url: str = "https://torrentio.strem.fun", request_timeout: float = BotConfig.API_REQUEST_TIMEOUT
    ) -> None:
        super().__init__(request_timeout)
        self.base_url = base_url.rstrip("/")

    def build_url(
        self, media_type, imdb_id: str, season_num: Optional[int] = None, episode_num: Optional[int] = None
    ) -> str:
        """Stream listing URL; series without season/episode default to 1:1."""
        kind = media_type.torrentio_type
        if kind == "movie":
            return f"{self.base_url}/{self.PROVIDERS}/stream/movie/{imdb_id}.json"
        season = season_num if season_num is not None else 1
        episode = episode_num if episode_num is not None else 1
        return f"{self.base_url}/{self.PROVIDERS}/stream/series/{imdb_id}:{season}:{episode}.json"

    async def get_streams(
        self, media_type, imdb_id: str, season_num: Optional[int] = None, episode_num: Optional[int] = None
    ) -> Optional[List[Dict[str, Any]]]:
        """Torrent candidates for the title, or None when there are none."""
        url = self.build_url(media_type, imdb_id, season_num, episode_num)
        logger.debug(f"Torrentio URL -> {url}")
        try:
            data = await self.get_json(url)
        except (APIError, NetworkError, DataError) as e:
            logger.error(f"Torrentio lookup failed for {imdb_id}: {e}")
            return None
        streams = data.get("streams") if isinstance(data, dict) else None
        if not isinstance(streams, list):
            return None
        return streams


class HlsConverter(JsonApiClient):
    """Turns a magnet link into an HLS playlist URL."""

    name = "fetchHls"

    def __init__(
        self,
        base_url: str = "https://savingshub.online/api/fetchHls",
        request_timeout: float = BotConfig.API_REQUEST_TIMEOUT,
    ) -> None:
        super().__init__(request_timeout)
        self.base_url = base_url

    async def fetch_m3u8(self, magnet_link: str) -> str:
        """Return the playlist URL; any failure raises ``StreamConversionError``."""
        logger.debug(f"Converting magnet -> {self.base_url}?magnet={quote(magnet_link, safe='')}")
        try:
            data = await self.get_json(self.base_url, {"magnet": magnet_link})
        except (APIError, NetworkError, DataError) as e:
            raise StreamConversionError(f"fetchHls error: {e}") from e
        m3u8_link = data.get("m3u8Link") if isinstance(data, dict) else None
        if not m3u8_link:
            raise StreamConversionError("No m3u8Link in fetchHls response")
        return m3u8_link
