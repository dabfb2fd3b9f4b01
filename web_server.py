# web_server.py

"""
HTTP side of the watch bot.

Serves the player page behind watch links, resolves tokens into playable
streams and exposes a shared-secret API for minting links without Discord.
"""

import hmac
import logging
from pathlib import Path
from typing import Optional

import aiofiles
from aiohttp import web

from bot_config import BotConfig
from errors import StreamConversionError
from session_store import MediaType

# Configure logging for this module
logger = logging.getLogger("watchbot.web_server")
logger.setLevel(logging.INFO)

EXPIRED_MESSAGE = "Link expired or invalid token."


class WebServer:
    def __init__(
        self,
        store,
        link_issuer,
        stream_resolver,
        backup_resolver,
        tmdb=None,
        secret_key: str = "",
        player_page_path: str = BotConfig.PLAYER_PAGE_PATH,
    ):
        self.store = store
        self.link_issuer = link_issuer
        self.stream_resolver = stream_resolver
        self.backup_resolver = backup_resolver
        self.tmdb = tmdb
        self.secret_key = secret_key
        self.player_page_path = Path(player_page_path)
        self._player_html: Optional[str] = None
        self._runner: Optional[web.AppRunner] = None
        if not secret_key:
            logger.warning("No secret key configured, the /api route will reject every request.")

    def create_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/", self.index)
        app.router.add_get("/play/{token}", self.play)
        app.router.add_get("/play-backup/{token}", self.play_backup)
        app.router.add_get("/api/{auth_token}/{media_type}/{title}", self.api_link)
        app.router.add_get("/api/{auth_token}/{media_type}/{title}/{season}", self.api_link)
        app.router.add_get("/api/{auth_token}/{media_type}/{title}/{season}/{episode}", self.api_link)
        # Backup pages first: "backup-..." must not be taken for a primary link.
        app.router.add_get("/backup-{fragment}-{slug:[^/]*}", self.player_page)
        app.router.add_get("/{fragment}-{slug:[^/]*}", self.player_page)
        return app

    async def start(self, host: str = "0.0.0.0", port: int = 3000) -> None:
        self._runner = web.AppRunner(self.create_app())
        await self._runner.setup()
        site = web.TCPSite(self._runner, host, port)
        await site.start()
        logger.info(f"Web server running on {host}:{port}")

    async def stop(self) -> None:
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None
            logger.info("Web server stopped.")

    async def load_player_page(self) -> str:
        """Read the player page once and keep it in memory."""
        if self._player_html is None:
            async with aiofiles.open(self.player_page_path, "r", encoding="utf-8") as f:
                self._player_html = await f.read()
        return self._player_html

    async def index(self, request: web.Request) -> web.Response:
        return web.Response(text="Watch server is running!")

    async def player_page(self, request: web.Request) -> web.Response:
        token = request.query.get("token")
        if not token:
            return web.Response(text="Missing token.", status=400)
        if self.store.get(token) is None:
            logger.debug(f"Player page requested with unknown token {token}")
            return web.Response(text=EXPIRED_MESSAGE, status=410)
        return web.Response(text=await self.load_player_page(), content_type="text/html")

    async def play(self, request: web.Request) -> web.Response:
        token = request.match_info["token"]
        record = self.store.get(token)
        if record is None:
            return web.json_response({"error": EXPIRED_MESSAGE}, status=410)

        try:
            best_stream = await self.stream_resolver.resolve(
                record.media_type, record.external_id, record.season_num, record.episode_num
            )
        except Exception as e:
            logger.error(f"Error resolving stream for token {token}: {e}", exc_info=True)
            return web.json_response({"error": "Failed to retrieve streams."}, status=500)

        if best_stream is None:
            return web.json_response({"error": "No suitable stream found."}, status=404)
        return web.json_response({"bestStream": best_stream.to_dict()})

    async def play_backup(self, request: web.Request) -> web.Response:
        token = request.match_info["token"]
        record = self.store.get(token)
        if record is None:
            return web.json_response({"error": EXPIRED_MESSAGE}, status=410)

        try:
            best_stream = await self.backup_resolver.resolve(
                record.media_type, record.external_id, record.season_num, record.episode_num
            )
        except StreamConversionError as e:
            logger.error(f"Backup conversion failed for token {token}: {e}")
            return web.json_response({"error": "Failed to retrieve backup streams."}, status=500)
        except Exception as e:
            logger.error(f"Error resolving backup stream for token {token}: {e}", exc_info=True)
            return web.json_response({"error": "Failed to retrieve backup streams."}, status=500)

        if best_stream is None:
            return web.json_response({"error": "No suitable backup stream found."}, status=404)
        return web.json_response({"bestStream": best_stream.to_dict()})

    async def api_link(self, request: web.Request) -> web.Response:
        params = request.match_info
        if not self.secret_key or not hmac.compare_digest(params["auth_token"].encode(), self.secret_key.encode()):
            logger.warning("Rejected /api request with an invalid auth token")
            return web.json_response({"error": "Invalid auth token"}, status=403)

        try:
            media_type = MediaType.parse(params["media_type"])
            season_num = int(params["season"]) if params.get("season") else None
            episode_num = int(params["episode"]) if params.get("episode") else None
        except ValueError:
            return web.json_response({"error": "Invalid media type, season or episode."}, status=400)

        title = params["title"]
        tmdb_id, display_title = title, title
        if self.tmdb is not None:
            results = await self.tmdb.search(media_type, title)
            if not results:
                return web.json_response({"error": "No results found on TMDB."}, status=404)
            top = results[0]
            tmdb_id = str(top.get("id"))
            display_title = top.get("title") or top.get("name") or title

        try:
            link = self.link_issuer.create_stream_link(media_type, tmdb_id, display_title, season_num, episode_num)
        except Exception as e:
            logger.error(f"Failed to generate link for {title}: {e}", exc_info=True)
            return web.json_response({"error": "Failed to generate link."}, status=500)
        return web.json_response(link.to_dict())
