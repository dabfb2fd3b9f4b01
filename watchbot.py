# watchbot.py

"""
Entry point for the watch bot.

Loads configuration, sets up logging, starts the web server and, when a
Discord token is configured, the Discord bot on the same event loop.
"""

import asyncio
import logging
import sys

import nextcord
from nextcord.ext import commands

from api_wrappers import TMDB, HlsConverter, StreamProviders, Torrentio
from backup_pipeline import BackupResolver
from config import Config, config as default_config
from errors import ErrorHandler
from link_issuer import LinkIssuer
from session_store import TemporaryRecordStore
from stream_selector import StreamResolver
from web_server import WebServer

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    handlers=[logging.StreamHandler(), logging.FileHandler("watchbot.log")],
)
logger = logging.getLogger("watchbot")

if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

COGS = [
    "cogs.watch_commands",
]


def build_resources(config: Config) -> dict:
    """Construct every shared object from configuration, once."""
    timeout = config.get("api", "request_timeout")
    resources = {}

    resources["session_store"] = TemporaryRecordStore()
    resources["link_issuer"] = LinkIssuer(resources["session_store"], config.get("server", "base_url"))

    resources["tmdb"] = TMDB(api_key=config.get("tmdb", "apikey"), request_timeout=timeout)
    resources["stream_providers"] = StreamProviders(config.get("providers", "api_url"), request_timeout=timeout)
    resources["torrentio"] = Torrentio(config.get("backup", "torrentio_url"), request_timeout=timeout)
    resources["hls_converter"] = HlsConverter(config.get("backup", "hls_converter_url"), request_timeout=timeout)

    resources["stream_resolver"] = StreamResolver(resources["stream_providers"])
    resources["backup_resolver"] = BackupResolver(
        resources["tmdb"], resources["torrentio"], resources["hls_converter"]
    )
    resources["web_server"] = WebServer(
        store=resources["session_store"],
        link_issuer=resources["link_issuer"],
        stream_resolver=resources["stream_resolver"],
        backup_resolver=resources["backup_resolver"],
        tmdb=resources["tmdb"],
        secret_key=config.get("server", "secret_key"),
    )
    return resources


API_CLIENTS = ("tmdb", "stream_providers", "torrentio", "hls_converter")


async def initialize_resources(resources: dict) -> None:
    """Open the HTTP sessions of every API client."""
    for name in API_CLIENTS:
        logger.info(f"Initializing {name} client...")
        await resources[name].initialize()


async def close_resources(resources: dict) -> None:
    for name in API_CLIENTS:
        await resources[name].close()


def create_bot(resources: dict) -> commands.Bot:
    """Create the Discord bot and load its cogs."""
    intents = nextcord.Intents.default()
    bot = commands.Bot(command_prefix=commands.when_mentioned, intents=intents, help_command=None)
    bot.shared_resources = resources

    @bot.event
    async def on_ready():
        """Event triggered when the bot is ready to start."""
        logger.info(f"Logged in as {bot.user} (ID: {bot.user.id})")
        logger.info(f"Watch bot is now ready to serve {len(bot.guilds)} servers")

    ErrorHandler(bot).setup()

    for cog_name in COGS:
        try:
            bot.load_extension(cog_name)
            logger.info(f"Loaded cog: {cog_name}")
        except Exception as e:
            logger.exception(f"Failed to load cog {cog_name}: {e}")
    return bot


async def run(config: Config) -> None:
    resources = build_resources(config)
    await initialize_resources(resources)

    web_server: WebServer = resources["web_server"]
    await web_server.start(config.get("server", "host"), config.get("server", "port"))

    try:
        token = config.get("core", "token")
        if token:
            bot = create_bot(resources)
            try:
                await bot.start(token)
            finally:
                if not bot.is_closed():
                    await bot.close()
        else:
            logger.warning("No Discord token configured, running the web server only.")
            await asyncio.Event().wait()
    finally:
        await web_server.stop()
        await close_resources(resources)


def apply_log_level(level_name: str) -> None:
    """Apply the configured level to every watchbot logger."""
    level = getattr(logging, level_name.upper(), logging.INFO)
    for name in list(logging.root.manager.loggerDict):
        if name == "watchbot" or name.startswith("watchbot."):
            logging.getLogger(name).setLevel(level)


def main():
    """Main entry point for the bot."""
    logger.info("Starting watch bot...")

    if not default_config.initialize():
        logger.error("Failed to load configuration.")
        return

    apply_log_level(str(default_config.get("core", "log_level")))

    try:
        asyncio.run(run(default_config))
    except KeyboardInterrupt:
        logger.info("Bot shutdown requested by user.")
    except Exception as e:
        logger.exception(f"Failed to run the bot: {e}")


if __name__ == "__main__":
    main()
