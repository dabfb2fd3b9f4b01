# errors/__init__.py

import logging
from enum import Enum
from typing import Dict, NamedTuple, Optional, Tuple, Type

import nextcord

logger = logging.getLogger("watchbot.errors")
logger.setLevel(logging.INFO)


class WatchBotError(Exception):
    """Base class for every error the watch bot raises on purpose."""


class APIError(WatchBotError):
    """An upstream HTTP service answered with something unusable."""


class TMDBAPIError(APIError):
    pass


class StreamConversionError(APIError):
    """The magnet to HLS conversion service did not produce a playlist."""


class NetworkError(WatchBotError):
    """Timeout or transport failure talking to an upstream service."""


class DataError(WatchBotError):
    """An upstream payload could not be decoded."""


class ConfigError(WatchBotError):
    pass


class ErrorCategory(Enum):
    MISSING_PERMISSIONS = "missing_permissions"
    TMDB = "tmdb"
    STREAMING = "streaming"
    NETWORK = "network"
    DATA = "data"
    CONFIG = "config"
    UNCATEGORIZED = "uncategorized"


class ErrorStyle(NamedTuple):
    title: str
    emoji: str
    log_level: int = logging.ERROR
    color: int = 0xFF5555


ERROR_STYLES: Dict[ErrorCategory, ErrorStyle] = {
    ErrorCategory.MISSING_PERMISSIONS: ErrorStyle("Permission Denied", "🔒", logging.WARNING),
    ErrorCategory.TMDB: ErrorStyle("TMDB Error", "🎬"),
    ErrorCategory.STREAMING: ErrorStyle("Stream Error", "📺"),
    ErrorCategory.NETWORK: ErrorStyle("Network Error", "📡"),
    ErrorCategory.DATA: ErrorStyle("Data Error", "📊"),
    ErrorCategory.CONFIG: ErrorStyle("Configuration Error", "⚙️"),
    ErrorCategory.UNCATEGORIZED: ErrorStyle("Error", "❌"),
}

# First match wins, so subclasses go before their bases.
_CATEGORY_BY_TYPE: Tuple[Tuple[Type[BaseException], ErrorCategory], ...] = (
    (nextcord.ApplicationCheckFailure, ErrorCategory.MISSING_PERMISSIONS),
    (TMDBAPIError, ErrorCategory.TMDB),
    (APIError, ErrorCategory.STREAMING),
    (NetworkError, ErrorCategory.NETWORK),
    (DataError, ErrorCategory.DATA),
    (ConfigError, ErrorCategory.CONFIG),
)


class ErrorHandler:
    """Turns slash command failures into an ephemeral embed and a log line."""

    def __init__(self, bot):
        self.bot = bot

    def categorize_error(self, error: Exception) -> ErrorCategory:
        for error_type, category in _CATEGORY_BY_TYPE:
            if isinstance(error, error_type):
                return category

        # Third-party errors: guess from the class name
        error_name = type(error).__name__.lower()
        if any(word in error_name for word in ("network", "connection", "timeout")):
            return ErrorCategory.NETWORK
        if any(word in error_name for word in ("json", "decode", "parse")):
            return ErrorCategory.DATA
        return ErrorCategory.UNCATEGORIZED

    def build_embed(self, error: Exception, message: Optional[str] = None) -> nextcord.Embed:
        style = ERROR_STYLES[self.categorize_error(error)]
        return nextcord.Embed(
            title=f"{style.emoji} {style.title}",
            description=message or str(error) or "Something went wrong.",
            color=style.color,
        )

    async def handle_error(
        self, interaction: nextcord.Interaction, error: Exception, message: Optional[str] = None
    ) -> None:
        """Log ``error`` and reply to the interaction, following up if it was already deferred."""
        category = self.categorize_error(error)
        style = ERROR_STYLES[category]
        logger.log(
            style.log_level,
            f"{category.value} error in command: {error}",
            exc_info=error if style.log_level >= logging.ERROR else None,
        )

        embed = self.build_embed(error, message)
        if interaction.response.is_done():
            await interaction.followup.send(embed=embed, ephemeral=True)
        else:
            await interaction.response.send_message(embed=embed, ephemeral=True)

    async def on_application_command_error(
        self, interaction: nextcord.Interaction, error: nextcord.ApplicationError
    ) -> None:
        if isinstance(error, nextcord.ApplicationInvokeError):
            error = error.original
        await self.handle_error(interaction, error)

    def setup(self) -> None:
        """Register this handler as the bot's application command error hook."""
        self.bot.event(self.on_application_command_error)
