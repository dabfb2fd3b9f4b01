# bot_config.py

"""
Centralized constants for the watch bot.

This module contains constants and fixed values used throughout the bot and
the web server. Deployment-specific settings live in the ``config`` package.
"""


class BotConfig:
    """Configuration values and constants for the watch bot."""

    # UI constants
    EMBED_COLOR = 0x00ADEF
    TMDB_IMAGE_BASE = "https://image.tmdb.org/t/p/"
    TMDB_FAVICON = "https://www.themoviedb.org/assets/2/favicon-16x16-b362d267873ce9c5a39f686a11fe67fec2a72ed25fa8396c11b71aa43c938b11.png"

    # Link settings
    LINK_TTL = 3 * 60 * 60  # 3 hours in seconds
    TOKEN_BYTES = 6  # 12 hex characters
    FRAGMENT_BYTES = 3  # 6 hex characters, cosmetic only

    # Session store maintenance
    STORE_SWEEP_INTERVAL = 10  # minutes

    # Command-specific settings
    SELECTION_TIMEOUT = 30  # seconds to pick a search result
    MAX_SEARCH_CHOICES = 10
    CHOICE_DESCRIPTION_LENGTH = 50

    # API request settings
    API_REQUEST_TIMEOUT = 20  # seconds

    # Player page served for watch links
    PLAYER_PAGE_PATH = "static/player.html"
