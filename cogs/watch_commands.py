# cogs/watch_commands.py

import logging
from typing import Any, Dict, List, Optional

import nextcord
from nextcord.ext import commands, tasks

from api_wrappers import TMDB
from bot_config import BotConfig
from link_issuer import LinkIssuer
from session_store import MediaType, TemporaryRecordStore
from utilities import (
    format_currency,
    format_date,
    minutes_to_hours_minutes,
    release_year,
    truncate,
)

# Configure logging for this module
logger = logging.getLogger("watchbot.watch_commands")
logger.setLevel(logging.INFO)


def _names(items: Optional[List[Dict[str, Any]]], key: str = "name") -> str:
    return ", ".join(item.get(key, "") for item in items or []) or "N/A"


def build_media_embed(details: Dict[str, Any], media_type: MediaType) -> nextcord.Embed:
    """Build the summary embed shown next to the watch buttons."""
    description = details.get("overview") or "No Description"
    if details.get("tagline"):
        description = f"*\"{details['tagline']}\"*\n{description}"

    embed = nextcord.Embed(
        title=details.get("title") or details.get("name") or "Unknown Title",
        description=description,
        color=BotConfig.EMBED_COLOR,
    )
    if details.get("poster_path"):
        embed.set_thumbnail(url=f"{BotConfig.TMDB_IMAGE_BASE}w200{details['poster_path']}")
    if details.get("backdrop_path"):
        embed.set_image(url=f"{BotConfig.TMDB_IMAGE_BASE}w500{details['backdrop_path']}")

    vote_average = details.get("vote_average") or 0
    embed.add_field(
        name="Rating",
        value=f"⭐ {vote_average:.1f}/10 ({details.get('vote_count') or 0:,} votes)",
        inline=True,
    )
    if media_type is MediaType.MOVIE:
        embed.add_field(name="Release Date", value=f"📅 {format_date(details.get('release_date'))}", inline=True)
    else:
        embed.add_field(name="First Aired", value=f"📅 {format_date(details.get('first_air_date'))}", inline=True)
    embed.add_field(name="Genres", value=f"🎭 {_names(details.get('genres'))}", inline=False)

    if media_type is MediaType.MOVIE:
        embed.add_field(
            name="Movie Details",
            value="\n".join([
                f"⏱️ Runtime: {minutes_to_hours_minutes(details.get('runtime'))}",
                f"💰 Budget: {format_currency(details.get('budget'))}",
                f"💎 Revenue: {format_currency(details.get('revenue'))}",
            ]),
            inline=False,
        )
    else:
        embed.add_field(
            name="TV Series Details",
            value="\n".join([
                f"📺 Seasons: {details.get('number_of_seasons') or '?'}",
                f"🎬 Episodes: {details.get('number_of_episodes') or '?'}",
                f"📌 Status: {details.get('status') or 'N/A'}",
            ]),
            inline=False,
        )

    embed.set_footer(text=f"TMDB ID: {details.get('id')} • Data from TMDB", icon_url=BotConfig.TMDB_FAVICON)
    return embed


class SearchResultSelect(nextcord.ui.Select):
    def __init__(self, results: List[Dict[str, Any]]):
        options = []
        for result in results[:BotConfig.MAX_SEARCH_CHOICES]:
            label = f"{result.get('title') or result.get('name')} ({release_year(result)})"
            description = truncate(result.get("overview") or "No overview", BotConfig.CHOICE_DESCRIPTION_LENGTH)
            options.append(
                nextcord.SelectOption(label=label[:100], description=description[:100], value=str(result["id"]))
            )
        super().__init__(placeholder="Select the correct title...", options=options, min_values=1, max_values=1)

    async def callback(self, interaction: nextcord.Interaction) -> None:
        self.view.chosen_id = self.values[0]
        await interaction.response.defer()
        self.view.stop()


class SearchResultView(nextcord.ui.View):
    """Select menu over TMDB search results; only the invoking user may answer."""

    def __init__(self, author_id: int, results: List[Dict[str, Any]], timeout: float = BotConfig.SELECTION_TIMEOUT):
        super().__init__(timeout=timeout)
        self.author_id = author_id
        self.chosen_id: Optional[str] = None
        self.add_item(SearchResultSelect(results))

    async def interaction_check(self, interaction: nextcord.Interaction) -> bool:
        return interaction.user.id == self.author_id


class WatchCommands(commands.Cog):
    def __init__(self, bot):
        self.bot = bot
        self.tmdb: TMDB = bot.shared_resources.get("tmdb")
        self.link_issuer: LinkIssuer = bot.shared_resources.get("link_issuer")
        self.session_store: TemporaryRecordStore = bot.shared_resources.get("session_store")
        self.sweep_session_store.start()
        logger.info("WatchCommands cog initialized.")

    def cog_unload(self):
        self.sweep_session_store.cancel()

    def build_search_view(self, author_id: int, results: List[Dict[str, Any]]) -> SearchResultView:
        return SearchResultView(author_id, results)

    @tasks.loop(minutes=BotConfig.STORE_SWEEP_INTERVAL)
    async def sweep_session_store(self):
        """Drop expired watch links even when nobody touches the store."""
        removed = self.session_store.purge_expired()
        if removed:
            logger.info(f"Swept {removed} expired link(s), {len(self.session_store)} active")

    @sweep_session_store.before_loop
    async def before_sweep(self):
        await self.bot.wait_until_ready()

    @nextcord.slash_command(name="watch", description="Watch a movie or TV show.")
    async def watch(
        self,
        interaction: nextcord.Interaction,
        media_type: str = nextcord.SlashOption(
            name="type",
            description="movie or tv",
            choices={"Movie": "movie", "TV Show": "tv"},
            required=True,
        ),
        query: str = nextcord.SlashOption(description="Title of the movie or TV show", required=True),
        season: Optional[int] = nextcord.SlashOption(
            description="Season number (for TV shows)", required=False, default=None
        ),
        episode: Optional[int] = nextcord.SlashOption(
            description="Episode number (for TV shows)", required=False, default=None
        ),
    ):
        """Search TMDB, let the user pick a title and hand back watch links."""
        await self.send_watch_links(interaction, MediaType.parse(media_type), query, season, episode)

    async def send_watch_links(
        self,
        interaction: nextcord.Interaction,
        kind: MediaType,
        query: str,
        season: Optional[int] = None,
        episode: Optional[int] = None,
    ) -> None:
        await interaction.response.defer(ephemeral=True)

        results = await self.tmdb.search(kind, query)
        if not results:
            await interaction.edit_original_message(content="No results found on TMDB.")
            return

        view = self.build_search_view(interaction.user.id, results)
        await interaction.edit_original_message(content="Select the correct match:", view=view)
        timed_out = await view.wait()
        if timed_out or view.chosen_id is None:
            logger.info(f"Selection timed out for {interaction.user} searching {query!r}")
            await interaction.edit_original_message(content="Timed out. Please try again.", view=None)
            return

        details = await self.tmdb.get_details(kind, view.chosen_id)
        if not details:
            await interaction.edit_original_message(content="Could not retrieve details from TMDB.", view=None)
            return

        title = details.get("title") or details.get("name") or query
        main_link = self.link_issuer.create_stream_link(kind, view.chosen_id, title, season, episode)
        backup_link = self.link_issuer.create_backup_link(kind, view.chosen_id, title, season, episode)

        buttons = nextcord.ui.View(timeout=None)
        buttons.add_item(nextcord.ui.Button(label="Watch Now", url=main_link.watch_url))
        buttons.add_item(nextcord.ui.Button(label="Backup Stream", url=backup_link.watch_url))

        await interaction.edit_original_message(
            content="Here are your streaming options:",
            embed=build_media_embed(details, kind),
            view=buttons,
        )
        logger.info(f"Sent watch links for {kind.value} {view.chosen_id} to {interaction.user}")


def setup(bot):
    bot.add_cog(WatchCommands(bot))
