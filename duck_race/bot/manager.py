import logging

import discord
from discord.ext import commands

from duck_race.control import RaceController

log = logging.getLogger(__name__)

COMMAND_COGS = (
    "duck_race.bot.commands",
    "duck_race.bot.race_broadcast",
)


class DuckRaceBotManager(commands.Bot):
    """Discord bot sharing the race controller with the rest of the process."""

    def __init__(self, command_prefix, intents, guild_id, controller: RaceController):
        super().__init__(command_prefix=command_prefix, intents=intents)
        self.guild_id = guild_id
        self.controller = controller

    async def setup_hook(self):
        """Loads extensions (cogs) and syncs commands."""
        for path in COMMAND_COGS:
            try:
                await self.load_extension(path)
                log.info("[Bot] Loaded cog %s", path)
            except Exception:
                log.exception("[Bot] Failed to load cog %s", path)
                raise

        if not self.guild_id:
            await self.tree.sync()
            log.info("[Bot] Synced commands globally")
            return

        # Guild sync is immediate; global sync can take up to an hour to show.
        guild = discord.Object(id=self.guild_id)
        self.tree.copy_global_to(guild=guild)
        try:
            await self.tree.sync(guild=guild)
            log.info("[Bot] Synced commands to guild %s", self.guild_id)
        except Exception as e:
            log.warning("[Bot] Failed to sync commands to guild %s: %s", self.guild_id, e)

    async def on_ready(self):
        log.info("[Bot] Logged in as %s (%s)", self.user.name, self.user.id)
