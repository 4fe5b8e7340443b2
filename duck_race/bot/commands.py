import re
from typing import List, Optional

import discord
from discord import app_commands
from discord.ext import commands

from duck_race.errors import RaceControlError

from .race_broadcast import format_duration_ms, render_board

NAME_SPLIT_RE = re.compile(r"[,\n;]")


def parse_names(raw: str) -> List[str]:
    """Splits a free-text entrant list on commas, semicolons or newlines."""
    if not raw:
        return []
    return [part.strip() for part in NAME_SPLIT_RE.split(raw) if part.strip()]


def _status_color(phase: str) -> discord.Color:
    if phase == "running":
        return discord.Color.red()
    if phase == "finished":
        return discord.Color.green()
    return discord.Color.light_grey()


def build_status_embed(snapshot) -> discord.Embed:
    phase = snapshot.get("phase", "idle")
    embed = discord.Embed(title="Duck Race Status", color=_status_color(phase))
    embed.add_field(name="Phase", value=phase.capitalize(), inline=True)
    embed.add_field(name="Duration", value=format_duration_ms(snapshot.get("durationMs")), inline=True)
    if phase != "idle":
        embed.add_field(name="Elapsed", value=format_duration_ms(snapshot.get("elapsedMs")), inline=True)
        embed.add_field(name="Track Position", value=render_board(snapshot.get("entrants", [])), inline=False)
    winner = snapshot.get("winner")
    if winner:
        embed.add_field(name="Winner", value=winner["name"], inline=True)
    return embed


class RaceCommands(commands.Cog):
    def __init__(self, bot: commands.Bot):
        self.bot = bot
        self.controller = bot.controller

    @app_commands.command(name="race_start", description="Start a new duck race.")
    @app_commands.describe(
        names="Entrant names separated by commas",
        duration_seconds="Race length in seconds (5-300, default 30)",
    )
    @app_commands.default_permissions(manage_guild=True)
    async def race_start(self, interaction: discord.Interaction, names: str, duration_seconds: Optional[int] = None):
        duration_ms = duration_seconds * 1000 if duration_seconds is not None else None
        try:
            result = await self.controller.start(parse_names(names), duration_ms)
        except RaceControlError as err:
            await interaction.response.send_message(err.message, ephemeral=True)
            return
        await interaction.response.send_message(result.message)

    @app_commands.command(name="race_reset", description="Reset the duck race.")
    @app_commands.default_permissions(manage_guild=True)
    async def race_reset(self, interaction: discord.Interaction):
        result = await self.controller.reset()
        await interaction.response.send_message(result["message"])

    @app_commands.command(name="race_status", description="Show the current duck race.")
    async def race_status(self, interaction: discord.Interaction):
        snapshot = self.controller.current_snapshot()
        await interaction.response.send_message(embed=build_status_embed(snapshot), ephemeral=True)


async def setup(bot: commands.Bot):
    await bot.add_cog(RaceCommands(bot))
