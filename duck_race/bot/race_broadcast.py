import asyncio
import logging
import os
from typing import Any, Dict, List, Optional

import discord
from discord.ext import commands
from discord.utils import get as discord_get

from duck_race import events
from duck_race.config import get_config

log = logging.getLogger(__name__)

BAR_WIDTH = 20
FIELD_LIMIT = 1024
DESCRIPTION_LIMIT = 4096


def format_duration_ms(value: Optional[float]) -> str:
    if value is None:
        return "-"
    seconds = max(0.0, float(value)) / 1000.0
    minutes, seconds = divmod(seconds, 60)
    if minutes:
        return f"{int(minutes)}m {seconds:04.1f}s"
    return f"{seconds:.1f}s"


def render_board(entrants: List[Dict[str, Any]]) -> str:
    """Text progress bars, leader first."""
    lines = []
    ordered = sorted(enumerate(entrants), key=lambda item: (-item[1].get("position", 0.0), item[0]))
    for lane, entrant in ordered:
        position = float(entrant.get("position", 0.0))
        progress = min(max(position / 100.0, 0.0), 1.0)
        filled = int(progress * BAR_WIDTH)
        bar = "#" * filled + "." * (BAR_WIDTH - filled)
        lines.append(f"{lane + 1:>2} {entrant['name'][:18]:<18} [{bar}] {position:5.1f}%")
    board = "\n".join(lines) if lines else "No entrants."
    board_value = f"```text\n{board}\n```"
    if len(board_value) > FIELD_LIMIT:
        board_value = board_value[: FIELD_LIMIT - 14] + "\n...```"
    return board_value


def build_live_embed(data: Dict[str, Any]) -> discord.Embed:
    embed = discord.Embed(title="Duck Race - Live", color=discord.Color.red())
    embed.add_field(name="Elapsed", value=format_duration_ms(data.get("elapsedMs")), inline=True)
    embed.add_field(name="Remaining", value=format_duration_ms(data.get("remainingMs")), inline=True)
    embed.add_field(name="Track Position", value=render_board(data.get("entrants", [])), inline=False)
    embed.set_footer(text="Watch the action unfold live.")
    return embed


def build_final_embed(data: Dict[str, Any]) -> discord.Embed:
    lines = []
    for place, entrant in enumerate(data.get("results", []), start=1):
        lines.append(f"{place}. {entrant['name']} ({entrant.get('position', 0.0):.0f}%)")
    board = "\n".join(lines) if lines else "No finishers recorded."
    if len(board) > DESCRIPTION_LIMIT:
        board = board[: DESCRIPTION_LIMIT - 3] + "..."
    embed = discord.Embed(
        title="Duck Race - Final Standings",
        description=board,
        color=discord.Color.green(),
    )
    embed.add_field(name="Result", value=data.get("message") or "-", inline=False)
    reason = data.get("reason")
    if reason:
        embed.set_footer(text="Finished at the line." if reason == "finished" else "Finished on time.")
    return embed


class RaceBroadcastCog(commands.Cog):
    """Mirrors broadcast events into a Discord text channel."""

    MAILBOX_SIZE = 8
    RETRY_SECONDS = 10

    def __init__(self, bot: commands.Bot):
        self.bot = bot
        self.controller = bot.controller
        env_channel = os.getenv("DUCK_RACE_CHANNEL_ID")
        env_name = os.getenv("DUCK_RACE_CHANNEL_NAME")
        try:
            self.channel_id = int(env_channel or get_config("discord.race_channel_id") or 0)
        except (TypeError, ValueError):
            self.channel_id = 0
        self.channel_name = str(env_name or get_config("discord.race_channel_name") or "").strip().lower()
        self.refresh_seconds = float(get_config("broadcast.discord_refresh_seconds", 2.0))
        self.channel: Optional[discord.TextChannel] = None
        self.live_message: Optional[discord.Message] = None
        self.last_edit = 0.0
        self.subscription = None
        self.relay_task: Optional[asyncio.Task] = self.bot.loop.create_task(self.relay_loop())

    async def cog_unload(self):
        if self.relay_task:
            self.relay_task.cancel()
        if self.subscription is not None:
            self.subscription.close()

    async def resolve_channel(self) -> Optional[discord.TextChannel]:
        while True:
            channel = None
            if self.channel_id:
                channel = self.bot.get_channel(self.channel_id)
                if channel is None:
                    try:
                        channel = await self.bot.fetch_channel(self.channel_id)
                    except discord.HTTPException as fetch_err:
                        log.warning("[RaceBroadcast] Failed to fetch channel %s: %s", self.channel_id, fetch_err)
            elif self.channel_name:
                for guild in self.bot.guilds:
                    candidate = discord_get(guild.text_channels, name=self.channel_name)
                    if candidate:
                        channel = candidate
                        self.channel_id = candidate.id
                        break
                if channel is None:
                    log.info("[RaceBroadcast] Channel named '%s' not found yet.", self.channel_name)

            if isinstance(channel, discord.TextChannel):
                return channel
            if channel is not None:
                log.warning("[RaceBroadcast] Channel %s is not a text channel.", self.channel_id or self.channel_name)
                return None
            await asyncio.sleep(self.RETRY_SECONDS)

    async def relay_loop(self):
        await self.bot.wait_until_ready()
        if not self.channel_id and not self.channel_name:
            log.info("[RaceBroadcast] No race channel configured; relay disabled.")
            return
        self.channel = await self.resolve_channel()
        if self.channel is None:
            return

        self.subscription = self.controller.connect_observer(mailbox_size=self.MAILBOX_SIZE)
        try:
            async for event in self.subscription:
                try:
                    await self.handle_event(event)
                except discord.HTTPException as err:
                    log.warning("[RaceBroadcast] Failed to relay %s: %s", event.name, err)
        except asyncio.CancelledError:
            pass
        finally:
            self.subscription.close()

    async def handle_event(self, event: events.RaceEvent):
        if event.name == events.RACE_START:
            await self.channel.send(event.data.get("message", "The race has started!"))
            self.live_message = await self.channel.send(embed=build_live_embed(event.data))
            self.last_edit = asyncio.get_running_loop().time()
        elif event.name == events.RACE_UPDATE:
            await self.refresh_live_message(event.data)
        elif event.name == events.RACE_END:
            embed = build_final_embed(event.data)
            if self.live_message is not None:
                await self.live_message.edit(embed=embed)
            else:
                await self.channel.send(embed=embed)
            self.live_message = None
        elif event.name == events.RACE_RESET:
            self.live_message = None
            await self.channel.send(event.data.get("message", events.RESET_MESSAGE))
        elif event.name == events.RACE_STATUS and event.data.get("isRunning"):
            self.live_message = await self.channel.send(embed=build_live_embed(event.data))
            self.last_edit = asyncio.get_running_loop().time()

    async def refresh_live_message(self, data: Dict[str, Any]):
        # Discord rate limits message edits; intermediate ticks are simply skipped.
        now = asyncio.get_running_loop().time()
        if now - self.last_edit < self.refresh_seconds:
            return
        embed = build_live_embed(data)
        if self.live_message is None:
            self.live_message = await self.channel.send(embed=embed)
        else:
            await self.live_message.edit(embed=embed)
        self.last_edit = now


async def setup(bot: commands.Bot):
    await bot.add_cog(RaceBroadcastCog(bot))
