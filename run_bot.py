import logging
import os
import sys

import discord
from dotenv import load_dotenv

from duck_race.bot.manager import DuckRaceBotManager
from duck_race.config import get_env_int
from duck_race.control import RaceController

# Load environment variables from .env file
load_dotenv()
DISCORD_BOT_TOKEN = os.getenv("DISCORD_BOT_TOKEN")
GUILD_ID = get_env_int("DISCORD_GUILD_ID")

log = logging.getLogger("duck_race")


def run_bot():
    """Runs the Discord bot on its own, without the HTTP server."""
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    if not DISCORD_BOT_TOKEN:
        log.error("DISCORD_BOT_TOKEN not found in .env file.")
        sys.exit(1)

    bot = DuckRaceBotManager(
        command_prefix="!",
        intents=discord.Intents.default(),
        guild_id=GUILD_ID,
        controller=RaceController(),
    )
    log.info("Starting Discord bot...")
    bot.run(DISCORD_BOT_TOKEN, log_handler=None)


if __name__ == "__main__":
    run_bot()
