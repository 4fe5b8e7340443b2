import logging
import os

import discord
import uvicorn
from dotenv import load_dotenv

from duck_race.bot.manager import DuckRaceBotManager
from duck_race.config import get_config, get_env_int
from duck_race.control import RaceController
from duck_race.server import create_app

# Load environment variables from .env file
load_dotenv()

log = logging.getLogger("duck_race")


def build_discord_runner(controller: RaceController):
    """Returns a coroutine factory running the Discord relay, or None when not configured."""
    token = os.getenv("DISCORD_BOT_TOKEN")
    if not token:
        return None

    bot = DuckRaceBotManager(
        command_prefix="!",
        intents=discord.Intents.default(),
        guild_id=get_env_int("DISCORD_GUILD_ID"),
        controller=controller,
    )

    async def run_discord():
        try:
            await bot.start(token)
        finally:
            if not bot.is_closed():
                await bot.close()

    return run_discord


def main():
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    controller = RaceController()
    background = []
    discord_runner = build_discord_runner(controller)
    if discord_runner is not None:
        background.append(discord_runner)
        log.info("Discord relay enabled")

    app = create_app(controller, background=background)
    host = os.getenv("DUCK_RACE_HOST") or get_config("server.host", "0.0.0.0")
    port = get_env_int("DUCK_RACE_PORT", int(get_config("server.port", 3333)))
    log.info("Duck Race Server listening on http://%s:%s", host, port)
    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    main()
