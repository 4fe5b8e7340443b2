import json
import logging
import os
from pathlib import Path

from dotenv import load_dotenv

log = logging.getLogger(__name__)

# Load environment variables from .env file
load_dotenv()

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent.parent / "configs" / "race_config.json"
CONFIG_FILE_PATH = Path(os.getenv("DUCK_RACE_CONFIG") or DEFAULT_CONFIG_PATH)


def load_config(path=CONFIG_FILE_PATH):
    """
    Loads the race tuning config file.
    Returns an empty dict when the file is missing or unreadable so every
    module falls back to its built-in defaults.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            config = json.load(f)
        if not isinstance(config, dict):
            log.error("Config file %s must contain a JSON object", path)
            return {}
        return config
    except FileNotFoundError:
        log.error("Could not find config file at %s; using defaults", path)
        return {}
    except (OSError, json.JSONDecodeError) as e:
        log.error("Could not parse config file %s: %s; using defaults", path, e)
        return {}


# Load the config ONCE when the module is first imported
RACE_CONFIG = load_config()


def get_config(key_path, default=None, config=None):
    """
    Safely gets a value from the loaded config using a 'dot.path'.
    Example: get_config('race.tick_interval_ms')
    """
    source = RACE_CONFIG if config is None else config
    if not source:
        return default

    try:
        value = source
        for key in key_path.split("."):
            value = value[key]
        return value
    except (KeyError, TypeError):
        log.debug("Config key %s not set; using default %r", key_path, default)
        return default


def get_env_int(name, default=None):
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        log.warning("Environment variable %s=%r is not an integer; using %r", name, raw, default)
        return default
