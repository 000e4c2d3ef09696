"""
Runtime configuration, read from the environment.

`load_config()` is called once by the API entry point (after `.env` is
loaded) and the resulting Config is passed to whatever needs it.
"""

import logging
import os
from dataclasses import dataclass

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = "postgresql://localhost:5432/stories"


def _parse_env_int(name: str, default: int, min_val: int, max_val: int) -> int:
    """
    Parse an integer environment variable with bounds checking.

    Returns the default (and logs a warning) when the value is missing,
    malformed or out of bounds.
    """
    try:
        val = int(os.getenv(name, str(default)))
        if not (min_val <= val <= max_val):
            logger.warning(f"{name}={val} out of bounds [{min_val}, {max_val}], using {default}")
            return default
        return val
    except ValueError:
        logger.warning(f"{name} invalid, using {default}")
        return default


def _parse_env_bool(name: str, default: bool = False) -> bool:
    return os.getenv(name, str(default)).lower() in ("1", "true", "yes")


@dataclass(frozen=True)
class Config:
    database_url: str = DEFAULT_DATABASE_URL
    disable_live_updates: bool = False
    # milliseconds since the last comment after which live updates stop; 0 disables
    disable_live_updates_timeout: int = 0
    scraper_timeout: int = 10
    scraper_user_agent: str = "StoryScraper/1.0"


def load_config() -> Config:
    return Config(
        database_url=os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL),
        disable_live_updates=_parse_env_bool("DISABLE_LIVE_UPDATES"),
        disable_live_updates_timeout=_parse_env_int(
            "DISABLE_LIVE_UPDATES_TIMEOUT", 0, 0, 365 * 24 * 60 * 60 * 1000
        ),
        scraper_timeout=_parse_env_int("SCRAPER_TIMEOUT", 10, 1, 120),
        scraper_user_agent=os.getenv("SCRAPER_USER_AGENT", "StoryScraper/1.0"),
    )
