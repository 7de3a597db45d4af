"""
Central logging configuration for icsfeed.

Keeps icsfeed's own loggers verbose enough to follow a poll cycle while
suppressing debug chatter from the HTTP stack and the event loop.
"""

import logging
import os
from typing import Optional

from . import _init_logging

# Third-party libraries that generate excessive debug logs
NOISY_LOGGERS: dict[str, int] = {
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "asyncio": logging.WARNING,
    "icalendar": logging.INFO,
}

VALID_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _env_debug() -> bool:
    return os.getenv("ICSFEED_DEBUG", "").strip().lower() in ("1", "true", "yes", "on")


def configure_logging(level: Optional[str] = "INFO", debug: Optional[bool] = None) -> int:
    """
    Configure console logging and per-library levels.

    Args:
        level: Root level name used when neither debug nor ICSFEED_LOG_LEVEL applies
        debug: Force debug mode on/off (None to use env var detection)

    Returns:
        The effective root level

    Environment Variables:
        ICSFEED_DEBUG: Set to '1', 'true', 'yes' or 'on' to force debug logging
        ICSFEED_LOG_LEVEL: Override root log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    final_debug = _env_debug() if debug is None else debug

    level_name = (level or "INFO").upper()
    env_level = os.getenv("ICSFEED_LOG_LEVEL", "").strip().upper()
    if env_level in VALID_LEVELS:
        level_name = env_level
    if final_debug:
        level_name = "DEBUG"
    if level_name not in VALID_LEVELS:
        level_name = "INFO"

    _init_logging(level_name)
    root_level = getattr(logging, level_name)
    logging.getLogger().setLevel(root_level)

    for logger_name, logger_level in NOISY_LOGGERS.items():
        logging.getLogger(logger_name).setLevel(logger_level)
    logging.getLogger("icsfeed").setLevel(logging.DEBUG if final_debug else root_level)

    logging.getLogger(__name__).debug(
        "Logging configured (root=%s, debug=%s)", level_name, final_debug
    )
    return root_level


def get_logging_status() -> dict[str, str]:
    """
    Get current logging configuration status.

    Returns:
        Dictionary mapping logger names to their current levels
    """
    status = {"root": logging.getLevelName(logging.getLogger().level)}
    for logger_name in ["icsfeed", *NOISY_LOGGERS]:
        status[logger_name] = logging.getLevelName(logging.getLogger(logger_name).level)
    return status
