"""
Central logging configuration for calsync.

Keeps calsync's own loggers at the requested verbosity while quieting the
debug chatter of the HTTP and calendar libraries underneath.
"""

import logging
import os
from typing import Optional

_LOG_LEVEL_NAMES = ("DEBUG", "INFO", "WARNING", "ERROR")

# Third-party loggers that produce excessive debug output
_NOISY_LOGGERS: dict[str, int] = {
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "asyncio": logging.WARNING,
    "icalendar": logging.INFO,
}


def debug_requested_by_env() -> bool:
    """True when CALSYNC_DEBUG holds a truthy value."""
    return os.getenv("CALSYNC_DEBUG", "").strip().lower() in ("1", "true", "yes", "on")


def configure_logging(debug_mode: bool = False, force_debug: Optional[bool] = None) -> int:
    """
    Configure log levels for calsync and its third-party libraries.

    Args:
        debug_mode: Whether to enable debug logging for calsync modules
        force_debug: Override debug mode setting (None to use env var detection)

    Environment Variables:
        CALSYNC_DEBUG: Set to '1', 'true', 'yes' to force debug logging
        CALSYNC_LOG_LEVEL: Override root log level (DEBUG, INFO, WARNING, ERROR)

    Returns:
        The root log level that was applied
    """
    env_log_level = os.getenv("CALSYNC_LOG_LEVEL", "").strip().upper()

    if force_debug is not None:
        final_debug = force_debug
    else:
        final_debug = debug_mode or debug_requested_by_env()

    root_level = logging.DEBUG if final_debug else logging.INFO
    if env_log_level in _LOG_LEVEL_NAMES:
        root_level = getattr(logging, env_log_level)

    root_logger = logging.getLogger()
    root_logger.setLevel(root_level)

    # Only add a plain handler if __init__._init_logging has not installed one
    if not root_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)-7s %(name)s: %(message)s", "%H:%M:%S")
        )
        root_logger.addHandler(handler)

    for logger_name, level in _NOISY_LOGGERS.items():
        logging.getLogger(logger_name).setLevel(level)

    logging.getLogger("calsync").setLevel(logging.DEBUG if final_debug else root_level)

    if final_debug:
        root_logger.debug("Debug logging enabled for calsync modules")

    return root_level
