"""
Logging setup for the cart subsystem.

All cart modules log through children of the "lunchcart" logger:

    from lunchcart.logging import get_logger
    logger = get_logger(__name__)

LOG_LEVEL sets the level (INFO by default). LUNCHCART_ENV=production
switches to the short format without timestamps.
"""

import logging
import os
import sys
from functools import cache

PACKAGE_LOGGER = "lunchcart"

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_FORMAT_SIMPLE = "%(levelname)s - %(name)s - %(message)s"

# Control characters that would let a browser-supplied id forge log lines
_UNSAFE_CHARS = str.maketrans({"\n": "\\n", "\r": "\\r", "\t": "\\t", "\x00": None})


def _level_from_env() -> int:
    name = os.environ.get("LOG_LEVEL", "INFO").strip().upper()
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.INFO


def _setup_package_logger() -> None:
    """Attach a stdout handler to the package logger, once."""
    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.setLevel(_level_from_env())
    if package_logger.handlers:
        return

    production = os.environ.get("LUNCHCART_ENV") == "production"
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT_SIMPLE if production else LOG_FORMAT))
    package_logger.addHandler(handler)
    package_logger.propagate = False

    # One request line per cart call is noise at INFO
    for noisy in ("httpx", "httpcore"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


_setup_package_logger()


@cache
def get_logger(name: str) -> logging.Logger:
    """Logger for a module; names outside the package are nested under it."""
    if name != PACKAGE_LOGGER and not name.startswith(PACKAGE_LOGGER + "."):
        name = f"{PACKAGE_LOGGER}.{name}"
    return logging.getLogger(name)


def _clip(value, max_length: int, marker: str) -> str:
    if not value:
        return "N/A"
    text = str(value).translate(_UNSAFE_CHARS)
    if len(text) <= max_length:
        return text
    return text[:max_length] + marker


def sanitize_id_for_logging(id_value: str | None, max_length: int = 16) -> str:
    """
    Escape and truncate a user or product id before it reaches a log line.

    User ids come straight from the page session, so they are untrusted.
    """
    return _clip(id_value, max_length, "")


def sanitize_string_for_logging(value: str | None, max_length: int = 50) -> str:
    """Same as sanitize_id_for_logging for free text such as API messages."""
    return _clip(value, max_length, "...")


__all__ = [
    "get_logger",
    "sanitize_id_for_logging",
    "sanitize_string_for_logging",
]
