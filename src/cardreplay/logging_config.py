"""
Logging configuration for cardreplay.

Modules log through ``logging.getLogger(__name__)``; this module attaches a
handler to the ``cardreplay`` package logger. Output goes to stderr so JSON
written to stdout stays parseable.

Environment Variables:
    CARDREPLAY_LOG_LEVEL: DEBUG, INFO, WARNING, ERROR (overrides the argument)
    CARDREPLAY_LOG_FORMAT: rich, plain (overrides the argument)
"""

import logging
import os
import sys

from rich.console import Console
from rich.logging import RichHandler

PACKAGE_LOGGER = "cardreplay"

_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def setup_logging(level: str = "WARNING", fmt: str = "rich") -> logging.Logger:
    """
    Configure the package logger.

    Calling this again replaces the handler installed by the previous call.

    Args:
        level: Log level name
        fmt: "rich" for Rich-formatted output, "plain" for a text formatter

    Returns:
        The configured package logger
    """
    level_name = os.getenv("CARDREPLAY_LOG_LEVEL", level).upper()
    fmt = os.getenv("CARDREPLAY_LOG_FORMAT", fmt).lower()
    log_level = _LEVELS.get(level_name, logging.WARNING)

    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(log_level)
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    handler: logging.Handler
    if fmt == "plain":
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
    else:
        handler = RichHandler(
            console=Console(stderr=True),
            show_path=False,
            rich_tracebacks=True,
        )
        handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))

    handler.setLevel(log_level)
    logger.addHandler(handler)
    return logger
