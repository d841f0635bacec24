"""Logging configuration for spherepath."""

import logging
import os

DEFAULT_LOG_FORMAT = "%(asctime)s - %(processName)s - %(name)s - %(levelname)s - %(message)s"

LOG_LEVEL_ENV = "SPHEREPATH_LOG_LEVEL"


def setup_logging(
    level: str | None = None,
    fmt: str = DEFAULT_LOG_FORMAT,
) -> logging.Logger:
    """Set up console logging for the spherepath package.

    Calling this more than once only updates the level; a second handler is
    never attached.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
            Defaults to the SPHEREPATH_LOG_LEVEL environment variable, or INFO.
        fmt: Format string for the console handler.

    Returns:
        The configured package logger.
    """
    if level is None:
        level = os.environ.get(LOG_LEVEL_ENV, "INFO")

    numeric_level = getattr(logging, level.upper(), logging.INFO)

    logger = logging.getLogger("spherepath")
    logger.setLevel(numeric_level)

    if not any(getattr(h, "_spherepath_handler", False) for h in logger.handlers):
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(logging.Formatter(fmt))
        console_handler._spherepath_handler = True
        logger.addHandler(console_handler)

    for handler in logger.handlers:
        handler.setLevel(numeric_level)

    return logger
