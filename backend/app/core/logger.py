"""Logging setup for the backend.

Modules log through ``logging.getLogger(__name__)``; this module only
attaches the console handler to the package logger once.
"""

import logging

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
APP_LOGGER_NAME = "app"


def configure_logging(level: str | int = logging.INFO) -> logging.Logger:
    """Attach a stream handler to the ``app`` logger.

    Safe to call repeatedly (one handler per process, level is updated).

    Args:
        level: Level name ("DEBUG", "INFO", ...) or numeric level.

    Returns:
        The configured package logger.
    """
    logger = logging.getLogger(APP_LOGGER_NAME)
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    logger.setLevel(level)

    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)

    return logger
