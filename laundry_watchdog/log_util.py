"""Logging helpers shared across the Laundry Watchdog package."""

import logging
import os

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
LOG_LEVEL_ENV = "LAUNDRY_WATCHDOG_LOG_LEVEL"


def app_logger(name: str) -> logging.Logger:
    """
    Return a module logger with a single stream handler attached.

    The level comes from LAUNDRY_WATCHDOG_LOG_LEVEL (default INFO).
    Calling this repeatedly for the same name does not stack handlers.
    """
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
        logger.propagate = False
    level_name = os.environ.get(LOG_LEVEL_ENV, "INFO").upper()
    logger.setLevel(getattr(logging, level_name, logging.INFO))
    return logger
