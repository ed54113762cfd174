"""Logging setup shared by every module."""

import logging
import sys

from chatrelay.core.config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logger(name: str) -> logging.Logger:
    """
    Get a logger configured with the application's handler and level.

    Calling this more than once for the same name returns the same logger
    without stacking handlers.

    Args:
        name: Logger name, usually ``__name__`` of the calling module

    Returns:
        logging.Logger: The configured logger
    """
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
        logger.propagate = False
    logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
    return logger
