"""
Logging setup for the "authcore" logger hierarchy.

Every module logs through logging.getLogger("authcore.<area>"); this module
attaches one stdout handler to the hierarchy root at startup.
"""

import logging
import sys

from authcore.core.config import settings

LOG_FORMAT = "[%(asctime)s] %(levelname)s [%(name)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def configure_logging(level: str | None = None) -> logging.Logger:
    """
    Configure the "authcore" logger.

    Safe to call more than once: the handler is only added the first time.

    Args:
        level: Log level name, defaults to settings.LOG_LEVEL

    Returns:
        The configured "authcore" logger
    """
    logger = logging.getLogger("authcore")
    logger.setLevel((level or settings.LOG_LEVEL).upper())

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
        logger.addHandler(handler)

    return logger
