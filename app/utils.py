"""
Shared helpers.
"""
import logging

from app.core import config


_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
_configured = False


def get_logger(name: str) -> logging.Logger:
    """
    Get a named logger, configuring the root handler on first use.

    Usage:
        log = get_logger(__name__)
        log.info("Something happened")
    """
    global _configured
    if not _configured:
        logging.basicConfig(level=config.LOG_LEVEL, format=_FORMAT)
        _configured = True
    return logging.getLogger(name)
