"""Console logging for the command line and for hosts that want engine output."""

import sys

from loguru import logger

from coalition_engine.settings import LOG_LEVEL

LOG_FORMAT = "<level>{level: <7}</level> | {name}:{function} | {message}"


def setup_logging(level: str = LOG_LEVEL):
    """Route ``coalition_engine`` records at ``level`` and above to stderr."""
    logger.remove()
    logger.enable("coalition_engine")
    logger.add(sys.stderr, format=LOG_FORMAT, level=level.upper(), colorize=False)
    return logger
