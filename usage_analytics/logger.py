"""Shared application logger.

Every module logs through ``from usage_analytics.logger import logger``.
``setup_logging`` is called once by the app factory or CLI.
"""
import logging
import sys

from usage_analytics.modules.observability.structured_logger import StructuredFormatter

LOGGER_NAME = "usage-analytics"
TEXT_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"

logger = logging.getLogger(LOGGER_NAME)


def setup_logging(level: str = "INFO", log_format: str = "text") -> logging.Logger:
    """
    Configure the shared logger.

    Args:
        level: Log level name (DEBUG, INFO, ...)
        log_format: "text" for human-readable lines, "json" for structured output

    Returns:
        The configured logger
    """
    handler = logging.StreamHandler(sys.stdout)
    if log_format == "json":
        handler.setFormatter(StructuredFormatter(service=LOGGER_NAME))
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))

    logger.handlers.clear()
    logger.addHandler(handler)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    return logger
