"""Logging configuration for the compositor and editor sessions."""

import logging
import sys

from fieldsign.config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _resolve_level() -> int:
    if settings.debug:
        return logging.DEBUG
    return getattr(logging, settings.log_level.upper(), logging.INFO)


def setup_logger(name: str | None = None) -> logging.Logger:
    """Set up and return a stdout logger at the configured level.

    Coordinate traces for placement and export are emitted at DEBUG, so
    setting ``DEBUG=true`` is enough to follow a field from click to PDF.
    """
    logger = logging.getLogger(name or __name__)
    logger.setLevel(_resolve_level())

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(logging.DEBUG)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        logger.addHandler(handler)

    return logger


# Default logger instance
logger = setup_logger("field_compositor")
