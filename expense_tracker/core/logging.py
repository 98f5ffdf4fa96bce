import logging
from typing import Optional

from ..config import settings


LOGGER_NAME = "expense_tracker"
LOG_FORMAT = "%(asctime)s - %(levelname)s - [%(name)s] - %(message)s"


def configure_logging(level: Optional[str] = None) -> logging.Logger:
    """Set up the package logger with a console handler. Safe to call twice."""
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel((level or settings.log_level).upper())

    if not logger.handlers:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(console_handler)

    return logger
