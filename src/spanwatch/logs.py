"""Logging setup for spanwatch.

Library modules only create loggers under the "spanwatch" namespace; the
enclosing process decides where they go by calling setup_logging().
"""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from spanwatch.config import LoggingConfig

LOGGER_NAME = "spanwatch"
LOG_FORMAT = "[%(asctime)s] %(levelname)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"
MAX_LOG_BYTES = 10 * 1024 * 1024
LOG_BACKUP_COUNT = 5


def setup_logging(config: LoggingConfig | None = None) -> logging.Logger:
    """Attach a handler to the spanwatch logger.

    Logs go to a rotating file when one is configured, otherwise to stderr.
    Calling this again only updates the level.

    Args:
        config: Logging settings. Defaults to INFO on stderr.

    Returns:
        The package logger.
    """
    level = config.level if config else "INFO"
    log_file = config.file if config else None

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)

    # Avoid adding multiple handlers if re-initialized
    if logger.handlers:
        return logger

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handler: logging.Handler = RotatingFileHandler(
            log_file, maxBytes=MAX_LOG_BYTES, backupCount=LOG_BACKUP_COUNT
        )
    else:
        handler = logging.StreamHandler()

    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
    logger.addHandler(handler)
    return logger
