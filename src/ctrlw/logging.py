"""Logging configuration for the ctrlw core.

All package loggers hang off the ``ctrlw`` logger. Handlers installed here
carry a filter that masks anything shaped like a signed token, so a token
that slips into an exception message never reaches a log file.
"""

import logging
import re
from pathlib import Path

from ctrlw.config import Config

LOGGER_NAME = "ctrlw"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# header.payload.signature, each part unpadded base64url
TOKEN_PATTERN = re.compile(r"\beyJ[\w-]+\.[\w-]+\.[\w-]+")
REDACTED = "[token]"

_logger: logging.Logger | None = None


class TokenRedactingFilter(logging.Filter):
    """Replace signed tokens in a record's message with a placeholder."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        if TOKEN_PATTERN.search(message):
            record.msg = TOKEN_PATTERN.sub(REDACTED, message)
            record.args = None
        return True


def _build_handlers(config: Config) -> list[logging.Handler]:
    handlers: list[logging.Handler] = []

    if config.log_file:
        log_path = Path(config.log_file).expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path))

    handlers.append(logging.StreamHandler())

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    redactor = TokenRedactingFilter()
    for handler in handlers:
        handler.setFormatter(formatter)
        handler.addFilter(redactor)
    return handlers


def setup_logging(config: Config) -> logging.Logger:
    """Configure the package logger from config (idempotent).

    Args:
        config: Configuration object with log settings.

    Returns:
        The ``ctrlw`` logger.
    """
    global _logger

    if _logger is not None:
        return _logger

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, config.log_level.upper(), logging.INFO))
    logger.handlers.clear()
    for handler in _build_handlers(config):
        logger.addHandler(handler)
    logger.propagate = False

    _logger = logger
    return logger


def reset_logging() -> None:
    """Reset logging state. Used for testing."""
    global _logger
    if _logger is None:
        return
    for handler in _logger.handlers:
        handler.close()
    _logger.handlers.clear()
    _logger.propagate = True
    _logger = None
