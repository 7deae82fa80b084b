"""
Logging setup.

Configures the standard library logging handlers used by the CLI and
provides masking for values that must never be logged in full.
"""

import logging
import os
from typing import Optional

LOGGER_NAME = "ymobile_usage"
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def mask_secret(value: Optional[str]) -> str:
    """Mask an identifier for display, keeping a short prefix and suffix.

    Example: ``09012345678`` becomes ``090****5678``. Values of 7 characters
    or fewer are masked entirely.
    """
    if not value:
        return ""
    if len(value) <= 7:
        return "*" * len(value)
    return value[:3] + "*" * (len(value) - 7) + value[-4:]


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return the package logger or one of its children."""
    if not name:
        return logging.getLogger(LOGGER_NAME)
    if name.startswith(LOGGER_NAME):
        return logging.getLogger(name)
    return logging.getLogger(f"{LOGGER_NAME}.{name}")


def setup_logging(level: str = "INFO", log_file: Optional[str] = None) -> logging.Logger:
    """Attach a stream handler and an optional file handler to the package logger.

    Calling this again replaces the handlers installed by a previous call.

    Args:
        level: Logging level name
        log_file: Optional path of a log file; its directory is created

    Returns:
        The configured package logger
    """
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    handlers = [logging.StreamHandler()]
    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    formatter = logging.Formatter(LOG_FORMAT)
    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    return logger
