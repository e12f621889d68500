"""
Logging utilities for the rent reclaimer.
"""

import logging
import sys

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Loggers handed out so far, keyed by name
_loggers: dict[str, logging.Logger] = {}


def get_logger(name: str, level: int = logging.INFO) -> logging.Logger:
    """Get or create a logger that writes to stdout.

    Args:
        name: Logger name, typically __name__
        level: Logging level used the first time the logger is created

    Returns:
        Configured logger
    """
    if name in _loggers:
        return _loggers[name]

    logger = logging.getLogger(name)
    logger.setLevel(level)

    if not logger.handlers:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
        logger.addHandler(console_handler)

    _loggers[name] = logger
    return logger


def set_log_level(level: int) -> None:
    """Change the level of every logger created through get_logger."""
    for logger in _loggers.values():
        logger.setLevel(level)


def setup_file_logging(
    filename: str = "rent_reclaimer.log", level: int = logging.INFO
) -> None:
    """Attach a file handler to the root logger.

    Module loggers propagate to the root, so scan summaries and raw provider
    errors end up in the file as well as on stdout.

    Args:
        filename: Log file path
        level: Logging level for file handler
    """
    file_handler = logging.FileHandler(filename)
    file_handler.setLevel(level)
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))

    logging.getLogger().addHandler(file_handler)
