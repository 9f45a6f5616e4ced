"""Common logging configuration for EZ Forms"""

import logging
import sys

from ez_forms.config import config


class InfoFilter(logging.Filter):
    """Only let records below WARNING through"""

    def filter(self, record):
        return record.levelno < logging.WARNING


def setup_logging():
    """
    Send INFO/DEBUG to stdout and WARNING/ERROR to stderr.

    The root level comes from the LOG_LEVEL setting.
    """
    level = getattr(logging, config.get("log_level", "INFO").upper(), logging.INFO)

    formatter = logging.Formatter("%(levelname)s:%(name)s:%(message)s")

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setLevel(logging.DEBUG)
    stdout_handler.addFilter(InfoFilter())
    stdout_handler.setFormatter(formatter)

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setLevel(logging.WARNING)
    stderr_handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Avoid duplicate handlers when called twice (tests, reloads)
    root_logger.handlers.clear()
    root_logger.addHandler(stdout_handler)
    root_logger.addHandler(stderr_handler)


def get_logger(name: str) -> logging.Logger:
    """Get a logger for the given module name (usually __name__)"""
    return logging.getLogger(name)
