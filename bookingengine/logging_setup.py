"""Logging configuration with colored console output."""

import logging

from rich.console import Console
from rich.logging import RichHandler

PACKAGE_LOGGER = "bookingengine"


def configure_logging(verbose: bool = False) -> logging.Logger:
    """
    Attach a rich handler on stderr to the package logger.

    Args:
        verbose: Log DEBUG messages instead of INFO.

    Returns:
        The configured package logger.
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)

    if not any(isinstance(handler, RichHandler) for handler in logger.handlers):
        handler = RichHandler(
            console=Console(stderr=True),
            show_time=True,
            show_path=False,
            rich_tracebacks=True,
        )
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)

    logger.propagate = False
    return logger
