"""Log level selection and handler setup for the CLI."""

import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "dirmirror"


def resolve_log_level(info: bool, debug: bool) -> int:
    """Debug wins over info; without either only warnings and errors are shown."""
    if debug:
        return logging.DEBUG
    if info:
        return logging.INFO
    return logging.WARNING


def configure_logging(level: int, console: Optional[Console] = None) -> logging.Logger:
    """Attach a RichHandler to the package logger at *level*.

    Calling this again replaces the previously installed handler.
    """
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        if isinstance(handler, RichHandler):
            logger.removeHandler(handler)

    handler = RichHandler(console=console, show_path=False, markup=False)
    handler.setLevel(level)
    logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False
    return logger
