"""Logging configuration for the command line. Library code only creates loggers."""

import logging

from rich.logging import RichHandler


def configure_logging(level: str = "WARNING") -> None:
    root = logging.getLogger()
    root.setLevel(level.upper())
    for handler in root.handlers:
        if isinstance(handler, RichHandler):
            return
    root.addHandler(RichHandler(show_path=False, rich_tracebacks=True))
