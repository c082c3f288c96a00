"""Logging setup shared by all tools."""

import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

_HANDLER_NAME = "devops-rich"


def setup_logger(
    name: str, level: str = "INFO", console: Optional[Console] = None
) -> logging.Logger:
    """
    Configure logging output for a tool run.

    A single RichHandler is installed on the root logger so that module
    loggers created with get_logger() share the same output.

    Args:
        name: Logger name to return (usually the calling module)
        level: Log level name (DEBUG, INFO, WARNING, ...)
        console: Console to render to (defaults to stderr)

    Returns:
        Configured logger
    """
    root = logging.getLogger()
    root.setLevel(level.upper())

    if not any(getattr(h, "name", None) == _HANDLER_NAME for h in root.handlers):
        handler = RichHandler(
            console=console or Console(stderr=True),
            show_path=False,
            rich_tracebacks=True,
            markup=False,
        )
        handler.set_name(_HANDLER_NAME)
        handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))
        root.addHandler(handler)

    return logging.getLogger(name)


def get_logger(name: str) -> logging.Logger:
    """Get a module logger."""
    return logging.getLogger(name)
