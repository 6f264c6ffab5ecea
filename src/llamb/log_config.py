"""Logging setup for the llamb CLI.

Library modules only create ``logging.getLogger(__name__)`` loggers. The CLI
calls :func:`setup_logging` once to route them to stderr through Rich, so log
lines never mix with streamed answer text on stdout.
"""

import logging

from rich.console import Console
from rich.logging import RichHandler

from .config import LogLevel


def setup_logging(level: str | int = "warning", console: Console | None = None) -> logging.Logger:
    """Configure the ``llamb`` logger hierarchy.

    Args:
        level: Level name ('debug', 'info', 'warning', 'error') or numeric level
        console: Console to log to (default: a new stderr console)

    Returns:
        The configured ``llamb`` logger
    """
    numeric = LogLevel.from_string(level) if isinstance(level, str) else level

    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        markup=False,
        rich_tracebacks=True,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))

    logger = logging.getLogger("llamb")
    logger.setLevel(numeric)
    for existing in logger.handlers[:]:
        logger.removeHandler(existing)
    logger.addHandler(handler)
    logger.propagate = False

    # Quiet chatty transport libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)

    return logger
