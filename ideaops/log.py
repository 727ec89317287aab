"""Console logging for the CLI.

Log records go to stderr through rich so that stdout carries only command
results (and stays parseable when ``--output json`` is used).
"""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

DEFAULT_LOG_LEVEL = "warn"

# trace has no stdlib equivalent; it is the most verbose level we offer.
LOG_LEVELS = {
    "trace": logging.DEBUG - 5,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def resolve_log_level(name: str | None) -> int:
    """Map a level name to a logging level, defaulting to warn."""
    if not name:
        return LOG_LEVELS[DEFAULT_LOG_LEVEL]
    return LOG_LEVELS.get(name.strip().lower(), LOG_LEVELS[DEFAULT_LOG_LEVEL])


def configure_logging(level: str | None = None) -> None:
    """Install a single RichHandler on the root logger."""
    logging.addLevelName(LOG_LEVELS["trace"], "TRACE")
    root = logging.getLogger()
    for handler in list(root.handlers):
        if isinstance(handler, RichHandler):
            root.removeHandler(handler)

    handler = RichHandler(
        console=Console(stderr=True),
        show_path=False,
        rich_tracebacks=False,
    )
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    root.addHandler(handler)
    root.setLevel(resolve_log_level(level))
