"""Logging setup: stdlib loggers rendered through rich."""

import logging

from rich.console import Console
from rich.logging import RichHandler

_HANDLER_NAME = "zepsync-rich"


def configure_logging(level: str | int = logging.WARNING) -> None:
    """Attach a RichHandler on stderr to the zepsync logger. Safe to call repeatedly."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.WARNING

    logger = logging.getLogger("zepsync")
    logger.setLevel(level)
    if not any(h.get_name() == _HANDLER_NAME for h in logger.handlers):
        handler = RichHandler(console=Console(stderr=True), show_path=False, rich_tracebacks=True)
        handler.set_name(_HANDLER_NAME)
        logger.addHandler(handler)


def mask_secret(value: str | None) -> str:
    if not value:
        return "NOT SET"
    return f"{value[:8]}..." if len(value) > 8 else "***"
