"""Logging setup for the CLI."""

from __future__ import annotations

import logging

from rich.logging import RichHandler

from .config import settings


def configure_logging(level: str | None = None) -> None:
    """Route stdlib logging through rich.

    The level comes from the argument or ``CARDCONNECT_LOG_LEVEL``
    (default ``INFO``). Calling it again replaces the handler.
    """
    resolved_level = (level or settings.log_level or "INFO").upper()
    logging.basicConfig(
        level=resolved_level,
        format="%(name)s: %(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
        force=True,
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
