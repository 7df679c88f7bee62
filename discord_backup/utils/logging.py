"""Centralized logging configuration with rich integration.

This module provides:
- A single shared Console instance for all rich output
- Logging configuration with RichHandler
- Optional file logging with traditional formatting

Usage:
    from discord_backup.utils.logging import console, setup_logging
    import logging

    setup_logging(level=logging.DEBUG)
    logger = logging.getLogger(__name__)
    logger.info("Hello")

Call setup_logging() once at application startup, not at import time.
"""

from __future__ import annotations

import logging
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler


# Shared Console for RichHandler, progress lines and summary panels.
console = Console()

FILE_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"


def setup_logging(
    level: int = logging.INFO,
    log_file: str | Path | None = None,
    debug_third_party: bool = False,
) -> None:
    """Configure logging with RichHandler using the shared console.

    Args:
        level: Logging level for the root logger (default: INFO)
        log_file: Optional path to a log file for persistent logging
        debug_third_party: If True, let httpx/httpcore log at DEBUG level
    """
    handlers: list[logging.Handler] = [
        RichHandler(
            console=console,
            show_path=False,
            rich_tracebacks=True,
            tracebacks_show_locals=False,
        )
    ]

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(
            logging.Formatter(FILE_LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
        )
        handlers.append(file_handler)

    # force=True so a second call (tests, notebooks) replaces earlier handlers
    logging.basicConfig(
        level=level,
        handlers=handlers,
        format="%(message)s",
        force=True,
    )

    third_party_level = logging.DEBUG if debug_third_party else logging.WARNING
    for name in ("httpx", "httpcore"):
        logging.getLogger(name).setLevel(third_party_level)
