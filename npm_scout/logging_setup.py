"""Console and file logging for the npm-scout CLI.

Console output goes through a Rich handler at WARNING (INFO with
``--verbose``); a rotating file under ``~/.npm-scout/logs/`` keeps DEBUG
detail for later inspection.
"""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

from . import config

LOGGER_NAME = "npm_scout"


def get_log_file() -> Path:
    return config.LOG_DIR / "npm-scout.log"


def configure_logging(
    verbose: bool = False,
    log_file: Path | None = None,
    console: Console | None = None,
    max_bytes: int = 5 * 1024 * 1024,
    backup_count: int = 3,
) -> Path:
    """Attach Rich console and rotating file handlers to the package logger.

    Calling this again replaces the handlers instead of stacking them.

    Returns:
        Path of the log file.
    """
    log_file = log_file or get_log_file()
    log_file.parent.mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger(LOGGER_NAME)
    for handler in root_logger.handlers[:]:
        if isinstance(handler, (RichHandler, logging.FileHandler)):
            root_logger.removeHandler(handler)
            handler.close()

    console_handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
    )
    console_handler.setLevel(logging.INFO if verbose else logging.WARNING)
    root_logger.addHandler(console_handler)

    file_handler = RotatingFileHandler(
        log_file, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(
        logging.Formatter(
            "%(asctime)s %(levelname)-8s %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    root_logger.addHandler(file_handler)
    root_logger.setLevel(logging.DEBUG)
    return log_file
