"""Logging setup for Swadloon.

Everything goes to a rotating `swadloon.log` in the data directory at DEBUG,
with the worker thread name on every line. The terminal gets a Rich handler
at the requested level, on the shared `console` so that progress bars drawn
on the same console stay intact while workers log.
"""

from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.theme import Theme

LOG_FILE_NAME = "swadloon.log"

console = Console(theme=Theme({"logging.level.info": "bold cyan"}), stderr=True)

_logging_initialized = False


def _log_dir() -> Path:
    # config imports this module, so DATA_DIR is resolved here as well
    return Path(os.environ.get("DATA_DIR") or Path(__file__).resolve().parents[1])


def setup_logging(log_level: str = "INFO") -> None:
    """Attach the file and console handlers to the root logger (once).

    Args:
        log_level: Console level name (DEBUG, INFO, WARNING, ERROR)
    """
    global _logging_initialized

    if _logging_initialized:
        return

    log_dir = _log_dir()
    log_dir.mkdir(parents=True, exist_ok=True)

    file_handler = RotatingFileHandler(
        log_dir / LOG_FILE_NAME,
        maxBytes=10 * 1024 * 1024,
        backupCount=5,
        encoding="utf-8",
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(
        logging.Formatter(
            "%(asctime)s - %(levelname)-8s - %(threadName)s - %(name)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )

    console_handler = RichHandler(
        console=console,
        rich_tracebacks=True,
        show_time=False,
        show_path=False,
    )
    console_handler.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)

    # requests logs every connection at DEBUG through urllib3
    logging.getLogger("urllib3").setLevel(logging.WARNING)

    _logging_initialized = True


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
