"""
Logging utilities.

WHAT: Root logger configuration for the negotiation service
WHY: Engine, store and provider logs share one format and one file
HOW: stdlib logging with a console handler and an optional file handler
"""

import logging
import sys
from pathlib import Path

from ..core.config import Settings

CONSOLE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(pathname)s:%(lineno)d - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Per-request chatter from HTTP and SQL libraries
NOISY_LOGGERS = ("httpx", "httpcore", "sqlalchemy.engine")


def setup_logging(settings: Settings) -> None:
    """
    Configure application logging.

    Replaces existing root handlers, so calling it twice does not duplicate
    output. An empty LOG_FILE disables the file handler.
    """
    level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt=DATE_FORMAT))
    root_logger.addHandler(console_handler)

    log_file = None
    if settings.LOG_FILE:
        log_file = Path(settings.LOG_FILE)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=DATE_FORMAT))
        root_logger.addHandler(file_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG if settings.DEBUG else logging.WARNING)

    root_logger.info(f"Logging initialized (level={settings.LOG_LEVEL}, file={log_file or 'disabled'})")


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
