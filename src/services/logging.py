"""Logging configuration for the settlement engine and its CLI.

Output goes to stdout and to LOG_FILE. The level comes from, in order: an
explicit argument, the LOG_LEVEL environment variable, Settings.log_level.
Calculation warnings are logged at WARNING and ledger postings at INFO, so a
file at INFO level records every settlement that was posted or voided.
"""

import logging
import os
import sys
from pathlib import Path

from src.config.settings import settings

SETTLEMENT_LOGGER = "settlement"

LOG_FORMAT = "[%(asctime)s] %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

LOG_LEVEL_MAP = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def get_log_level(level_name: str | None = None) -> int:
    """Resolve a level name to a logging constant (unknown names mean INFO)."""
    name = level_name or os.getenv("LOG_LEVEL") or settings.log_level
    return LOG_LEVEL_MAP.get(name.upper(), logging.INFO)


def setup_logging(log_file: str | None = None, level_name: str | None = None) -> logging.Logger:
    """
    Point the root logger at stdout and a log file.

    Args:
        log_file: Log file path (default: Settings.log_file); its directory is created
        level_name: Level override, e.g. "DEBUG"

    Returns:
        The "settlement" logger used by the CLI

    Calling it again replaces the handlers of the previous call.
    """
    log_path = Path(log_file or settings.log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)
    log_level = get_log_level(level_name)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    for handler in root_logger.handlers[:]:
        handler.close()
        root_logger.removeHandler(handler)

    stdout_handler = logging.StreamHandler(sys.stdout)
    file_handler = logging.FileHandler(log_path)
    for handler in (stdout_handler, file_handler):
        handler.setLevel(log_level)
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

    return logging.getLogger(SETTLEMENT_LOGGER)


__all__ = ["LOG_LEVEL_MAP", "SETTLEMENT_LOGGER", "get_log_level", "setup_logging"]
