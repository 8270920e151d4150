"""
Logging configuration for the ParcelAI tracker.
Uses loguru; lookups are tagged with their tracking number.
"""

import sys
from pathlib import Path
from loguru import logger

from parcelai.config import TrackerConfig


CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan> | "
    "<level>{message}</level>"
)

FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {extra[tracking_number]: <22} | {name}:{function}:{line} | {message}"

NO_TRACKING_NUMBER = "-"


def _is_lookup(record) -> bool:
    return record["extra"].get("tracking_number", NO_TRACKING_NUMBER) != NO_TRACKING_NUMBER


def _add_file_sinks(log_path: Path, level: str) -> None:
    """Main log, error-only log and per-lookup log, side by side."""
    log_path.parent.mkdir(parents=True, exist_ok=True)
    common = dict(format=FILE_FORMAT, rotation="10 MB", compression="zip", enqueue=True)

    logger.add(str(log_path), level=level, retention="30 days", **common)
    logger.add(str(log_path.parent / "error.log"), level="ERROR", retention="60 days", **common)
    # Only records logged through TrackingLogger
    logger.add(str(log_path.parent / "lookups.log"), level=level, retention="14 days", filter=_is_lookup, **common)


def setup_logging(config: TrackerConfig, console: bool = True) -> None:
    """
    Configure logging for the tracker.

    Console output goes to stderr so stdout stays clean for results.
    When LOG_FILE is set, rotating main, error and lookup logs are
    written next to it.

    Args:
        config: Tracker configuration
        console: Whether to output to console (disable for JSON CLI output)
    """
    logger.remove()
    logger.configure(extra={"tracking_number": NO_TRACKING_NUMBER})

    if console:
        logger.add(sys.stderr, format=CONSOLE_FORMAT, level=config.log_level, colorize=True)

    if config.log_file:
        _add_file_sinks(Path(config.log_file), config.log_level)

    logger.debug(f"Logging initialized - Level: {config.log_level}, File: {config.log_file or 'none'}")


class TrackingLogger:
    """Context logger for a single tracking lookup."""

    def __init__(self, tracking_number: str):
        self.tracking_number = tracking_number
        self._logger = logger.bind(tracking_number=tracking_number)

    def _prefix(self, message: str) -> str:
        return f"[Track:{self.tracking_number}] {message}"

    def info(self, message: str, **kwargs):
        self._logger.info(self._prefix(message), **kwargs)

    def debug(self, message: str, **kwargs):
        self._logger.debug(self._prefix(message), **kwargs)

    def warning(self, message: str, **kwargs):
        self._logger.warning(self._prefix(message), **kwargs)

    def error(self, message: str, **kwargs):
        self._logger.error(self._prefix(message), **kwargs)

    def exception(self, message: str, **kwargs):
        self._logger.exception(self._prefix(message), **kwargs)
