from __future__ import annotations

import logging
import sys
from datetime import UTC, datetime
from pathlib import Path
from types import TracebackType

"""Logging initialization with labeled prefixes.

Every line goes to stdout and to a durable append-mode file
``<log_dir>/run_<YYYY-MM-DD>.log``. Both sinks share the same
``LabeledFormatter`` so the console and the file read identically::

    2026-10-18T07:15:02.113Z INFO Processing CompanyCode: 1000
    2026-10-18T07:15:04.870Z WARN Sum is not zero: 0.1 for SalesOrder: 500, Item: 10

Modules log via ``logging.getLogger(__name__)``; since they live under the
``prepay_sync`` package their records propagate to the logger configured here.
"""

__all__ = [
    "setup_logging",
    "get_logger",
    "log_summary",
    "reset_logging",
    "set_debug",
    "log_file_path",
    "LOGGER_NAME",
]

LOGGER_NAME = "prepay_sync"

# Custom SUMMARY level (between INFO=20 and WARNING=30)
SUMMARY_LEVEL = 25

# Global logger instance
_logger: logging.Logger | None = None
_log_file: Path | None = None


class LabeledFormatter(logging.Formatter):
    """Formatter producing ``<timestamp> <LABEL> <message>`` lines.

    Exception info attached to a record is appended below the message so
    tracebacks land in the durable log as well.
    """

    LEVEL_LABELS = {
        logging.DEBUG: "DEBUG",
        logging.INFO: "INFO",
        logging.WARNING: "WARN",
        logging.ERROR: "ERROR",
        logging.CRITICAL: "CRITICAL",
        SUMMARY_LEVEL: "SUMMARY",
    }

    def __init__(self, with_timestamp: bool = True) -> None:
        super().__init__()
        self.with_timestamp = with_timestamp

    def format(self, record: logging.LogRecord) -> str:
        level_label = self.LEVEL_LABELS.get(record.levelno, record.levelname)
        line = f"{level_label} {record.getMessage()}"
        if self.with_timestamp:
            ts = datetime.fromtimestamp(record.created, UTC).isoformat(timespec="milliseconds")
            line = f"{ts.replace('+00:00', 'Z')} {line}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def _log_uncaught(
    exc_type: type[BaseException], exc: BaseException, tb: TracebackType | None
) -> None:
    if issubclass(exc_type, KeyboardInterrupt):
        sys.__excepthook__(exc_type, exc, tb)
        return
    get_logger().critical("UncaughtException:", exc_info=(exc_type, exc, tb))


def setup_logging(log_dir: Path | None = None) -> logging.Logger:
    """Setup the application logger (console + durable file sink).

    Args:
        log_dir: Directory for ``run_<date>.log``. ``None`` configures the
            console sink only (used by tests and ``get_logger``).

    Returns:
        Configured logger instance (idempotent: a second call returns it as is)
    """
    global _logger, _log_file

    if _logger is not None:
        return _logger

    logging.addLevelName(SUMMARY_LEVEL, "SUMMARY")

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.INFO)

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        handler.close()

    formatter = LabeledFormatter()

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(logging.INFO)
    console.setFormatter(formatter)
    logger.addHandler(console)

    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        _log_file = log_dir / f"run_{datetime.now(UTC).strftime('%Y-%m-%d')}.log"
        file_handler = logging.FileHandler(_log_file, mode="a", encoding="utf-8")
        file_handler.setLevel(logging.INFO)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    # Prevent propagation to root logger to avoid duplicate output
    logger.propagate = False

    sys.excepthook = _log_uncaught

    _logger = logger
    if _log_file is not None:
        logger.info(f"Logging to file: {_log_file}")
    return logger


def set_debug(logger: logging.Logger) -> None:
    for h in logger.handlers:
        h.setLevel(logging.DEBUG)
    logger.setLevel(logging.DEBUG)


def get_logger() -> logging.Logger:
    if _logger is None:
        return setup_logging()
    return _logger


def log_file_path() -> Path | None:
    return _log_file


def log_summary(message: str) -> None:
    """Log a message at SUMMARY level."""
    get_logger().log(SUMMARY_LEVEL, message)


def reset_logging() -> None:
    """Reset the global logger state (closes file handlers). Mainly for tests."""
    global _logger, _log_file
    logger = logging.getLogger(LOGGER_NAME)
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
    sys.excepthook = sys.__excepthook__
    _logger = None
    _log_file = None
