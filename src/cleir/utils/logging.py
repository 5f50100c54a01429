"""Logging configuration for Cleir.

Provides centralized logging setup with Rich console formatting
and optional file logging.

Example:
    >>> import logging
    >>> from cleir.utils.logging import setup_logging, LogContext
    >>> setup_logging(level="DEBUG")
    >>> logger = logging.getLogger(__name__)
    >>> logger.info("Starting analysis")
    >>> with LogContext("Enriching itinerary"):
    ...     # do work
    ... # Logs: "Enriching itinerary completed in 1.8s"
"""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.logging import RichHandler


# =============================================================================
# Constants
# =============================================================================

PACKAGE_NAME = "cleir"

# Third-party loggers that chatter at INFO
NOISY_LOGGERS = [
    "google",
    "google.auth",
    "google_genai",
    "urllib3",
    "httpx",
    "httpcore",
    "PIL",
    "asyncio",
]

FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s"
FILE_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_console = Console(stderr=True)


# =============================================================================
# Setup Functions
# =============================================================================


def setup_logging(
    level: str = "INFO",
    log_file: Path | None = None,
    quiet_third_party: bool = True,
) -> None:
    """Configure logging for the cleir package.

    Sets up a Rich console handler and, optionally, a plain file handler.
    Calling it again replaces the handlers rather than stacking them.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Optional path to log file.
        quiet_third_party: If True, raise noisy third-party loggers to WARNING.
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger(PACKAGE_NAME)
    root_logger.setLevel(numeric_level)
    root_logger.handlers = []

    console_handler = RichHandler(
        console=_console,
        show_time=False,
        show_path=False,
        rich_tracebacks=True,
        tracebacks_show_locals=numeric_level == logging.DEBUG,
        markup=False,
    )
    console_handler.setLevel(numeric_level)
    root_logger.addHandler(console_handler)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=FILE_DATE_FORMAT))
        root_logger.addHandler(file_handler)

    if quiet_third_party:
        for logger_name in NOISY_LOGGERS:
            logging.getLogger(logger_name).setLevel(logging.WARNING)

    root_logger.propagate = False
    root_logger.debug(f"Logging configured: level={level}, file={log_file}")


# =============================================================================
# Log Context Manager
# =============================================================================


class LogContext:
    """Context manager that logs an operation's start, end and duration.

    Attributes:
        message: Description of the operation.
        level: Log level for messages.
        logger: Logger instance to use.
        elapsed: Elapsed time in seconds (after exit).

    Example:
        >>> with LogContext("Routing trip analysis") as ctx:
        ...     pass
        >>> ctx.elapsed >= 0
        True
    """

    def __init__(
        self,
        message: str,
        level: int = logging.INFO,
        logger: logging.Logger | None = None,
    ) -> None:
        self.message = message
        self.level = level
        self.logger = logger or logging.getLogger(PACKAGE_NAME)
        self.elapsed: float = 0.0
        self._start_time: float = 0.0

    def __enter__(self) -> "LogContext":
        self._start_time = time.perf_counter()
        self.logger.log(self.level, f"{self.message}...")
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        self.elapsed = time.perf_counter() - self._start_time

        if exc_type is not None:
            self.logger.error(f"{self.message} failed after {self.elapsed:.2f}s: {exc_val}")
        else:
            self.logger.log(self.level, f"{self.message} completed in {self.elapsed:.2f}s")
