"""Logging configuration for the identity resolution pipeline.

Every module logs through ``get_logger(__name__)``. Records carry a timestamp,
the level and the module name. Enrollment and verification decisions go
through ``log_decision`` so they can be audited after the fact as one
``key=value`` line each. Descriptors themselves are never logged.
"""

from __future__ import annotations

import dataclasses
import logging
import sys
from typing import Any, Optional

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class ColoredFormatter(logging.Formatter):
    """Formatter that colours the level name when writing to a terminal."""

    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"
    BOLD = "\033[1m"

    def format(self, record: logging.LogRecord) -> str:
        """Format log record with colors if the stream is a TTY."""
        if hasattr(sys.stdout, "isatty") and sys.stdout.isatty():
            record = logging.makeLogRecord(record.__dict__)
            levelname = record.levelname
            if levelname in self.COLORS:
                record.levelname = (
                    f"{self.COLORS[levelname]}{self.BOLD}{levelname}{self.RESET}"
                )
                record.name = f"{self.BOLD}{record.name}{self.RESET}"

        return super().format(record)


def setup_logging(
    name: str = "faceverify",
    level: Optional[str] = None,
    log_file: Optional[str] = None,
) -> logging.Logger:
    """Setup and configure a logger with consistent formatting.

    Args:
        name: Logger name (usually the module name, or 'faceverify' for the root)
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
               If None, reads LOG_LEVEL through Config.
        log_file: Optional file path to also log to a file.

    Returns:
        Configured logger instance.

    Example:
        >>> logger = setup_logging(__name__)
        >>> logger.info("Enrollment store loaded")
    """
    logger = logging.getLogger(name)

    # Already configured, avoid duplicate handlers
    if logger.handlers:
        return logger

    if level is None:
        try:
            from faceverify.core.config import get_config

            level = get_config().log_level
        except ValueError:
            level = "INFO"

    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logger.level)
    console_handler.setFormatter(ColoredFormatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logger.level)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
        logger.addHandler(file_handler)

    logger.propagate = False

    return logger


def _format_field(value: Any) -> str:
    if hasattr(value, "shape") and hasattr(value, "dtype"):
        # Arrays (descriptors) are reduced to their shape
        return f"<array {tuple(value.shape)}>"
    if isinstance(value, float):
        return f"{value:.4f}"
    if isinstance(value, (list, tuple)):
        return ",".join(str(v) for v in value) or "-"
    return str(value)


def log_decision(
    logger: logging.Logger,
    action: str,
    result: Any = None,
    level: int = logging.INFO,
    **fields: Any,
) -> str:
    """Log one enrollment or verification decision as a single audit line.

    The line reads ``action=<action> outcome=<outcome> key=value ...``. When
    ``result`` is a dataclass (a MatchResult), its class name is the outcome
    and its fields are included. Fields that are None are left out and array
    values are replaced by their shape, so descriptors never reach the log.

    Args:
        logger: Logger to write to
        action: What was decided ("enroll", "verify", ...)
        result: Optional result dataclass
        level: Logging level for the line
        **fields: Extra context (identity key, store size, ...). An
                  ``outcome`` field overrides the one derived from result.

    Returns:
        The logged message.

    Example:
        >>> log_decision(logger, "verify", Matched("user-42", 0.31), enrolled=12)
        'action=verify outcome=Matched identity_key=user-42 distance=0.3100 enrolled=12'
    """
    values = {}
    if result is not None and dataclasses.is_dataclass(result):
        values["outcome"] = type(result).__name__
        values.update(dataclasses.asdict(result))
    values.update(fields)
    values.setdefault("outcome", "done")

    outcome = values.pop("outcome")
    parts = [f"action={action}", f"outcome={outcome}"]
    parts.extend(
        f"{name}={_format_field(value)}"
        for name, value in values.items()
        if value is not None
    )

    message = " ".join(parts)
    logger.log(level, message)
    return message


def get_logger(name: str) -> logging.Logger:
    """Get logger for a specific module.

    Args:
        name: Module name (typically __name__)

    Returns:
        Configured logger instance.

    Example:
        >>> from faceverify.core.logging_config import get_logger
        >>> logger = get_logger(__name__)
        >>> logger.info("Module initialized")
    """
    return setup_logging(name)
