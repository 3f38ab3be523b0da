"""
Logger Utility
==============

Context-aware logging for the triage bot.

Every component creates its own logger with a short context name
("Driver", "ContextCompiler", ...). Work done on behalf of a single Slack
event uses a child logger so its lines can be followed through the
pipeline, even when many events are processed concurrently:

    [2025-06-01T10:30:00] [INFO] [TriageAgent:C0123] Received 2 actions

Levels are read from LOG_LEVEL and can be lowered at startup with
set_log_level() (the entry point's -v flag).

Usage:
    from triage_bot.utils.logger import Logger

    logger = Logger("Driver")
    logger.info("Calling assistant model", {"iteration": 1})

    event_logger = logger.child("C0123")
    event_logger.warning("No action taken")
"""

import json
import os
import sys
import traceback
from datetime import datetime
from enum import IntEnum
from typing import Any


class LogLevel(IntEnum):
    """
    Log levels with numeric values for comparison.
    Higher values = more severe = always shown.
    """
    DEBUG = 10
    INFO = 20
    WARNING = 30
    ERROR = 40


class Colors:
    """ANSI escape codes for colored terminal output."""
    RESET = "\033[0m"
    DEBUG = "\033[36m"    # Cyan
    INFO = "\033[32m"     # Green
    WARNING = "\033[33m"  # Yellow
    ERROR = "\033[31m"    # Red
    DIM = "\033[2m"


_LEVEL_NAMES = {
    "DEBUG": LogLevel.DEBUG,
    "INFO": LogLevel.INFO,
    "WARNING": LogLevel.WARNING,
    "WARN": LogLevel.WARNING,
    "ERROR": LogLevel.ERROR,
}

# Set by set_log_level(); takes precedence over LOG_LEVEL
_level_override: LogLevel | None = None


def parse_log_level(value: str | None, default: LogLevel = LogLevel.INFO) -> LogLevel:
    """
    Parse a level name such as "debug" or "WARN".

    Args:
        value: The level name (case-insensitive)
        default: Returned when the value is empty or unknown

    Returns:
        LogLevel: The parsed level
    """
    if not value:
        return default
    return _LEVEL_NAMES.get(value.upper(), default)


def set_log_level(level: LogLevel | str) -> None:
    """
    Override the minimum level for every logger, existing or future.

    Args:
        level: A LogLevel or a level name
    """
    global _level_override
    _level_override = level if isinstance(level, LogLevel) else parse_log_level(level)


def _current_level() -> LogLevel:
    if _level_override is not None:
        return _level_override
    return parse_log_level(os.getenv("LOG_LEVEL"))


class Logger:
    """
    A context-aware logger with colored output.

    The logger supports:
    - Multiple log levels (debug, info, warning, error)
    - Context prefixes for tracing an event through the pipeline
    - Optional structured data printed as JSON
    - Child loggers for nested contexts

    Example:
        logger = Logger("ToolRegistry")
        logger.info("Discovered tools", {"count": 3})

        source_logger = logger.child("github")
        source_logger.debug("Listing tools")
    """

    def __init__(self, context: str = ""):
        """
        Initialize a logger with an optional context.

        Args:
            context: A prefix for all log messages (e.g., "Driver", "Storage")
        """
        self.context = context

    def child(self, child_context: str) -> "Logger":
        """
        Create a child logger with additional context.

        Args:
            child_context: Additional context to append

        Returns:
            A new Logger with combined context, e.g. [TriageAgent:C0123]
        """
        new_context = f"{self.context}:{child_context}" if self.context else child_context
        return Logger(new_context)

    def is_enabled(self, level: LogLevel) -> bool:
        """Check whether messages at this level are currently emitted."""
        return level >= _current_level()

    def _format_message(self, level: str, message: str, color: str) -> str:
        """
        Format a log message with timestamp, level, and context.

        Output format: [TIMESTAMP] [LEVEL] [context] message
        """
        timestamp = datetime.now().isoformat(timespec="seconds")
        context_str = f"[{self.context}] " if self.context else ""

        return (
            f"{Colors.DIM}[{timestamp}]{Colors.RESET} "
            f"{color}[{level}]{Colors.RESET} "
            f"{context_str}{message}"
        )

    def _log(
        self,
        level: LogLevel,
        level_name: str,
        color: str,
        message: str,
        data: dict[str, Any] | None = None
    ) -> None:
        if not self.is_enabled(level):
            return

        formatted = self._format_message(level_name, message, color)

        # Warnings and errors go to stderr so they survive stdout redirection
        stream = sys.stderr if level >= LogLevel.WARNING else sys.stdout
        print(formatted, file=stream)

        if data:
            data_str = json.dumps(data, indent=2, default=str)
            print(f"{Colors.DIM}{data_str}{Colors.RESET}", file=stream)

    def debug(self, message: str, data: dict[str, Any] | None = None) -> None:
        """Log a debug message (shown only when LOG_LEVEL=DEBUG or -v)."""
        self._log(LogLevel.DEBUG, "DEBUG", Colors.DEBUG, message, data)

    def info(self, message: str, data: dict[str, Any] | None = None) -> None:
        """Log an info message."""
        self._log(LogLevel.INFO, "INFO", Colors.INFO, message, data)

    def warning(self, message: str, data: dict[str, Any] | None = None) -> None:
        """Log a warning message."""
        self._log(LogLevel.WARNING, "WARN", Colors.WARNING, message, data)

    def error(
        self,
        message: str,
        error: BaseException | None = None,
        data: dict[str, Any] | None = None
    ) -> None:
        """
        Log an error message.

        The exception type, message and the chain of causes are included.
        At debug level the full traceback is printed as well.

        Args:
            message: The error message
            error: Optional exception to include details from
            data: Optional extra structured data (e.g. the originating event)
        """
        details: dict[str, Any] = dict(data or {})
        if error is not None:
            details["error_type"] = type(error).__name__
            details["error_message"] = str(error)

            causes = []
            cause = error.__cause__ or error.__context__
            while cause is not None and len(causes) < 5:
                causes.append(f"{type(cause).__name__}: {cause}")
                cause = cause.__cause__ or cause.__context__
            if causes:
                details["caused_by"] = causes

            if self.is_enabled(LogLevel.DEBUG):
                details["traceback"] = "".join(
                    traceback.format_exception(type(error), error, error.__traceback__)
                )

        self._log(LogLevel.ERROR, "ERROR", Colors.ERROR, message, details or None)


# Default logger for quick use outside of components
logger = Logger("TriageBot")
