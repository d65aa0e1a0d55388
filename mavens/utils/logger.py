"""
Logger Utility
==============

Context-aware logging for the assistant core. Every component creates its
own logger with a short context name, so a single request can be traced
through the router, the agents and the stores:

    [2025-06-01T10:30:00] [INFO] [Orchestrator] Dispatching 2 agents
    [2025-06-01T10:30:00] [DEBUG] [Orchestrator:git] Running git_status

Features:
1. Log levels (DEBUG, INFO, WARNING, ERROR) filtered by LOG_LEVEL
2. Colour-coded terminal output (disabled with NO_COLOR or when the
   stream is not a TTY)
3. Child loggers for nested contexts
4. Optional structured data printed as indented JSON

Output goes to stderr so it never interleaves with the assistant's answer,
which the terminal layer writes to stdout.

Usage:
    from mavens.utils.logger import Logger

    logger = Logger("Router")
    logger.info("Classified request", {"agents": ["git", "command"]})
"""

import json
import os
import sys
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


def _get_log_level_from_env() -> LogLevel:
    """
    Parse the LOG_LEVEL environment variable.

    Returns:
        LogLevel: The configured log level, defaults to WARNING so that an
        interactive session stays quiet unless asked otherwise
    """
    level_str = os.getenv("LOG_LEVEL", "WARNING").upper()
    return _LEVEL_NAMES.get(level_str, LogLevel.WARNING)


def _use_color(stream: Any) -> bool:
    if os.getenv("NO_COLOR"):
        return False
    isatty = getattr(stream, "isatty", None)
    return bool(isatty and isatty())


class Logger:
    """
    A context-aware logger with colored output.

    Example:
        logger = Logger("Orchestrator")
        logger.info("Processing request")

        agent_logger = logger.child("git")
        agent_logger.debug("Running tool", {"tool": "git_status"})
    """

    def __init__(self, context: str = ""):
        """
        Initialize a logger with an optional context.

        Args:
            context: A string prefix for all log messages (e.g., "Router")
        """
        self.context = context
        self._min_level = _get_log_level_from_env()

    def child(self, child_context: str) -> "Logger":
        """
        Create a child logger with additional context.

        Args:
            child_context: Additional context to append

        Returns:
            A new Logger whose messages show [parent:child]
        """
        new_context = f"{self.context}:{child_context}" if self.context else child_context
        return Logger(new_context)

    def _format_message(self, level_name: str, message: str, color: str, colored: bool) -> str:
        timestamp = datetime.now().isoformat(timespec="seconds")
        context_str = f"[{self.context}] " if self.context else ""

        if not colored:
            return f"[{timestamp}] [{level_name}] {context_str}{message}"

        return (
            f"{Colors.DIM}[{timestamp}]{Colors.RESET} "
            f"{color}[{level_name}]{Colors.RESET} "
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
        """
        Internal logging method.

        Args:
            level: The log level for filtering
            level_name: Display name of the level
            color: ANSI color code for the level
            message: The log message
            data: Optional structured data to include
        """
        if level < self._min_level:
            return

        stream = sys.stderr
        colored = _use_color(stream)
        print(self._format_message(level_name, message, color, colored), file=stream)

        if data:
            data_str = json.dumps(data, indent=2, default=str)
            if colored:
                data_str = f"{Colors.DIM}{data_str}{Colors.RESET}"
            print(data_str, file=stream)

    def debug(self, message: str, data: dict[str, Any] | None = None) -> None:
        """Log a debug message (only shown when LOG_LEVEL=DEBUG)."""
        self._log(LogLevel.DEBUG, "DEBUG", Colors.DEBUG, message, data)

    def info(self, message: str, data: dict[str, Any] | None = None) -> None:
        """Log an info message."""
        self._log(LogLevel.INFO, "INFO", Colors.INFO, message, data)

    def warning(self, message: str, data: dict[str, Any] | None = None) -> None:
        """
        Log a warning message.

        Warnings mark degraded operation: a store that could not be read,
        an agent that failed while its siblings carried on.
        """
        self._log(LogLevel.WARNING, "WARN", Colors.WARNING, message, data)

    def error(self, message: str, error: BaseException | None = None) -> None:
        """
        Log an error message.

        Args:
            message: The error message
            error: Optional exception to include details from
        """
        data = None
        if error:
            data = {
                "error_type": type(error).__name__,
                "error_message": str(error),
            }
        self._log(LogLevel.ERROR, "ERROR", Colors.ERROR, message, data)


# Default logger instance for general use
logger = Logger("Mavens")
