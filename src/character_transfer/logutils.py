"""
Logging helpers for the character transfer pipelines.

All output goes through the stdlib ``logging`` package on the
``character-transfer`` logger. ActivityLog adds what the pipelines need on
top of it: the debug/verbose switches from TransferConfig, hierarchical
indentation of progress messages, and a replayable record of what was
emitted (used by the import report and the chat notifier).
"""

from __future__ import annotations

import logging
from enum import Enum

from .config import TransferConfig

logger = logging.getLogger("character-transfer")


class LogStatus(str, Enum):
    """Status of an activity message; also selects the chat color."""
    INFO = "#aaaaaa"
    ERROR = "#aa0000"
    IMPL = "#00aaaa"
    GOOD = "#00aa00"
    WARN = "#ff8c00"


_LEVELS = {
    LogStatus.INFO: logging.INFO,
    LogStatus.IMPL: logging.INFO,
    LogStatus.GOOD: logging.INFO,
    LogStatus.WARN: logging.WARNING,
    LogStatus.ERROR: logging.ERROR,
}


class ActivityLog:
    """Progress and trace logging for one export or import run.

    Progress messages (``LogStatus.INFO``) only appear in verbose mode; every
    other status always appears. Trace messages from ``debug()`` only appear
    in debug mode.

    Example:
        >>> log = ActivityLog(TransferConfig(verbose=True))
        >>> log.info("Career starting.", indent=1)
        >>> log.impl("Adding Career [Soldier]")
        >>> log.info("Career complete.", indent=-1)
        >>> [m for _, m in log.entries]
        ['Career starting.', '  Adding Career [Soldier]', 'Career complete.']
    """

    def __init__(self, config: TransferConfig | None = None, name: str = "character-transfer") -> None:
        self.config = config or TransferConfig()
        self.logger = logging.getLogger(name)
        self.indent_level = 0
        self.entries: list[tuple[LogStatus, str]] = []

    def debug(self, message: str) -> None:
        """Trace message, emitted only in debug mode."""
        if self.config.debug and message:
            self.logger.debug(message)

    def write(self, message: str, status: LogStatus = LogStatus.INFO, indent: int = 0) -> None:
        """Write an activity message with optional indentation change.

        A negative ``indent`` is applied before the message, a positive one
        after it. The level never drops below zero.
        """
        if status is LogStatus.INFO and not self.config.verbose:
            return

        if indent < 0:
            self.indent_level = max(0, self.indent_level + indent)

        text = f"{'  ' * self.indent_level}{message}"
        self.entries.append((status, text))
        self.logger.log(_LEVELS[status], text)

        if indent > 0:
            self.indent_level += indent

    def info(self, message: str, indent: int = 0) -> None:
        self.write(message, LogStatus.INFO, indent)

    def impl(self, message: str) -> None:
        self.write(message, LogStatus.IMPL)

    def good(self, message: str) -> None:
        self.write(message, LogStatus.GOOD)

    def warn(self, message: str) -> None:
        self.write(message, LogStatus.WARN)

    def error(self, message: str) -> None:
        self.write(message, LogStatus.ERROR)

    def messages(self, *statuses: LogStatus) -> list[str]:
        """Emitted messages (unindented) filtered by status."""
        return [
            text.strip() for status, text in self.entries
            if not statuses or status in statuses
        ]
