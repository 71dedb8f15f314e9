"""Capture of ``diffview`` log records for ``--debug`` exports.

Records are kept in a bounded buffer, with exception tracebacks attached, so a
failed commit or fetch can be written out after the command finishes.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

MAX_LOG_LINES = 2000
MAX_LOG_MESSAGE_LENGTH = 4000
TRUNCATION_MARKER = "... [truncated]"
PACKAGE_LOGGER = "diffview"


@dataclass(frozen=True, slots=True)
class LogEntry:
    level: str
    logger: str
    message: str
    created: float

    def render(self) -> str:
        stamp = datetime.fromtimestamp(self.created).strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]
        return f"{stamp} [{self.level}] {self.logger}: {self.message}"


class DebugLogBuffer(logging.Handler):
    """Logging handler holding the most recent records in memory."""

    def __init__(self, capacity: int = MAX_LOG_LINES) -> None:
        super().__init__()
        self.entries: deque[LogEntry] = deque(maxlen=capacity)
        self.generation = 0
        self._traceback_formatter = logging.Formatter()

    def emit(self, record: logging.LogRecord) -> None:
        try:
            message = record.getMessage()
            if record.exc_info:
                message = f"{message}\n{self._traceback_formatter.formatException(record.exc_info)}"
            if len(message) > MAX_LOG_MESSAGE_LENGTH:
                message = message[:MAX_LOG_MESSAGE_LENGTH] + TRUNCATION_MARKER
            self.entries.append(
                LogEntry(
                    level=record.levelname,
                    logger=record.name,
                    message=message,
                    created=record.created,
                )
            )
        except Exception:  # quality-allow-broad-except
            self.handleError(record)

    def clear(self) -> None:
        self.entries.clear()
        self.generation += 1

    def export(self, file_path: str | Path, *, min_level: int = logging.DEBUG) -> int:
        """Write entries at ``min_level`` or above to ``file_path``.

        Returns the number of entries written.
        """
        selected = [
            entry for entry in self.entries if logging.getLevelName(entry.level) >= min_level
        ]
        output_path = Path(file_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with output_path.open("w", encoding="utf-8") as handle:
            handle.write("# diffview Debug Log Export\n")
            handle.write(f"# Entries: {len(selected)} of {len(self.entries)}\n")
            handle.write(f"# Buffer generation: {self.generation}\n\n")
            for entry in selected:
                handle.write(entry.render() + "\n")
        return len(selected)


_buffer: DebugLogBuffer | None = None


def setup_debug_logging(level: int = logging.DEBUG) -> DebugLogBuffer:
    """Attach the debug buffer to the package logger once and return it."""
    global _buffer

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.setLevel(level)
    if _buffer is None:
        _buffer = DebugLogBuffer()
        package_logger.addHandler(_buffer)
        package_logger.debug("Debug logging initialized")
    return _buffer
