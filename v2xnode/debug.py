"""Levelled console logging with time, level and call site."""

from __future__ import annotations

import os
import sys
from datetime import datetime
from enum import IntEnum


class LogLevel(IntEnum):
    ERROR = 0
    WARN = 1
    INFO = 2
    DEBUG = 3


_LABELS = {
    LogLevel.ERROR: "ERROR",
    LogLevel.WARN: "WARN ",
    LogLevel.INFO: "INFO ",
    LogLevel.DEBUG: "DEBUG",
}

_current_level = LogLevel.INFO


def set_log_level(level: LogLevel | int) -> None:
    global _current_level
    _current_level = LogLevel(level)


def get_log_level() -> LogLevel:
    return _current_level


def format_record(
    level: LogLevel | int, file: str, line: int, message: str, now: datetime
) -> str:
    """Build one line: ``[HH:MM:SS][LEVEL][file:line] message``."""
    label = _LABELS[LogLevel(level)]
    return f"[{now.strftime('%H:%M:%S')}][{label}][{file}:{line}] {message}"


def _emit(level: LogLevel | int, message: str) -> None:
    level = LogLevel(level)
    if level > _current_level:
        return
    # 0 is _emit, 1 is the public wrapper, 2 is the caller being reported.
    frame = sys._getframe(2)
    record = format_record(
        level,
        os.path.basename(frame.f_code.co_filename),
        frame.f_lineno,
        message,
        datetime.now(),
    )
    sys.stdout.write(record + "\n")
    sys.stdout.flush()


def log(level: LogLevel | int, message: str) -> None:
    """Print ``message`` if ``level`` is enabled; errors are always printed."""
    _emit(level, message)


def error(message: str) -> None:
    _emit(LogLevel.ERROR, message)


def warn(message: str) -> None:
    _emit(LogLevel.WARN, message)


def info(message: str) -> None:
    _emit(LogLevel.INFO, message)


def debug(message: str) -> None:
    _emit(LogLevel.DEBUG, message)