"""Log records formatted by worker threads and written by one consumer."""

from __future__ import annotations

import threading
import time
from enum import IntEnum
from typing import TextIO

from .mpsc import Mpsc


class LogLevel(IntEnum):
    DEBUG = 0
    INFO = 1
    WARN = 2
    ERROR = 3


_COLORS = {
    LogLevel.DEBUG: "\x1b[01;32m",
    LogLevel.INFO: "\x1b[01;32m",
    LogLevel.WARN: "\x1b[01;35m",
    LogLevel.ERROR: "\x1b[01;31m",
}
_RESET = "\x1b[0m"


def _now() -> str:
    return time.strftime("%Y-%m-%d %H:%M:%S")


def _is_terminal(output: TextIO) -> bool:
    try:
        return bool(output.isatty())
    except (AttributeError, ValueError):
        return False


class Logger:
    """Formats records and hands them to a queue drained by ``try_recv``."""

    def __init__(self, queue: Mpsc, level, isatty):
        self.queue = queue
        self.level = LogLevel(level)
        self.isatty = bool(isatty)
        self.tid = threading.get_ident()

    def log(self, level, message: str) -> bool:
        """Queue a record; return False if it was filtered out or dropped."""
        level = LogLevel(level)
        if level < self.level or not message:
            return False
        thread = f"[thread-{self.tid % 10000:04d}] {level.name}:"
        if self.isatty:
            line = f"{_COLORS[level]}{_now()} {thread} {_RESET}{message}"
        else:
            line = f"{_now()} {thread} {message}"
        # A full queue drops the record rather than blocking the worker.
        return self.queue.send(line)

    def debug(self, message: str) -> bool:
        return self.log(LogLevel.DEBUG, message)

    def info(self, message: str) -> bool:
        return self.log(LogLevel.INFO, message)

    def warn(self, message: str) -> bool:
        return self.log(LogLevel.WARN, message)

    def error(self, message: str) -> bool:
        return self.log(LogLevel.ERROR, message)

    def debug_buffer(self, data) -> bool:
        """Log ``data`` as lower-case hex at debug level."""
        return self.debug(bytes(data).hex())

    def try_recv(self, output: TextIO) -> int:
        """Write every queued record to ``output``; return how many were written."""
        count = 0
        while (line := self.queue.recv()) is not None:
            output.write(f"{line}\n")
            output.flush()
            count += 1
        return count


def main_log(level, output: TextIO, message: str) -> None:
    """Write a record from the main thread straight to ``output``."""
    level = LogLevel(level)
    if _is_terminal(output):
        output.write(
            f"{_COLORS[level]}{_now()} [thread-main] {level.name}: {_RESET}{message}\n"
        )
    else:
        output.write(f"{_now()} [thread-main] {level.name}: {message}\n")
    output.flush()