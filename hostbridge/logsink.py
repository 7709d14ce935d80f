"""Severity levels and the log-sink callback used by front-ends.

Every module logs through the stdlib ``logging`` tree under ``hostbridge``.
A front-end that wants to display activity passes a ``sink(message, severity)``
callable; :class:`SinkHandler` forwards records to it, dropping anything more
verbose than the selected level.
"""

import collections
import enum
import logging
import sys
import time
from typing import Callable

VERBOSE = 5
logging.addLevelName(VERBOSE, "VERBOSE")


class Severity(enum.IntEnum):
    INFO = 0
    DEBUG = 1
    VERBOSE = 2

    @classmethod
    def parse(cls, value) -> "Severity":
        if isinstance(value, Severity):
            return value
        if isinstance(value, int):
            return cls(value)
        try:
            return cls[str(value).strip().upper()]
        except KeyError:
            raise ValueError(f"Unknown severity: {value!r}") from None

    @property
    def logging_level(self) -> int:
        return _TO_LOGGING[self]


_TO_LOGGING = {
    Severity.INFO: logging.INFO,
    Severity.DEBUG: logging.DEBUG,
    Severity.VERBOSE: VERBOSE,
}


def severity_for_level(levelno: int) -> Severity:
    # WARNING/ERROR は常に表示する（INFO扱い）
    if levelno >= logging.INFO:
        return Severity.INFO
    if levelno >= logging.DEBUG:
        return Severity.DEBUG
    return Severity.VERBOSE


LogSink = Callable[[str, Severity], None]


class SinkHandler(logging.Handler):
    def __init__(self, sink: LogSink | None = None, verbosity=Severity.INFO, history_size: int = 500):
        super().__init__()
        self.sink = sink
        self.set_verbosity(verbosity)
        self.history = collections.deque(maxlen=history_size)

    def set_verbosity(self, verbosity):
        self.verbosity = Severity.parse(verbosity)
        self.setLevel(self.verbosity.logging_level)

    def clear(self):
        self.history.clear()

    def format(self, record):
        stamp = time.strftime("%H:%M:%S", time.localtime(record.created))
        text = record.getMessage()
        if record.levelno >= logging.WARNING:
            text = f"{record.levelname}: {text}"
        return f"[{stamp}] [{severity_for_level(record.levelno).name}] {text}"

    def emit(self, record):
        severity = severity_for_level(record.levelno)
        if severity > self.verbosity:
            return
        try:
            line = self.format(record)
            self.history.append(line)
            if self.sink is not None:
                self.sink(line, severity)
        except Exception:
            self.handleError(record)


def stderr_sink(message: str, severity: Severity):
    try:
        sys.stderr.write(message + "\n")
        sys.stderr.flush()
    except Exception:
        pass
