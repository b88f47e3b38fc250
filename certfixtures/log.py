from __future__ import annotations

import logging
import os
import sys
from typing import TextIO

import click

LogLevels = [
    "error",
    "warn",
    "info",
    "debug",
]

LOG_COLORS = {logging.ERROR: "red", logging.WARNING: "yellow"}


class FixtureFormatter(logging.Formatter):
    def __init__(self, colorize: bool):
        super().__init__()
        self.colorize = colorize
        time = "[%s]"
        if colorize:
            time = click.style(time, fg="cyan", dim=True)
        self.template = f"{time} %s"

    default_time_format = "%H:%M:%S"
    default_msec_format = "%s.%03d"

    def format(self, record: logging.LogRecord) -> str:
        time = self.formatTime(record)
        message = record.getMessage()
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"
        if self.colorize:
            message = click.style(
                message,
                fg=LOG_COLORS.get(record.levelno),
                dim=(record.levelno <= logging.DEBUG),
            )
        return self.template % (time, message)


class FixtureLogHandler(logging.StreamHandler):
    def __init__(self, stream: TextIO | None = None, colorize: bool | None = None):
        super().__init__(stream if stream is not None else sys.stderr)
        if colorize is None:
            colorize = _should_colorize(self.stream)
        self.setFormatter(FixtureFormatter(colorize))

    def install(self, level: str = "info") -> None:
        root = logging.getLogger()
        for h in list(root.handlers):
            if isinstance(h, FixtureLogHandler):
                root.removeHandler(h)
        root.addHandler(self)
        root.setLevel(log_level(level))

    def uninstall(self) -> None:
        logging.getLogger().removeHandler(self)


def _should_colorize(stream) -> bool:
    if os.environ.get("NO_COLOR"):
        return False
    isatty = getattr(stream, "isatty", None)
    return bool(isatty and isatty())


def log_level(level: str) -> int:
    try:
        return {
            "error": logging.ERROR,
            "warn": logging.WARNING,
            "info": logging.INFO,
            "debug": logging.DEBUG,
        }[level]
    except KeyError:
        raise ValueError(f"Unknown log level: {level!r} (expected one of {', '.join(LogLevels)})")
