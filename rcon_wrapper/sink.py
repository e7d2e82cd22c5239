"""Log sink — where classified console lines end up.

The core only talks to the four-method ``Sink`` interface.  ``LoggingSink``
is the production implementation: console output for the panel plus a
daily-rotated log file on disk.
"""

from __future__ import annotations

import logging
import sys
from abc import ABC, abstractmethod
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path

from .models import LogLevel

CONSOLE_LOGGER = "rcon_wrapper.console"


class Sink(ABC):
    @abstractmethod
    def info(self, text: str) -> None:
        ...

    @abstractmethod
    def warn(self, text: str) -> None:
        ...

    @abstractmethod
    def error(self, text: str) -> None:
        ...

    @abstractmethod
    def debug(self, text: str) -> None:
        ...

    def log(self, level: LogLevel, text: str) -> None:
        if level is LogLevel.DEBUG:
            self.debug(text)
        elif level is LogLevel.WARN:
            self.warn(text)
        elif level is LogLevel.ERROR:
            self.error(text)
        else:
            self.info(text)


class LoggingSink(Sink):
    """Sink backed by a dedicated, non-propagating ``logging`` logger."""

    def __init__(self, logger: logging.Logger) -> None:
        self._logger = logger

    @classmethod
    def create(cls, log_dir: str | Path, retention_days: int = 35) -> LoggingSink:
        path = Path(log_dir)
        path.mkdir(parents=True, exist_ok=True)

        logger = logging.getLogger(CONSOLE_LOGGER)
        logger.setLevel(logging.DEBUG)
        # Keep console lines out of the diagnostics handlers on the root logger
        logger.propagate = False
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()

        console = logging.StreamHandler(sys.stdout)
        console.setLevel(logging.INFO)
        console.setFormatter(
            logging.Formatter("[%(asctime)s] %(message)s", datefmt="%H:%M:%S")
        )
        logger.addHandler(console)

        disk = TimedRotatingFileHandler(
            path / "server.log",
            when="midnight",
            backupCount=retention_days,
            encoding="utf-8",
        )
        disk.setLevel(logging.DEBUG)
        disk.setFormatter(
            logging.Formatter("%(asctime)s %(message)s", datefmt="%Y-%m-%d %H:%M:%S")
        )
        logger.addHandler(disk)

        return cls(logger)

    def info(self, text: str) -> None:
        self._logger.info(text)

    def warn(self, text: str) -> None:
        self._logger.warning(text)

    def error(self, text: str) -> None:
        self._logger.error(text)

    def debug(self, text: str) -> None:
        self._logger.debug(text)
