from __future__ import annotations

import pytest

from rcon_wrapper.models import LogLevel
from rcon_wrapper.sink import Sink


class RecordingSink(Sink):
    def __init__(self) -> None:
        self.records: list[tuple[LogLevel, str]] = []

    def info(self, text: str) -> None:
        self.records.append((LogLevel.INFO, text))

    def warn(self, text: str) -> None:
        self.records.append((LogLevel.WARN, text))

    def error(self, text: str) -> None:
        self.records.append((LogLevel.ERROR, text))

    def debug(self, text: str) -> None:
        self.records.append((LogLevel.DEBUG, text))

    def lines(self, level: LogLevel | None = None) -> list[str]:
        return [text for lvl, text in self.records if level is None or lvl is level]


class FakeClock:
    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
