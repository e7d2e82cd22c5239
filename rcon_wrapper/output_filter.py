"""Output filter — classifies raw game-server output before it hits the sink.

The Rust server is chatty during startup: it retries native library loads,
spews shader compiler diagnostics and repeats the same prefab loading
percentage many times over.  Those lines are demoted or deduplicated here.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from .models import LogLevel
from .sink import Sink

log = logging.getLogger(__name__)

FALLBACK_MARKER = "Fallback handler could not load library"
SHADER_MARKERS = ("ERROR: Shader ", "WARNING: Shader ")
PREFAB_MARKER = "Loading Prefab Bundle "
EXCEPTION_MARKER = "Exception thrown"
HOSTNAME_MARKER = "hostname:"


@dataclass
class FilterState:
    """Per-run dedup state. One instance per spawned game process."""

    seen_percentages: set[str] = field(default_factory=set)
    hostname_seen: bool = False


class OutputFilter:
    def __init__(self, sink: Sink, state: FilterState | None = None) -> None:
        self._sink = sink
        self.state = state or FilterState()

    def classify(self, chunk: bytes | str) -> list[tuple[LogLevel, str]]:
        """Split a chunk into lines and return the ones worth forwarding."""
        if isinstance(chunk, bytes):
            chunk = chunk.decode("utf-8", errors="replace")

        result: list[tuple[LogLevel, str]] = []
        for raw in chunk.splitlines():
            line = raw.strip()
            if not line:
                continue
            level = self._classify_line(line)
            if level is not None:
                result.append((level, line))
        return result

    def forward(self, chunk: bytes | str) -> None:
        for level, line in self.classify(chunk):
            self._sink.log(level, line)

    def _classify_line(self, line: str) -> LogLevel | None:
        # RCON echoes everything once the status output has come through
        if self.state.hostname_seen:
            return None

        if line.startswith(FALLBACK_MARKER):
            return LogLevel.DEBUG

        if any(marker in line for marker in SHADER_MARKERS):
            return LogLevel.DEBUG

        if line.startswith(PREFAB_MARKER):
            percentage = line[len(PREFAB_MARKER):]
            if percentage in self.state.seen_percentages:
                return None
            self.state.seen_percentages.add(percentage)
            return LogLevel.INFO

        if line.startswith(EXCEPTION_MARKER):
            return LogLevel.WARN

        if line.startswith(HOSTNAME_MARKER):
            log.debug("Hostname line seen, muting process output")
            self.state.hostname_seen = True

        return LogLevel.INFO
