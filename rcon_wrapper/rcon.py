"""RCON client — WebSocket remote console with a bounded reconnect loop.

State machine::

    IDLE -> CONNECTING -> CONNECTED -> CLOSED
                ^             |
                +-- error ----+

Every stay in CONNECTING belongs to a waiting episode whose start time is
recorded once.  Errors measure against that start, so repeated failures
spend one shared budget instead of resetting the clock.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from .config import Config
from .console import ConsoleBridge
from .models import ConsolePacket, RconState, parse_console_message
from .sink import Sink

log = logging.getLogger(__name__)

# Sent after every handshake, the server's console output is garbled
# until the first command has been answered.
STATUS_COMMAND = "status"

# ValueError covers an address that cannot be parsed, e.g. no RCON_PORT set
TRANSPORT_ERRORS = (OSError, asyncio.TimeoutError, ValueError, WebSocketException)


class RconClient:
    def __init__(
        self,
        config: Config,
        sink: Sink,
        console: ConsoleBridge,
        on_fatal: Callable[[], None],
        on_closed: Callable[[], None],
        *,
        connect: Callable[..., Any] | None = None,
        clock: Callable[[], float] | None = None,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ) -> None:
        self._config = config
        self._sink = sink
        self._console = console
        self._on_fatal = on_fatal
        self._on_closed = on_closed
        self._connect = connect or websockets.connect
        self._clock = clock or time.monotonic
        self._sleep = sleep or asyncio.sleep

        self.state = RconState.IDLE
        self.wait_started: float | None = None
        self._ws: Any = None

    # ------------------------------------------------------------------
    # Reconnect loop
    # ------------------------------------------------------------------

    async def run(self) -> None:
        """Connect, bridge, and reconnect until fatal or closed."""
        uri = self._config.rcon_uri
        while True:
            self.state = RconState.CONNECTING
            self._begin_waiting()
            try:
                async with self._connect(
                    uri, open_timeout=self._config.open_timeout,
                ) as ws:
                    await self._on_open(ws)
                    try:
                        async for frame in ws:
                            self._on_message(frame)
                    except ConnectionClosed as exc:
                        # Any close once connected ends the run, whatever the code
                        if exc.rcvd is not None:
                            self._on_close(exc.rcvd.code, exc.rcvd.reason)
                        else:
                            self._on_close(1006, "connection lost")
                        return
                    self._on_close(ws.close_code, ws.close_reason)
                    return
            except TRANSPORT_ERRORS as exc:
                self._ws = None
                if self._on_error(exc):
                    return
            await self._sleep(self._config.reconnect_delay)

    async def send_command(self, line: str) -> None:
        """Remote input handler, installed on the console at handover."""
        command = line.rstrip("\r\n")
        if self._ws is None or self.state is not RconState.CONNECTED:
            self._sink.error(
                f'Unable to run "{command.strip()}", RCON connection is down.'
            )
            return
        self._sink.info(f"Transmitting console input: {command}")
        try:
            await self._ws.send(ConsolePacket(command).to_json())
        except TRANSPORT_ERRORS as exc:
            # The receive loop sees the same close and ends the run
            self._sink.error(f"Failed to send console input: {exc}")

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _begin_waiting(self) -> float:
        if self.wait_started is None:
            self.wait_started = self._clock()
        return self.wait_started

    def _elapsed(self) -> float:
        return self._clock() - self._begin_waiting()

    async def _on_open(self, ws: Any) -> None:
        waited = round(self._elapsed())
        self._sink.info(
            f"Connected to RCON ({waited}s). Generating the map now. "
            f'Please wait until the server status switches to "Running".'
        )
        self.wait_started = None
        self.state = RconState.CONNECTED
        self._ws = ws

        if self._console.transfer_to_remote(self.send_command):
            log.info("RCON connected after %ss, console handed over", waited)
        else:
            log.info("RCON reconnected after %ss", waited)

        await ws.send(ConsolePacket(STATUS_COMMAND).to_json())

    def _on_message(self, frame: str | bytes) -> None:
        try:
            message = parse_console_message(frame)
        except ValueError as exc:
            self._sink.error(f"Error: {exc}")
            return
        if message is None:
            return
        for line in message.splitlines():
            if line.strip():
                self._sink.info(line)

    def _on_error(self, exc: BaseException) -> bool:
        """Handle a transport failure. Returns True when the budget is spent."""
        self.state = RconState.CONNECTING
        self._begin_waiting()
        elapsed = self._elapsed()
        log.debug("RCON transport error after %.1fs: %r", elapsed, exc)

        if elapsed > self._config.rcon_timeout:
            minutes = round(self._config.rcon_timeout / 60)
            self._sink.error(
                f"RCON server took too long ({minutes} minutes) to start. Exiting..."
            )
            self.state = RconState.CLOSED
            self._on_fatal()
            return True

        self._sink.info(f"Waiting for RCON to come up... ({round(elapsed)}s)")
        return False

    def _on_close(self, code: int | None, reason: str | None) -> None:
        self._sink.error(
            f"Connection to server closed. (code {code}, reason {reason or 'none'})"
        )
        self.state = RconState.CLOSED
        self._ws = None
        self._on_closed()
