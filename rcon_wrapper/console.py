"""Console bridge — decides who owns operator input and process output.

Before RCON is up the supervisor owns both: stdin lines are interpreted
locally and the game's own output goes through the output filter.  After
the first RCON handshake the client takes stdin over and process output
is drained without being forwarded, since RCON echoes it instead.
"""

from __future__ import annotations

import asyncio
import logging
import sys
from collections.abc import Awaitable, Callable
from typing import IO, Any

from .models import ConsoleOwner

log = logging.getLogger(__name__)

InputHandler = Callable[[str], Awaitable[None]]
OutputHandler = Callable[[bytes], None]


class ConsoleBridge:
    def __init__(
        self,
        local_input: InputHandler,
        output_handler: OutputHandler | None,
    ) -> None:
        self._input_handler = local_input
        self._output_handler = output_handler
        self.owner = ConsoleOwner.LOCAL

    async def feed_input(self, line: str) -> None:
        await self._input_handler(line)

    def feed_output(self, chunk: bytes) -> None:
        # Still called after the transfer so the child's pipes keep draining
        if self._output_handler is not None:
            self._output_handler(chunk)

    def transfer_to_remote(self, remote_input: InputHandler) -> bool:
        """Hand stdin to the remote console and stop forwarding output.

        Swaps both registrations in one step with no await in between, so
        no line can be seen by both owners or by neither.  Only the first
        call has an effect.
        """
        if self.owner is ConsoleOwner.REMOTE:
            return False
        self._input_handler = remote_input
        self._output_handler = None
        self.owner = ConsoleOwner.REMOTE
        log.debug("Console ownership transferred to RCON")
        return True

    async def pump_input(self, reader: asyncio.StreamReader) -> None:
        """Feed operator lines to the current owner, in order, until EOF."""
        while True:
            raw = await reader.readline()
            if not raw:
                log.debug("Operator input closed")
                break
            await self.feed_input(raw.decode("utf-8", errors="replace"))


async def open_stdin_reader(stdin: IO[Any] | None = None) -> asyncio.StreamReader:
    """Wrap operator input (the process stdin by default) in a StreamReader."""
    if stdin is None:
        stdin = sys.stdin
    reader = asyncio.StreamReader()
    if stdin is None:
        reader.feed_eof()
        return reader

    loop = asyncio.get_running_loop()
    protocol = asyncio.StreamReaderProtocol(reader)
    try:
        await loop.connect_read_pipe(lambda: protocol, stdin)
    except ValueError:
        # Regular file redirected to stdin, there is no pipe transport for it
        log.debug("Operator input is a regular file, reading it whole")
        reader.feed_data(getattr(stdin, "buffer", stdin).read())
        reader.feed_eof()
    return reader
