"""Orchestrator — wires the supervisor, filter, console and RCON client.

It also owns the program's exit code.  Components never exit the process
themselves; they ask for an exit and the first request wins.
"""

from __future__ import annotations

import asyncio
import logging
import signal
from collections.abc import Awaitable, Callable
from typing import Any

from .config import Config
from .console import ConsoleBridge
from .output_filter import OutputFilter
from .process_manager.supervisor import GameProcess, ProcessSupervisor
from .rcon import RconClient
from .sink import Sink

log = logging.getLogger(__name__)


class Orchestrator:
    def __init__(
        self,
        config: Config,
        sink: Sink,
        *,
        connect: Callable[..., Any] | None = None,
        clock: Callable[[], float] | None = None,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ) -> None:
        self.config = config
        self.sink = sink
        self.filter = OutputFilter(sink)
        self.supervisor = ProcessSupervisor(
            sink,
            on_output=self._route_output,
            on_exit=self._on_process_exit,
        )
        self.console = ConsoleBridge(
            local_input=self.supervisor.handle_local_input,
            output_handler=self.filter.forward,
        )
        self.rcon = RconClient(
            config,
            sink,
            self.console,
            on_fatal=self._on_rcon_fatal,
            on_closed=self._on_rcon_closed,
            connect=connect,
            clock=clock,
            sleep=sleep,
        )
        self._exit: asyncio.Future[int] | None = None
        self._kill_child = False

    async def run(self, command: str, stdin: asyncio.StreamReader) -> int:
        """Run the wrapper until something asks to exit. Returns the exit code."""
        if not command.strip():
            self.sink.error("Error: Please specify a startup command.")
            return 1

        loop = asyncio.get_running_loop()
        self._exit = loop.create_future()

        self.sink.info("Starting game server...")
        try:
            await self.supervisor.start(command)
        except Exception:
            log.exception("Failed to spawn %r", command)
            return 1

        handled_signals = self._install_signal_handlers(loop)
        tasks = [
            asyncio.create_task(self.console.pump_input(stdin), name="operator-input"),
            asyncio.create_task(self.rcon.run(), name="rcon"),
        ]
        tasks[1].add_done_callback(self._on_rcon_done)
        try:
            code = await self._exit
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            for sig in handled_signals:
                loop.remove_signal_handler(sig)
            await self._shutdown_child()

        log.info("Exiting with code %s", code)
        return code

    def request_exit(self, code: int) -> None:
        if self._exit is not None and not self._exit.done():
            self._exit.set_result(code)

    # ------------------------------------------------------------------
    # Component callbacks
    # ------------------------------------------------------------------

    def _route_output(self, chunk: bytes) -> None:
        self.console.feed_output(chunk)

    def _on_process_exit(self, game: GameProcess) -> None:
        if game.exit_code:
            self.sink.error(f"Main game process exited with code {game.exit_code}")
            self.request_exit(game.exit_code)
            return
        if game.signal:
            self.sink.info(f"Main game process stopped by {game.signal}")
        else:
            self.sink.info("Main game process exited with code 0")
        self.request_exit(0)

    def _on_rcon_fatal(self) -> None:
        self._kill_child = True
        self.request_exit(1)

    def _on_rcon_closed(self) -> None:
        self.supervisor.release()
        self.request_exit(0)

    def _on_rcon_done(self, task: asyncio.Task[None]) -> None:
        if task.cancelled() or task.exception() is None:
            return
        exc = task.exception()
        log.error("RCON client crashed", exc_info=exc)
        self.sink.error(f"RCON client stopped unexpectedly: {exc}")
        self.request_exit(1)

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    def _install_signal_handlers(
        self, loop: asyncio.AbstractEventLoop,
    ) -> list[signal.Signals]:
        installed = []
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self._on_signal, sig)
            except (NotImplementedError, RuntimeError):
                # Not on the main thread, or no signal support on this platform
                continue
            installed.append(sig)
        return installed

    def _on_signal(self, sig: signal.Signals) -> None:
        log.info("Received %s", sig.name)
        self.request_exit(0)

    async def _shutdown_child(self) -> None:
        """Make sure the game process never outlives the wrapper."""
        if not self.supervisor.running:
            return
        game = self.supervisor.game
        timeout = self.config.stop_timeout

        if self._kill_child:
            await self.supervisor.stop(force=True)
            return

        if game is not None and game.released:
            if await self.supervisor.wait(timeout):
                return
            log.warning("Game process still running after RCON closed, stopping it")
        else:
            self.sink.error("Received request to stop the process, stopping the game...")

        await self.supervisor.stop(timeout=timeout)
