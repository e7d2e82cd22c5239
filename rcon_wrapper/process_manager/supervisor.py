"""Process Supervisor — spawns and tracks the game-server child process."""

from __future__ import annotations

import asyncio
import logging
import os
import signal
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum

from rcon_wrapper.sink import Sink

log = logging.getLogger(__name__)

# Game servers print very long lines (item lists, stack traces)
STREAM_LIMIT = 1024 * 1024
# How long to let the readers drain after the child has exited
DRAIN_TIMEOUT = 1.0


class ProcessStatus(str, Enum):
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"
    FAILED = "failed"


@dataclass
class GameProcess:
    """State for the spawned game server."""

    command: str
    status: ProcessStatus = ProcessStatus.STARTING
    pid: int | None = None
    exit_code: int | None = None
    signal: str | None = None
    start_time: float = field(default_factory=time.time)
    stop_time: float | None = None
    # Set when the remote console closed cleanly and the server is
    # expected to go away by itself.
    released: bool = False
    _process: asyncio.subprocess.Process | None = field(
        default=None, repr=False
    )
    _reader_tasks: list[asyncio.Task[None]] = field(
        default_factory=list, repr=False
    )

    @property
    def exited(self) -> bool:
        return self.status in (ProcessStatus.STOPPED, ProcessStatus.FAILED)


class ProcessSupervisor:
    """Owns the single game-server process and its stdio."""

    def __init__(
        self,
        sink: Sink,
        on_output: Callable[[bytes], None],
        on_exit: Callable[[GameProcess], None],
    ) -> None:
        self._sink = sink
        self._on_output = on_output
        self._on_exit = on_exit
        self.game: GameProcess | None = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def running(self) -> bool:
        return self.game is not None and self.game.status in (
            ProcessStatus.RUNNING, ProcessStatus.STARTING,
        )

    async def start(self, command: str) -> GameProcess:
        """Spawn ``command`` through the shell and start watching it."""
        if self.running:
            raise RuntimeError("Game process is already running")

        game = GameProcess(command=command)
        self.game = game

        try:
            process = await asyncio.create_subprocess_shell(
                command,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                limit=STREAM_LIMIT,
                # New process group so signals reach the server, not just sh
                preexec_fn=os.setsid,
            )
        except Exception as exc:
            game.status = ProcessStatus.FAILED
            self._sink.error(f"Failed to start the game process: {exc}")
            raise

        game._process = process
        game.pid = process.pid
        game.status = ProcessStatus.RUNNING
        log.info("Spawned game process (pid=%s): %s", process.pid, command)

        game._reader_tasks = [
            asyncio.create_task(
                self._read_stream(process.stdout),  # type: ignore[arg-type]
                name="game-stdout",
            ),
            asyncio.create_task(
                self._read_stream(process.stderr),  # type: ignore[arg-type]
                name="game-stderr",
            ),
        ]

        asyncio.create_task(self._wait_for_exit(game), name="game-waiter")

        return game

    async def handle_local_input(self, line: str) -> None:
        """Operator input received before RCON is connected.

        Nothing is forwarded to the server; only ``quit`` has an effect.
        """
        command = line.strip()
        if not command:
            return
        if command == "quit":
            log.info("Operator requested quit before RCON was up")
            self._signal_group(signal.SIGTERM)
        else:
            self._sink.info(
                f'Unable to run "{command}" due to RCON not being connected yet.'
            )

    async def stop(self, force: bool = False, timeout: float = 10.0) -> GameProcess | None:
        """Stop the game process. Sends SIGTERM, waits, then SIGKILL."""
        game = self.game
        if game is None or not self.running:
            return game

        proc = game._process
        if proc is None:
            game.status = ProcessStatus.STOPPED
            return game

        game.status = ProcessStatus.STOPPING

        sig = signal.SIGKILL if force else signal.SIGTERM
        if not self._signal_group(sig):
            game.status = ProcessStatus.STOPPED
            return game

        if not force:
            # Wait for graceful shutdown, then escalate
            try:
                await asyncio.wait_for(proc.wait(), timeout=timeout)
            except asyncio.TimeoutError:
                log.warning("Game process ignored SIGTERM for %.0fs, killing", timeout)
                self._signal_group(signal.SIGKILL)
        try:
            await asyncio.wait_for(proc.wait(), timeout=5.0)
        except asyncio.TimeoutError:
            log.error("Game process (pid=%s) did not exit after SIGKILL", proc.pid)

        for task in game._reader_tasks:
            task.cancel()

        self._record_exit(game, proc.returncode)
        return game

    async def wait(self, timeout: float) -> bool:
        """Wait for the game process to exit on its own. True if it did."""
        game = self.game
        if game is None or game._process is None:
            return True
        try:
            await asyncio.wait_for(game._process.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            return False
        return True

    def release(self) -> None:
        """The remote console closed cleanly; the server is on its way out."""
        if self.game is not None:
            self.game.released = True

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _signal_group(self, sig: signal.Signals) -> bool:
        game = self.game
        if game is None or game._process is None:
            return False
        try:
            pgid = os.getpgid(game._process.pid)
            os.killpg(pgid, sig)
        except (ProcessLookupError, OSError):
            return False
        return True

    async def _read_stream(self, stream: asyncio.StreamReader) -> None:
        """Forward the child's output line by line."""
        try:
            while True:
                try:
                    line = await stream.readline()
                except ValueError:
                    # Line longer than STREAM_LIMIT, the buffer was discarded
                    log.warning("Dropped an oversized output line from the game")
                    continue
                if not line:
                    break
                self._on_output(line)
        except asyncio.CancelledError:
            pass

    @staticmethod
    def _record_exit(game: GameProcess, code: int | None) -> None:
        game.stop_time = time.time()
        if code is not None and code < 0:
            # asyncio reports death by signal as a negative return code
            game.exit_code = None
            try:
                game.signal = signal.Signals(-code).name
            except ValueError:
                game.signal = str(-code)
        else:
            game.exit_code = code
        game.status = (
            ProcessStatus.FAILED if game.exit_code else ProcessStatus.STOPPED
        )

    async def _wait_for_exit(self, game: GameProcess) -> None:
        """Wait for the process to exit, drain its output, then report."""
        proc = game._process
        if proc is None:
            return
        code = await proc.wait()
        if game._reader_tasks:
            await asyncio.wait(game._reader_tasks, timeout=DRAIN_TIMEOUT)
        if game.status != ProcessStatus.RUNNING:
            # Being stopped by stop(), let stop() handle status
            return
        self._record_exit(game, code)
        log.info(
            "Game process exited (code=%s, signal=%s)", game.exit_code, game.signal
        )
        self._on_exit(game)
