from __future__ import annotations

import asyncio

import pytest

from rcon_wrapper.models import LogLevel
from rcon_wrapper.process_manager import GameProcess, ProcessStatus, ProcessSupervisor


class _Watcher:
    def __init__(self) -> None:
        self.output: list[bytes] = []
        self.exited = asyncio.Event()
        self.game: GameProcess | None = None

    def on_output(self, chunk: bytes) -> None:
        self.output.append(chunk)

    def on_exit(self, game: GameProcess) -> None:
        self.game = game
        self.exited.set()


@pytest.mark.asyncio
async def test_output_is_forwarded_per_line_and_exit_code_reported(sink):
    watcher = _Watcher()
    sv = ProcessSupervisor(sink, watcher.on_output, watcher.on_exit)

    game = await sv.start("echo one; echo two 1>&2; echo three; exit 3")
    await asyncio.wait_for(watcher.exited.wait(), timeout=10)

    assert sorted(watcher.output) == [b"one\n", b"three\n", b"two\n"]
    assert watcher.game is game
    assert game.exit_code == 3
    assert game.signal is None
    assert game.status is ProcessStatus.FAILED
    assert not sv.running


@pytest.mark.asyncio
async def test_clean_exit(sink):
    watcher = _Watcher()
    sv = ProcessSupervisor(sink, watcher.on_output, watcher.on_exit)

    game = await sv.start("true")
    await asyncio.wait_for(watcher.exited.wait(), timeout=10)

    assert game.exit_code == 0
    assert game.status is ProcessStatus.STOPPED
    assert game.exited


@pytest.mark.asyncio
async def test_quit_terminates_child(sink):
    watcher = _Watcher()
    sv = ProcessSupervisor(sink, watcher.on_output, watcher.on_exit)

    game = await sv.start("sleep 30")
    await sv.handle_local_input("  quit \n")
    await asyncio.wait_for(watcher.exited.wait(), timeout=10)

    assert game.signal == "SIGTERM"
    assert game.exit_code is None
    assert game.status is ProcessStatus.STOPPED
    assert sink.records == []


@pytest.mark.asyncio
async def test_other_local_input_is_not_forwarded(sink):
    watcher = _Watcher()
    sv = ProcessSupervisor(sink, watcher.on_output, watcher.on_exit)

    # cat would echo anything written to its stdin
    await sv.start("cat")
    await sv.handle_local_input("say hello\n")
    await sv.handle_local_input("   \n")
    await asyncio.sleep(0.2)

    assert sink.records == [
        (LogLevel.INFO, 'Unable to run "say hello" due to RCON not being connected yet.'),
    ]
    assert watcher.output == []
    assert sv.running

    await sv.stop(timeout=5)


@pytest.mark.asyncio
async def test_stop_escalates_and_skips_exit_callback(sink):
    watcher = _Watcher()
    sv = ProcessSupervisor(sink, watcher.on_output, watcher.on_exit)

    await sv.start("trap '' TERM; sleep 30")
    game = await sv.stop(timeout=0.5)
    await asyncio.sleep(0.1)

    assert game is not None
    assert game.signal == "SIGKILL"
    assert game.status is ProcessStatus.STOPPED
    assert not watcher.exited.is_set()


@pytest.mark.asyncio
async def test_wait_and_double_start(sink):
    watcher = _Watcher()
    sv = ProcessSupervisor(sink, watcher.on_output, watcher.on_exit)

    await sv.start("sleep 30")
    with pytest.raises(RuntimeError):
        await sv.start("sleep 30")

    assert await sv.wait(0.1) is False
    sv.release()
    assert sv.game is not None and sv.game.released

    await sv.stop(force=True)
    assert sv.game.signal == "SIGKILL"
    assert await sv.wait(0.1) is True
