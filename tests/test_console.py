from __future__ import annotations

import asyncio

import pytest

from rcon_wrapper.console import ConsoleBridge, open_stdin_reader
from rcon_wrapper.models import ConsoleOwner


class _Recorder:
    def __init__(self) -> None:
        self.lines: list[str] = []

    async def __call__(self, line: str) -> None:
        self.lines.append(line)


@pytest.mark.asyncio
async def test_input_goes_to_local_owner_before_transfer():
    local, remote = _Recorder(), _Recorder()
    bridge = ConsoleBridge(local_input=local, output_handler=None)

    await bridge.feed_input("help\n")

    assert local.lines == ["help\n"]
    assert remote.lines == []
    assert bridge.owner is ConsoleOwner.LOCAL


@pytest.mark.asyncio
async def test_transfer_swaps_input_and_detaches_output():
    local, remote = _Recorder(), _Recorder()
    output: list[bytes] = []
    bridge = ConsoleBridge(local_input=local, output_handler=output.append)

    bridge.feed_output(b"before\n")
    assert bridge.transfer_to_remote(remote) is True
    bridge.feed_output(b"after\n")
    await bridge.feed_input("status\n")

    assert output == [b"before\n"]
    assert local.lines == []
    assert remote.lines == ["status\n"]
    assert bridge.owner is ConsoleOwner.REMOTE


@pytest.mark.asyncio
async def test_transfer_happens_only_once():
    first, second = _Recorder(), _Recorder()
    bridge = ConsoleBridge(local_input=_Recorder(), output_handler=None)

    assert bridge.transfer_to_remote(first) is True
    assert bridge.transfer_to_remote(second) is False
    await bridge.feed_input("say hi\n")

    assert first.lines == ["say hi\n"]
    assert second.lines == []


@pytest.mark.asyncio
async def test_pump_hands_each_line_to_exactly_one_owner():
    local, remote = _Recorder(), _Recorder()
    bridge = ConsoleBridge(local_input=local, output_handler=None)

    # Transfer from inside the local handler, between two queued lines
    async def local_then_transfer(line: str) -> None:
        await local(line)
        bridge.transfer_to_remote(remote)

    bridge._input_handler = local_then_transfer

    reader = asyncio.StreamReader()
    reader.feed_data(b"one\ntwo\nthree\n")
    reader.feed_eof()
    await bridge.pump_input(reader)

    assert local.lines == ["one\n"]
    assert remote.lines == ["two\n", "three\n"]


@pytest.mark.asyncio
async def test_stdin_redirected_from_regular_file(tmp_path):
    path = tmp_path / "input.txt"
    path.write_text("say hi\nquit\n", encoding="utf-8")

    with open(path, encoding="utf-8") as handle:
        reader = await open_stdin_reader(handle)

    assert await reader.readline() == b"say hi\n"
    assert await reader.readline() == b"quit\n"
    assert await reader.readline() == b""
    assert reader.at_eof()
