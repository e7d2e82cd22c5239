"""Run the game server under the RCON console wrapper.

Usage:
    python -m rcon_wrapper ./RustDedicated -batchmode +server.port 28015 ...

Everything after the program name is joined into the shell command that
starts the server.  RCON address and password come from RCON_IP,
RCON_PORT and RCON_PASS (a .env file is honoured).
"""

import asyncio
import logging
import os
import sys

from rcon_wrapper.config import Config, build_startup_command
from rcon_wrapper.console import open_stdin_reader
from rcon_wrapper.orchestrator import Orchestrator
from rcon_wrapper.sink import LoggingSink

log = logging.getLogger(__name__)


async def _run(config: Config, command: str) -> int:
    sink = LoggingSink.create(config.log_dir, config.log_retention_days)
    orchestrator = Orchestrator(config, sink)
    stdin = await open_stdin_reader()
    return await orchestrator.run(command, stdin)


def main() -> None:
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "WARNING").upper(),
        format="%(asctime)s [rcon-wrapper] %(levelname)s %(message)s",
    )

    config = Config.from_env()
    command = build_startup_command(sys.argv[1:])

    log.info("Starting rcon-wrapper, RCON at %s:%s", config.rcon_host, config.rcon_port)
    sys.exit(asyncio.run(_run(config, command)))


if __name__ == "__main__":
    main()
