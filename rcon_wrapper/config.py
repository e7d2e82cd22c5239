from __future__ import annotations

import os
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv


def build_startup_command(argv: Sequence[str]) -> str:
    """Join the wrapper's arguments into the shell command for the server."""
    return " ".join(argv)


@dataclass(frozen=True)
class Config:
    rcon_host: str = "localhost"
    rcon_port: str | None = None
    rcon_password: str | None = None
    log_dir: str = "logs"
    log_retention_days: int = 35
    reconnect_delay: float = 5.0    # seconds between RCON attempts
    rcon_timeout: float = 900.0     # total budget across all attempts
    open_timeout: float = 10.0      # per-attempt WebSocket handshake
    stop_timeout: float = 10.0      # SIGTERM grace before SIGKILL

    @property
    def rcon_uri(self) -> str:
        """WebSocket RCON address with the password as the path.

        A missing port or password is left in as ``None`` on purpose: the
        resulting URI fails to connect and goes through the retry loop.
        """
        return f"ws://{self.rcon_host}:{self.rcon_port}/{self.rcon_password}"

    @classmethod
    def from_env(cls, env_path: str | Path | None = None) -> Config:
        load_dotenv(env_path)

        host = os.getenv("RCON_IP") or "localhost"
        port = os.getenv("RCON_PORT") or None
        password = os.getenv("RCON_PASS") or None

        retention = int(os.getenv("LOG_RETENTION_DAYS", "35"))

        return cls(
            rcon_host=host,
            rcon_port=port,
            rcon_password=password,
            log_dir=os.getenv("LOG_DIR", "logs"),
            log_retention_days=retention,
        )
