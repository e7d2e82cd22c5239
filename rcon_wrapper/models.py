from __future__ import annotations

import enum
import json
from dataclasses import dataclass


# ---------------------------------------------------------------------------
# Log levels — the classification the core hands to the sink
# ---------------------------------------------------------------------------

class LogLevel(enum.Enum):
    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


# ---------------------------------------------------------------------------
# Console ownership and RCON connection state
# ---------------------------------------------------------------------------

class ConsoleOwner(enum.Enum):
    LOCAL = "local"    # supervisor reads stdin and forwards process output
    REMOTE = "remote"  # RCON client reads stdin; process output is drained


class RconState(enum.Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    CLOSED = "closed"  # terminal


# ---------------------------------------------------------------------------
# Wire packets
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ConsolePacket:
    message: str
    # Responses are not correlated by id, so every packet uses the same one.
    identifier: int = -1
    name: str = "WebRcon"

    def to_json(self) -> str:
        return json.dumps({
            "Identifier": self.identifier,
            "Message": self.message,
            "Name": self.name,
        })


def parse_console_message(frame: str | bytes) -> str | None:
    """Decode an inbound RCON frame and return its ``Message`` text.

    Returns None when the message is absent, empty or not a string.
    Raises ValueError if the frame is not a JSON object.
    """
    if isinstance(frame, bytes):
        frame = frame.decode("utf-8", errors="replace")
    data = json.loads(frame)  # JSONDecodeError is a ValueError
    if not isinstance(data, dict):
        raise ValueError("Invalid JSON received")

    message = data.get("Message")
    if isinstance(message, str) and message:
        return message
    return None
