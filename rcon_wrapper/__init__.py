"""Game server wrapper that bridges the console to WebSocket RCON."""

__version__ = "1.0.0"
