"""Game process management — spawns the server and watches it exit."""

from rcon_wrapper.process_manager.supervisor import (
    GameProcess,
    ProcessStatus,
    ProcessSupervisor,
)

__all__ = ["GameProcess", "ProcessStatus", "ProcessSupervisor"]
