"""Actions taken on the host."""

from dadcontrol.actuators.terminator import terminate_processes

__all__ = [
    "terminate_processes",
]
