"""Collectors for host state."""

from dadcontrol.collectors.processes import list_running_processes

__all__ = [
    "list_running_processes",
]
