"""Running process enumeration via psutil."""

import logging

import psutil

from dadcontrol.models import RunningProcess

logger = logging.getLogger(__name__)


def list_running_processes() -> list[RunningProcess]:
    """Return every running process whose executable path is readable.

    Processes that exit mid-scan, deny access, or have no executable path
    (kernel threads, some system services) are skipped.
    """
    logger.debug("Scanning running processes ...")

    processes = []
    for proc in psutil.process_iter(attrs=["pid", "exe"]):
        path = proc.info.get("exe")
        if not path:
            continue
        processes.append(RunningProcess(pid=proc.info["pid"], path=path))

    logger.debug(f"Found {len(processes)} running processes")
    return processes
