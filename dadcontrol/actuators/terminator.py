"""Process termination via psutil."""

import logging

import psutil

from dadcontrol.models import RunningProcess

logger = logging.getLogger(__name__)

# Seconds a process gets to exit after SIGTERM before it is killed
TERMINATE_GRACE_PERIOD = 3.0


def terminate_processes(activity: str, processes: list[RunningProcess], reason: str) -> None:
    """Terminate every process of a violating activity.

    A failure on one process is logged and does not stop the others; the
    process will be targeted again on the next scan if it is still running.

    Args:
        activity: Activity the processes belong to
        processes: Processes to terminate
        reason: Why the activity is being stopped
    """
    logger.info(f"Killing activity {activity}: {reason}")

    for process in processes:
        logger.info(f"Killing process {process.pid}, {process.path}")
        try:
            proc = psutil.Process(process.pid)
            proc.terminate()
            try:
                proc.wait(timeout=TERMINATE_GRACE_PERIOD)
            except psutil.TimeoutExpired:
                proc.kill()
        except psutil.NoSuchProcess:
            logger.debug(f"Process {process.pid} already exited")
        except (psutil.AccessDenied, OSError) as e:
            logger.warning(f"Failure to kill process {process.pid}: {e}")
