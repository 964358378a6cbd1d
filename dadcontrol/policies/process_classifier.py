"""Process-to-activity classification.

Maps running processes to activities by matching their executable path
against each rule's regular expressions. No LLM or lookup service involved;
designed to run inline on every scan.
"""

import logging

from dadcontrol.models import RunningProcess
from dadcontrol.policies.models import PolicyModel

logger = logging.getLogger(__name__)


def classify_processes(
    policy: PolicyModel,
    processes: list[RunningProcess],
) -> dict[str, list[RunningProcess]]:
    """Group running processes by the activities they belong to.

    A process matching several activities is listed under each of them. A
    process matched by two patterns of the same activity is listed twice.

    Args:
        policy: Rules whose patterns are matched
        processes: Processes currently running on the host

    Returns:
        Activity name -> matched processes; activities without a match are absent
    """
    results: dict[str, list[RunningProcess]] = {}

    for rule in policy.rules:
        for pattern in rule.compiled_patterns:
            for process in processes:
                if pattern.search(process.path):
                    logger.debug(f"{process.path} (pid {process.pid}) -> {rule.name}")
                    results.setdefault(rule.name, []).append(process)

    return results
