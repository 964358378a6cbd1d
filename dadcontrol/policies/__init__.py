"""Activity rules and schedule enforcement for dadcontrol."""

from dadcontrol.policies.models import (
    ActivityRule,
    DaySchedule,
    PolicyModel,
    TimeWindow,
)
from dadcontrol.policies.process_classifier import classify_processes
from dadcontrol.policies.enforcer import ActivityEnforcer, EngineSnapshot

__all__ = [
    "ActivityRule",
    "DaySchedule",
    "PolicyModel",
    "TimeWindow",
    "classify_processes",
    "ActivityEnforcer",
    "EngineSnapshot",
]
