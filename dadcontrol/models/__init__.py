"""Data models for dadcontrol events."""

from dadcontrol.models.events import (
    Enforcement,
    RunningProcess,
    ViolationReason,
    Weekday,
)

__all__ = [
    "Enforcement",
    "RunningProcess",
    "ViolationReason",
    "Weekday",
]
