"""Core event types shared by the engine, collectors and notifiers."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum, IntEnum


class Weekday(IntEnum):
    """Day of the week, Sunday first.

    This numbering is what configuration and state files use as map keys.
    """

    SUNDAY = 0
    MONDAY = 1
    TUESDAY = 2
    WEDNESDAY = 3
    THURSDAY = 4
    FRIDAY = 5
    SATURDAY = 6

    @classmethod
    def of(cls, timestamp: datetime) -> "Weekday":
        """Return the weekday of a timestamp."""
        return cls(timestamp.isoweekday() % 7)

    @classmethod
    def parse(cls, value: "str | int") -> "Weekday":
        """Parse a weekday from an integer, a digit string or a day name.

        Accepts 0-6 (Sunday=0), full names ("sunday") and three-letter
        abbreviations ("sun"), case-insensitive.

        Raises:
            ValueError: If the value does not name a weekday
        """
        if isinstance(value, int):
            return cls(value)

        text = value.strip().lower()
        if text.isdigit():
            return cls(int(text))

        for day in cls:
            name = day.name.lower()
            if text == name or text == name[:3]:
                return day

        raise ValueError(f"Unknown weekday: {value!r}")

    @property
    def label(self) -> str:
        return self.name.capitalize()


ALL_WEEKDAYS: list[Weekday] = list(Weekday)


class ViolationReason(str, Enum):
    """Why an activity's processes were terminated."""

    DAY_NOT_ALLOWED = "activity not allowed on this day"
    DURATION_EXCEEDED = "activity duration above threshold for this day"
    OUTSIDE_TIME_RANGE = "activity not allowed during this time range"


@dataclass(frozen=True)
class RunningProcess:
    """A process observed on the host."""

    pid: int
    path: str


@dataclass
class Enforcement:
    """A kill decision taken for one activity during one scan.

    Attributes:
        activity: Activity name the processes were classified into
        processes: Every process matched to the activity during the scan
        reason: First schedule check the activity failed
        timestamp: The scan's control time
        weekday: Weekday the decision was evaluated against
        duration: Accumulated duration for the activity on that weekday
    """

    activity: str
    processes: list[RunningProcess]
    reason: ViolationReason
    timestamp: datetime
    weekday: Weekday
    duration: timedelta = field(default_factory=timedelta)

    @property
    def pids(self) -> list[int]:
        return [p.pid for p in self.processes]
