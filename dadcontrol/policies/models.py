"""Data models for activity usage policies."""

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Optional

from dadcontrol.models import Weekday

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TimeWindow:
    """A time range during which an activity is allowed.

    Attributes:
        begin: Start of the window, HHMM 24-hour encoding (2000 = 20:00)
        end: End of the window (exclusive), same encoding

    No wraparound across midnight: a window whose end is not after its begin
    never matches.
    """

    begin: int
    end: int

    def contains(self, day_time: int) -> bool:
        """Check whether an HHMM time of day falls inside the window."""
        return self.begin <= day_time < self.end


@dataclass
class DaySchedule:
    """What an activity may do on one weekday.

    Attributes:
        allowed_periods: Windows during which the activity may run (union)
        max_duration: Maximum cumulative duration for the weekday
    """

    allowed_periods: list[TimeWindow] = field(default_factory=list)
    max_duration: timedelta = field(default_factory=timedelta)

    def allows_time(self, day_time: int) -> bool:
        return any(period.contains(day_time) for period in self.allowed_periods)


@dataclass
class ActivityRule:
    """A named activity: which processes belong to it and when it may run.

    Attributes:
        name: Unique, case-sensitive activity name
        patterns: Regular expressions matched against process paths, in order
        schedules: Weekday -> DaySchedule; a missing weekday forbids the activity
        invalid_patterns: Patterns that failed to compile, with the error text
    """

    name: str
    patterns: list[str] = field(default_factory=list)
    schedules: dict[Weekday, DaySchedule] = field(default_factory=dict)
    invalid_patterns: list[tuple[str, str]] = field(default_factory=list)
    _compiled: list[re.Pattern] = field(default_factory=list, repr=False, compare=False)

    @property
    def compiled_patterns(self) -> list[re.Pattern]:
        return self._compiled

    def add_process_pattern(self, pattern: str) -> bool:
        """Append a process-path pattern.

        The pattern is compiled immediately. A pattern that does not compile
        is kept in `invalid_patterns`, logged once, and never matches.

        Returns:
            True if the pattern compiled
        """
        self.patterns.append(pattern)
        try:
            self._compiled.append(re.compile(pattern))
        except re.error as e:
            logger.warning(f"Activity [{self.name}]: invalid process pattern {pattern!r}: {e}")
            self.invalid_patterns.append((pattern, str(e)))
            return False
        return True

    def get_or_create_schedule(self, day: Weekday) -> DaySchedule:
        schedule = self.schedules.get(day)
        if schedule is None:
            schedule = DaySchedule()
            self.schedules[day] = schedule
        return schedule

    def add_allowed_period(self, days: Iterable[Weekday], begin: int, end: int) -> None:
        """Allow the activity between begin and end (HHMM) on each given day."""
        for day in days:
            self.get_or_create_schedule(day).allowed_periods.append(TimeWindow(begin, end))

    def set_max_duration_per_day(self, days: Iterable[Weekday], max_duration: timedelta) -> None:
        """Set (overwrite) the daily duration budget on each given day."""
        for day in days:
            self.get_or_create_schedule(day).max_duration = max_duration

    def schedule_for(self, day: Weekday) -> Optional[DaySchedule]:
        return self.schedules.get(day)


@dataclass
class PolicyModel:
    """The ordered set of activity rules, looked up by exact name."""

    rules: list[ActivityRule] = field(default_factory=list)

    def get_rule(self, name: str) -> Optional[ActivityRule]:
        for rule in self.rules:
            if rule.name == name:
                return rule
        return None

    def get_or_create_rule(self, name: str) -> ActivityRule:
        """Return the rule with this name, appending an empty one if missing."""
        rule = self.get_rule(name)
        if rule is None:
            rule = ActivityRule(name=name)
            self.rules.append(rule)
        return rule

    @property
    def invalid_patterns(self) -> list[tuple[str, str, str]]:
        """All (activity, pattern, error) triples that failed to compile."""
        return [
            (rule.name, pattern, error)
            for rule in self.rules
            for pattern, error in rule.invalid_patterns
        ]

    def __len__(self) -> int:
        return len(self.rules)
