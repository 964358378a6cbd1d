"""Per-weekday accumulated activity durations.

Each weekday owns a bucket of activity -> duration. Only the current
weekday's bucket matters for enforcement. A bucket from a past weekday stays
around until the day rollover that lands on the same weekday again, when it
is discarded and restarts from zero.
"""

import logging
from datetime import timedelta

from dadcontrol.durations import format_duration, parse_duration
from dadcontrol.models import Weekday

logger = logging.getLogger(__name__)


class ActivityUsage:
    """Duration counters keyed by weekday, then by activity name."""

    def __init__(self, buckets: "dict[Weekday, dict[str, timedelta]] | None" = None) -> None:
        self._buckets: dict[Weekday, dict[str, timedelta]] = buckets if buckets is not None else {}

    def get(self, day: Weekday, activity: str) -> timedelta:
        """Accumulated duration for an activity on a weekday (zero if unseen)."""
        return self._buckets.get(day, {}).get(activity, timedelta(0))

    def set(self, day: Weekday, activity: str, duration: timedelta) -> None:
        self.bucket(day)[activity] = duration

    def add(self, day: Weekday, activity: str, duration: timedelta) -> timedelta:
        """Add to an activity's counter and return the new total."""
        bucket = self.bucket(day)
        bucket[activity] = bucket.get(activity, timedelta(0)) + duration
        return bucket[activity]

    def bucket(self, day: Weekday) -> dict[str, timedelta]:
        """Return the bucket for a weekday, creating it on demand."""
        bucket = self._buckets.get(day)
        if bucket is None:
            bucket = {}
            self._buckets[day] = bucket
        return bucket

    def has_bucket(self, day: Weekday) -> bool:
        return day in self._buckets

    def reset_day(self, day: Weekday) -> None:
        """Discard a weekday's bucket."""
        if self._buckets.pop(day, None) is not None:
            logger.info(f"Reset activity counters for {day.label}")

    def for_day(self, day: Weekday) -> dict[str, timedelta]:
        """Copy of a weekday's counters (empty if the bucket does not exist)."""
        return dict(self._buckets.get(day, {}))

    def to_dict(self) -> dict[str, dict[str, str]]:
        """Serialize to the state-file layout: {"<weekday int>": {name: "15m0s"}}."""
        return {
            str(int(day)): {activity: format_duration(d) for activity, d in bucket.items()}
            for day, bucket in sorted(self._buckets.items())
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ActivityUsage":
        """Load counters from the state-file layout.

        Raises:
            ValueError: If a weekday key or duration is malformed
        """
        if not isinstance(data, dict):
            raise ValueError("activityDuration must be an object")

        buckets: dict[Weekday, dict[str, timedelta]] = {}
        for day_key, bucket in data.items():
            if not isinstance(bucket, dict):
                raise ValueError(f"Counters for weekday {day_key!r} must be an object")
            day = Weekday.parse(day_key)
            buckets[day] = {activity: parse_duration(d) for activity, d in bucket.items()}
        return cls(buckets)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ActivityUsage):
            return NotImplemented
        return self._buckets == other._buckets
