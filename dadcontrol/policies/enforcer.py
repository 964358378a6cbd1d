"""Activity enforcement engine.

Evaluates running processes against per-activity schedules and terminates
the processes of any activity that breaks its rules for the current day.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from dadcontrol.analyzers.usage import ActivityUsage
from dadcontrol.durations import format_duration
from dadcontrol.models import Enforcement, RunningProcess, ViolationReason, Weekday
from dadcontrol.policies.models import PolicyModel
from dadcontrol.policies.process_classifier import classify_processes

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]
ProcessLister = Callable[[], list[RunningProcess]]
ProcessTerminator = Callable[[str, list[RunningProcess], str], None]


@dataclass
class EngineSnapshot:
    """Persistable part of the engine state."""

    last_control_time: datetime
    usage: ActivityUsage


class ActivityEnforcer:
    """Runs scans: classify processes, update counters, enforce schedules.

    For each scan:
    1. List running processes and map them to activities
    2. Reset the counters of the new weekday when the date changed
    3. Add one sampling interval to every activity seen running
    4. Check each seen activity, in order, for:
       day allowed -> duration under budget -> time inside a window
    5. Terminate the processes of every activity failing a check

    All time-based decisions use `last_control_time`, the clock reading
    taken by the latest scan, never the wall clock at the time of reading.
    """

    def __init__(
        self,
        policy: PolicyModel,
        sampling_interval: timedelta,
        clock: Clock,
        list_processes: ProcessLister,
        terminate: ProcessTerminator,
        usage: Optional[ActivityUsage] = None,
    ) -> None:
        """Initialize the engine.

        Args:
            policy: Activity rules to enforce
            sampling_interval: Time between scans, also the counting granularity
            clock: Returns the current time
            list_processes: Returns the processes currently running
            terminate: Called once per violating activity with
                (activity, processes, reason)
            usage: Existing duration counters, if any
        """
        self.policy = policy
        self.sampling_interval = sampling_interval
        self.clock = clock
        self.list_processes = list_processes
        self.terminate = terminate
        self.usage = usage if usage is not None else ActivityUsage()
        self.last_control_time: datetime = clock()

    @property
    def current_day(self) -> Weekday:
        return Weekday.of(self.last_control_time)

    def scan(self) -> list[Enforcement]:
        """Run one full scan and return the kill decisions taken."""
        classified = self.classify(self.list_processes())
        self.update_counters(classified, self.clock())
        return self.control_activities(classified)

    def classify(self, processes: list[RunningProcess]) -> dict[str, list[RunningProcess]]:
        return classify_processes(self.policy, processes)

    def update_counters(
        self,
        classified: dict[str, list[RunningProcess]],
        now: datetime,
    ) -> None:
        """Account one sampling interval to every activity seen running.

        Args:
            classified: Activity -> processes matched during this scan
            now: Time of this scan
        """
        if now.date() != self.last_control_time.date():
            # Date changed: the bucket of the new weekday is a week old
            self.usage.reset_day(Weekday.of(now))
        self.last_control_time = now

        if classified:
            day = self.current_day
            for activity in classified:
                self.usage.add(day, activity, self.sampling_interval)

        self._log_usage()

    def control_activities(
        self,
        classified: dict[str, list[RunningProcess]],
    ) -> list[Enforcement]:
        """Evaluate every seen activity and terminate the violating ones.

        Args:
            classified: Activity -> processes matched during this scan

        Returns:
            One Enforcement per activity whose processes were terminated
        """
        day = self.current_day
        day_time = self.last_control_time.hour * 100 + self.last_control_time.minute

        enforcements = []
        for activity, processes in classified.items():
            duration = self.usage.get(day, activity)
            reason = self._check_activity(activity, day, day_time, duration)
            if reason is None:
                continue

            enforcement = Enforcement(
                activity=activity,
                processes=processes,
                reason=reason,
                timestamp=self.last_control_time,
                weekday=day,
                duration=duration,
            )
            self.terminate(activity, processes, reason.value)
            enforcements.append(enforcement)

        return enforcements

    def _check_activity(
        self,
        activity: str,
        day: Weekday,
        day_time: int,
        duration: timedelta,
    ) -> Optional[ViolationReason]:
        """Return the first rule the activity breaks, or None if it may run."""
        rule = self.policy.get_rule(activity)
        schedule = rule.schedule_for(day) if rule is not None else None

        if schedule is None:
            logger.warning(f"/!\\ {activity} activity not allowed to run on {day.label}")
            return ViolationReason.DAY_NOT_ALLOWED

        if duration > schedule.max_duration:
            logger.warning(
                f"/!\\ {activity} activity is above max duration "
                f"{format_duration(schedule.max_duration)} for {day.label} "
                f"(currently {format_duration(duration)})"
            )
            return ViolationReason.DURATION_EXCEEDED

        if not schedule.allows_time(day_time):
            logger.warning(f"/!\\ {activity} activity is not allowed to run at {day_time:04d}")
            return ViolationReason.OUTSIDE_TIME_RANGE

        return None

    def get_activity_duration(self, activity: str) -> timedelta:
        """Accumulated duration of an activity for the current weekday."""
        return self.usage.get(self.current_day, activity)

    def set_activity_duration(self, activity: str, duration: timedelta) -> None:
        """Overwrite an activity's counter for the current weekday."""
        self.usage.set(self.current_day, activity, duration)

    def apply_policy(self, policy: PolicyModel, sampling_interval: timedelta) -> None:
        """Swap in new rules and sampling interval, keeping counters."""
        self.policy = policy
        self.sampling_interval = sampling_interval

    def snapshot(self) -> EngineSnapshot:
        return EngineSnapshot(last_control_time=self.last_control_time, usage=self.usage)

    def restore(self, snapshot: EngineSnapshot) -> None:
        """Replace counters and control time with persisted ones."""
        self.last_control_time = snapshot.last_control_time
        self.usage = snapshot.usage
        self._log_usage()

    def _log_usage(self) -> None:
        if not logger.isEnabledFor(logging.DEBUG):
            return

        day = self.current_day
        logger.debug(f"Last control time: {self.last_control_time} ({day.label})")
        for activity, duration in self.usage.for_day(day).items():
            logger.debug(f"  Activity [{activity}] = {format_duration(duration)}")
