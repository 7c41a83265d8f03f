"""
Domain models for availability search.

All instants are timezone-aware pendulum ``DateTime`` values. Weekdays follow
pendulum's ``day_of_week`` numbering (0=Monday, 6=Sunday).
"""

from dataclasses import dataclass, field
from datetime import time, timedelta
from typing import Dict, FrozenSet, Iterable, Optional, Sequence, Tuple

import pendulum
from pendulum import DateTime


WEEKDAY_NAMES = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")

# "24:00", the midnight that closes a day
END_OF_DAY = time.max


def at_clock(day: DateTime, clock: time) -> DateTime:
    """Place a clock time on the given day; END_OF_DAY maps to the following midnight."""
    if clock == END_OF_DAY:
        return day.start_of("day").add(days=1)
    return day.set(hour=clock.hour, minute=clock.minute, second=0, microsecond=0)


def format_clock(clock: time) -> str:
    return "24:00" if clock == END_OF_DAY else clock.strftime("%H:%M")


@dataclass(frozen=True)
class BusyInterval:
    """
    An occupied calendar range, half-open ``[start, end)``.

    Invariant: start must be before end.
    """
    start: DateTime
    end: DateTime

    def __post_init__(self):
        if self.start >= self.end:
            raise ValueError(f"Start time {self.start} must be before end time {self.end}")

    def duration_minutes(self) -> int:
        """Return the duration in minutes."""
        return int((self.end - self.start).total_seconds() / 60)

    def overlaps(self, start: DateTime, end: DateTime) -> bool:
        """Check if ``[start, end)`` intersects this interval."""
        return start < self.end and end > self.start

    def __str__(self) -> str:
        return f"{self.start.format('DD.MM.YYYY HH:mm')} - {self.end.format('HH:mm')}"


@dataclass(frozen=True)
class AvailabilityWindow:
    """
    A recurring time-of-day range on a set of weekdays.

    A window whose end is not after its start never produces an occurrence.
    """
    days_of_week: FrozenSet[int]
    start_time: time
    end_time: time

    @classmethod
    def from_days(cls, days: Iterable[int], start_time: time, end_time: time) -> "AvailabilityWindow":
        """Build a window from any iterable of weekday numbers."""
        return cls(days_of_week=frozenset(days), start_time=start_time, end_time=end_time)

    def applies_to(self, day: DateTime) -> bool:
        """Check whether the window recurs on the given day."""
        return day.day_of_week in self.days_of_week

    def occurrence_on(self, day: DateTime) -> Optional[Tuple[DateTime, DateTime]]:
        """
        Get the concrete window bounds on a specific day.

        Returns None if the window does not recur on that day or is empty.
        """
        if not self.applies_to(day) or self.end_time <= self.start_time:
            return None

        return at_clock(day, self.start_time), at_clock(day, self.end_time)

    def describe(self) -> str:
        days = ", ".join(WEEKDAY_NAMES[d].capitalize() for d in sorted(self.days_of_week))
        return f"{days} {format_clock(self.start_time)}-{format_clock(self.end_time)}"


@dataclass(frozen=True)
class CandidateSlot:
    """
    A proposed, not yet booked, time slot.
    """
    start: DateTime
    end: DateTime

    def duration_minutes(self) -> int:
        """Return the duration in minutes."""
        return int((self.end - self.start).total_seconds() / 60)

    def in_timezone(self, timezone: str) -> "CandidateSlot":
        """Return the same slot expressed in another timezone."""
        return CandidateSlot(
            start=self.start.in_timezone(timezone),
            end=self.end.in_timezone(timezone)
        )

    def localized(self, timezones: Sequence[str]) -> Dict[str, str]:
        """
        Render the slot start in several display timezones.

        Args:
            timezones: IANA timezone identifiers, e.g. the user's own zone
                followed by the invitee's

        Returns:
            Dictionary mapping timezone -> display string like "Mon, Nov 25 9:00 AM"
        """
        return {
            tz: self.start.in_timezone(tz).format("ddd, MMM D h:mm A")
            for tz in timezones
        }

    def format_display(self, timezone: Optional[str] = None) -> str:
        """
        Format the slot for display.
        Format: Weekday, Mon D | HH:mm – HH:mm (N min)
        """
        slot = self.in_timezone(timezone) if timezone else self
        date_str = slot.start.format("ddd, MMM D")
        time_str = f"{slot.start.format('HH:mm')} – {slot.end.format('HH:mm')}"

        return f"{date_str} | {time_str} ({self.duration_minutes()} min)"


@dataclass
class SearchConfig:
    """
    Parameters bounding a slot search.

    ``timezone`` selects the calendar in which days and window times are
    interpreted; None means the timezone of the supplied ``now``.
    """
    duration: timedelta
    horizon_days: int = 14
    step_minutes: int = 30
    max_results: int = 12
    timezone: Optional[str] = None

    @classmethod
    def for_minutes(cls, duration_minutes: int, **kwargs) -> "SearchConfig":
        """Build a config from a duration in minutes."""
        return cls(duration=pendulum.duration(minutes=duration_minutes), **kwargs)

    def is_degenerate(self) -> bool:
        """True when the search can never produce a slot."""
        return (
            self.duration <= timedelta(0)
            or self.step_minutes <= 0
            or self.horizon_days <= 0
            or self.max_results <= 0
        )


@dataclass
class TimeBlock:
    """
    A suggested work block, typically proposed by the planning assistant.
    """
    start: DateTime
    end: DateTime
    title: str = ""
    micro_tasks: list = field(default_factory=list)

    def duration_minutes(self) -> float:
        return (self.end - self.start).total_seconds() / 60


@dataclass
class ScheduledBlock:
    """
    A block already placed on the user's schedule.
    """
    id: str
    title: str
    start: DateTime
    end: DateTime
    status: str = "scheduled"  # scheduled, rescheduled, completed, missed
    reminder_sent: bool = False
    missed_notification_sent: bool = False

    @property
    def is_scheduled(self) -> bool:
        return self.status == "scheduled"
