"""
Core logic for resolving candidate time slots.

Pure domain logic without any external dependencies (no API calls, no
database, no I/O). The current time is always supplied by the caller.
"""

from typing import Iterator, List, Sequence

import pendulum
from pendulum import DateTime

from .models import AvailabilityWindow, BusyInterval, CandidateSlot, SearchConfig


class AvailabilityResolver:
    """
    Enumerates non-conflicting start times inside recurring availability windows.

    Algorithm:
    1. Walk each day in [today, today + horizon_days)
    2. For each window recurring on that day, step candidate starts from the
       window start by step_minutes while the slot still fits inside the window
    3. Drop candidates that start before now or overlap a busy interval
    4. Emit survivors day by day in chronological order until max_results
    """

    def find_slots(
        self,
        busy: Sequence[BusyInterval],
        windows: Sequence[AvailabilityWindow],
        config: SearchConfig,
        now: DateTime
    ) -> List[CandidateSlot]:
        """
        Find candidate slots for a single search.

        Args:
            busy: Occupied intervals in any order; never modified
            windows: Recurring windows in which placement is permitted
            config: Duration, horizon, step and result cap
            now: Current instant; earlier candidates are discarded

        Returns:
            Chronologically ordered list of at most ``config.max_results`` slots.
            Degenerate input yields an empty list.
        """
        if not windows or config.is_degenerate():
            return []

        slots: List[CandidateSlot] = []

        for day in self._iter_days(config, now):
            for start in self._candidate_starts(day, windows, config):
                end = start + config.duration

                if start < now:
                    continue

                if self._conflicts(start, end, busy):
                    continue

                slots.append(CandidateSlot(start=start, end=end))

                if len(slots) >= config.max_results:
                    return slots

        return slots

    def _iter_days(self, config: SearchConfig, now: DateTime) -> Iterator[DateTime]:
        """Yield the start of each day in the search horizon."""
        local_now = now.in_timezone(config.timezone) if config.timezone else now
        today = local_now.start_of("day")

        for offset in range(config.horizon_days):
            yield today.add(days=offset)

    def _candidate_starts(
        self,
        day: DateTime,
        windows: Sequence[AvailabilityWindow],
        config: SearchConfig
    ) -> List[DateTime]:
        """
        Collect every start time on one day across all matching windows.

        Windows may arrive in any order and may overlap, so the starts are
        deduplicated and sorted before being returned.
        """
        step = pendulum.duration(minutes=config.step_minutes)
        starts = set()

        for window in windows:
            occurrence = window.occurrence_on(day)
            if occurrence is None:
                continue

            window_start, window_end = occurrence
            current = window_start

            while current + config.duration <= window_end:
                starts.add(current)
                current = current + step

        return sorted(starts)

    @staticmethod
    def _conflicts(start: DateTime, end: DateTime, busy: Sequence[BusyInterval]) -> bool:
        return any(interval.overlaps(start, end) for interval in busy)


def find_slots(
    busy: Sequence[BusyInterval],
    windows: Sequence[AvailabilityWindow],
    config: SearchConfig,
    now: DateTime
) -> List[CandidateSlot]:
    """Module-level shortcut for ``AvailabilityResolver().find_slots``."""
    return AvailabilityResolver().find_slots(busy, windows, config, now)
