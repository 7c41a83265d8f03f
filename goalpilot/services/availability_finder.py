"""
Application services for finding free slots on a user's calendar.

The service coordinates fetching busy intervals via a calendar client adapter
and delegates the availability calculation to the domain-level
``AvailabilityResolver``. The calendar dependency is expressed as a protocol
so the Google adapter, the mock adapter or a test stub can be plugged in.
"""

from __future__ import annotations

import asyncio
import logging
from typing import List, Protocol, Sequence

from pendulum import DateTime

from ..domain.availability_resolver import AvailabilityResolver
from ..domain.block_validator import BlockRules, ScreeningResult, screen_blocks, validate_time_block
from ..domain.exceptions import CalendarAPIError
from ..domain.models import AvailabilityWindow, BusyInterval, CandidateSlot, SearchConfig, TimeBlock

logger = logging.getLogger(__name__)


class CalendarClientProtocol(Protocol):
    """Protocol describing the calendar client behaviour needed by the service."""

    def get_busy_intervals(
        self,
        start_time: DateTime,
        end_time: DateTime,
        timezone: str,
        calendar_ids: Sequence[str],
    ) -> List[BusyInterval]:
        """Return busy intervals across the given calendars."""


class AvailabilityFinderService:
    """
    Orchestrates busy-interval retrieval and slot resolution.

    Calendar fetches are blocking HTTP calls; they run in a worker thread and
    are retried on ``CalendarAPIError``. Rejected credentials are not retried.
    """

    def __init__(
        self,
        calendar_client: CalendarClientProtocol,
        resolver: AvailabilityResolver | None = None,
        max_retries: int = 3,
        retry_delay: float = 1.0,
    ) -> None:
        self._calendar_client = calendar_client
        self._resolver = resolver or AvailabilityResolver()
        self._max_retries = max(1, max_retries)
        self._retry_delay = retry_delay

    async def find_slots(
        self,
        *,
        windows: Sequence[AvailabilityWindow],
        config: SearchConfig,
        now: DateTime,
        calendar_ids: Sequence[str] = ("primary",),
    ) -> List[CandidateSlot]:
        """
        Retrieve busy data for the search horizon and compute candidate slots.
        """
        if not windows or config.is_degenerate():
            return []

        timezone = config.timezone or now.timezone_name
        start_date, end_date = self.search_range(config, now)

        busy = await self.fetch_busy_intervals(
            start_date=start_date,
            end_date=end_date,
            timezone=timezone,
            calendar_ids=calendar_ids,
        )

        return self.calculate_slots(busy=busy, windows=windows, config=config, now=now)

    @staticmethod
    def search_range(config: SearchConfig, now: DateTime) -> tuple[DateTime, DateTime]:
        """The instants covered by the search horizon."""
        local_now = now.in_timezone(config.timezone) if config.timezone else now
        start_date = local_now.start_of("day")
        return start_date, start_date.add(days=max(config.horizon_days, 0))

    async def fetch_busy_intervals(
        self,
        *,
        start_date: DateTime,
        end_date: DateTime,
        timezone: str,
        calendar_ids: Sequence[str] = ("primary",),
    ) -> List[BusyInterval]:
        """Fetch busy intervals, retrying transient calendar failures."""
        last_error: CalendarAPIError | None = None

        for attempt in range(1, self._max_retries + 1):
            try:
                return await asyncio.to_thread(
                    self._calendar_client.get_busy_intervals,
                    start_date,
                    end_date,
                    timezone,
                    list(calendar_ids),
                )
            except CalendarAPIError as exc:
                last_error = exc
                logger.warning(
                    "Calendar fetch failed (attempt %d/%d): %s",
                    attempt,
                    self._max_retries,
                    exc,
                )
                if attempt < self._max_retries:
                    await asyncio.sleep(self._retry_delay)

        raise last_error

    def calculate_slots(
        self,
        *,
        busy: Sequence[BusyInterval],
        windows: Sequence[AvailabilityWindow],
        config: SearchConfig,
        now: DateTime,
    ) -> List[CandidateSlot]:
        """Calculate candidate slots from already fetched busy data."""
        return self._resolver.find_slots(busy, windows, config, now)

    async def screen_suggestions(
        self,
        *,
        blocks: Sequence[TimeBlock],
        now: DateTime,
        rules: BlockRules,
        calendar_ids: Sequence[str] = ("primary",),
    ) -> ScreeningResult:
        """
        Check suggested blocks against the rules and the live calendar.

        Blocks are validated first; busy data is only fetched for the span of
        the blocks that passed, and not at all when none did.
        """
        candidates = [
            block for block in blocks
            if block.end > block.start and validate_time_block(block, now, rules).valid
        ]

        busy: List[BusyInterval] = []
        if candidates:
            busy = await self.fetch_busy_intervals(
                start_date=min(block.start for block in candidates),
                end_date=max(block.end for block in candidates),
                timezone=rules.timezone,
                calendar_ids=calendar_ids,
            )

        return screen_blocks(blocks, busy, now, rules)
