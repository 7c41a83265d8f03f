"""
Mock calendar client for running without Google authentication.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import pendulum
from pendulum import DateTime

from ..config import parse_clock
from ..domain.models import BusyInterval, CandidateSlot, at_clock

logger = logging.getLogger(__name__)


DEFAULT_DATA_FILE = Path(__file__).parent / "mock_calendar_data.json"


class MockCalendarClient:
    """
    Mock client that simulates Google Calendar responses.

    Busy times come from a weekly student timetable in
    ``mock_calendar_data.json``; each entry repeats every week on its weekday.
    Created events are kept in memory and count as busy afterwards.
    """

    def __init__(self, access_token: str = "mock_token", data_file: Optional[Path] = None):
        """
        Initialize the mock client.

        Args:
            access_token: Dummy token (not used, but kept for interface compatibility)
            data_file: Optional path to an alternative timetable JSON file
        """
        self.access_token = access_token
        self.data_file = data_file or DEFAULT_DATA_FILE
        self.created_events: List[Dict[str, Any]] = []
        self._load_timetable()

    def _load_timetable(self) -> None:
        """Load the weekly timetable from JSON."""
        if self.data_file.exists():
            with open(self.data_file, "r", encoding="utf-8") as f:
                self.timetable = json.load(f)
        else:
            self.timetable = []

    def get_busy_intervals(
        self,
        start_time: DateTime,
        end_time: DateTime,
        timezone: str = "UTC",
        calendar_ids: Sequence[str] = ("primary",)
    ) -> List[BusyInterval]:
        """
        Expand the timetable over the requested range.

        Args:
            start_time: Start of the time window
            end_time: End of the time window
            timezone: IANA timezone the timetable times are interpreted in
            calendar_ids: Ignored; the timetable stands in for every calendar

        Returns:
            List of BusyInterval objects overlapping the window
        """
        busy: List[BusyInterval] = []
        day = start_time.in_timezone(timezone).start_of("day")
        last_day = end_time.in_timezone(timezone)

        while day <= last_day:
            for entry in self.timetable:
                if entry.get("weekday") != day.day_of_week:
                    continue

                try:
                    start_clock = parse_clock(entry["start"])
                    end_clock = parse_clock(entry["end"])
                    interval = BusyInterval(
                        start=at_clock(day, start_clock),
                        end=at_clock(day, end_clock)
                    )
                except (KeyError, ValueError) as e:
                    logger.warning("Skipping invalid timetable entry %s: %s", entry, e)
                    continue

                if interval.overlaps(start_time, end_time):
                    busy.append(interval)

            day = day.add(days=1)

        for event in self.created_events:
            interval = BusyInterval(
                start=pendulum.parse(event["start"]["dateTime"]).in_timezone(timezone),
                end=pendulum.parse(event["end"]["dateTime"]).in_timezone(timezone)
            )
            if interval.overlaps(start_time, end_time):
                busy.append(interval)

        return busy

    def create_event(
        self,
        slot: CandidateSlot,
        title: str,
        description: str = "",
        timezone: str = "UTC",
        with_meet: bool = True
    ) -> Dict[str, Any]:
        """Record the event in memory and return a Google-shaped resource."""
        event: Dict[str, Any] = {
            "id": f"mock-{len(self.created_events) + 1}",
            "summary": title or "Meeting",
            "description": description,
            "start": {"dateTime": slot.start.to_iso8601_string(), "timeZone": timezone},
            "end": {"dateTime": slot.end.to_iso8601_string(), "timeZone": timezone},
        }
        if with_meet:
            event["conferenceData"] = {
                "entryPoints": [{"uri": f"https://meet.google.com/mock-{len(self.created_events) + 1}"}]
            }

        self.created_events.append(event)
        return event

    def test_connection(self) -> Dict[str, Any]:
        """
        Mock connection test.

        Returns:
            Mock calendar resource
        """
        return {
            "id": "mock.student@example.com",
            "summary": "Mock Student",
            "timeZone": "UTC"
        }
