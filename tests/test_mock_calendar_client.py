"""
Tests for the mock calendar adapter.
"""

import json

import pendulum

from goalpilot.adapters.mock_calendar_client import MockCalendarClient
from goalpilot.domain.models import CandidateSlot


def test_expands_weekly_timetable(tmp_path):
    data_file = tmp_path / "timetable.json"
    data_file.write_text(json.dumps([
        {"weekday": 0, "start": "10:00", "end": "11:00", "title": "Lecture"},
        {"weekday": 2, "start": "14:00", "end": "15:00", "title": "Lab"},
        {"weekday": 2, "start": "nonsense", "end": "15:00", "title": "Broken"},
    ]))
    client = MockCalendarClient(data_file=data_file)

    busy = client.get_busy_intervals(
        pendulum.parse("2024-11-25 00:00", tz="Europe/Berlin"),
        pendulum.parse("2024-12-02 23:59", tz="Europe/Berlin"),
        timezone="Europe/Berlin",
    )

    assert sorted(str(interval) for interval in busy) == [
        "02.12.2024 10:00 - 11:00",
        "25.11.2024 10:00 - 11:00",
        "27.11.2024 14:00 - 15:00",
    ]


def test_only_returns_overlapping_entries(tmp_path):
    data_file = tmp_path / "timetable.json"
    data_file.write_text(json.dumps([{"weekday": 0, "start": "10:00", "end": "11:00"}]))
    client = MockCalendarClient(data_file=data_file)

    busy = client.get_busy_intervals(
        pendulum.parse("2024-11-25 11:00", tz="UTC"),
        pendulum.parse("2024-11-25 18:00", tz="UTC"),
        timezone="UTC",
    )

    assert busy == []


def test_created_events_become_busy(tmp_path):
    client = MockCalendarClient(data_file=tmp_path / "missing.json")
    slot = CandidateSlot(
        start=pendulum.parse("2024-11-26 09:00", tz="UTC"),
        end=pendulum.parse("2024-11-26 09:30", tz="UTC"),
    )

    event = client.create_event(slot, title="Sync")
    busy = client.get_busy_intervals(
        pendulum.parse("2024-11-26 00:00", tz="UTC"),
        pendulum.parse("2024-11-27 00:00", tz="UTC"),
    )

    assert event["conferenceData"]["entryPoints"][0]["uri"].startswith("https://meet.google.com/")
    assert len(busy) == 1
    assert busy[0].start == slot.start


def test_bundled_timetable_loads():
    client = MockCalendarClient()

    assert client.timetable
    assert client.test_connection()["summary"] == "Mock Student"
