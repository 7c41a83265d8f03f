"""
Tests for configuration loading and validation.
"""

from datetime import time, timedelta
from pathlib import Path

import pytest
from pydantic import ValidationError

from goalpilot.config import AppConfig, SearchDefaults, WindowConfig, parse_clock, parse_weekday
from goalpilot.domain.models import END_OF_DAY

CONFIG_YAML = """
timezone: Europe/Berlin
google:
  client_id: test-client.apps.googleusercontent.com
  calendar_ids: [primary, uni@group.calendar.google.com]
search:
  duration_minutes: 60
  max_results: 5
windows:
  - days: [mon, Wednesday, 4]
    start: "09:00"
    end: "12:30"
  - days: [sat]
    start: "10:00"
    end: "14:00"
display_timezones: [America/New_York, Europe/Berlin, America/New_York]
block_rules:
  earliest_hour: 7
"""


def _write(tmp_path: Path, content: str) -> Path:
    path = tmp_path / "config.yaml"
    path.write_text(content, encoding="utf-8")
    return path


class TestAppConfig:
    """Tests for AppConfig."""

    def test_load_from_yaml(self, tmp_path):
        config = AppConfig.load_from_yaml(_write(tmp_path, CONFIG_YAML))

        assert config.timezone == "Europe/Berlin"
        assert config.google.calendar_ids == ["primary", "uni@group.calendar.google.com"]
        assert config.search.duration_minutes == 60
        assert config.search.step_minutes == 30
        assert config.block_rules.earliest_hour == 7
        assert config.block_rules.latest_hour == 23
        assert config.reminders.reminder_minutes == 10

        windows = config.availability_windows()
        assert windows[0].days_of_week == frozenset({0, 2, 4})
        assert windows[0].start_time == time(9, 0)
        assert windows[0].end_time == time(12, 30)
        assert windows[1].days_of_week == frozenset({5})

    def test_display_timezones_deduplicated_and_own_zone_first(self, tmp_path):
        config = AppConfig.load_from_yaml(_write(tmp_path, CONFIG_YAML))

        assert config.display_timezones == ["America/New_York", "Europe/Berlin"]
        assert config.all_display_timezones() == ["Europe/Berlin", "America/New_York"]

    def test_defaults(self):
        config = AppConfig()

        assert config.timezone == "UTC"
        windows = config.availability_windows()
        assert len(windows) == 1
        assert windows[0].days_of_week == frozenset({0, 1, 2, 3, 4})

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError, match="Config file not found"):
            AppConfig.load_from_yaml(tmp_path / "missing.yaml")

    def test_invalid_yaml(self, tmp_path):
        with pytest.raises(ValueError, match="Invalid YAML"):
            AppConfig.load_from_yaml(_write(tmp_path, "timezone: [unclosed"))

    def test_root_must_be_mapping(self, tmp_path):
        with pytest.raises(ValueError, match="mapping at the root"):
            AppConfig.load_from_yaml(_write(tmp_path, "- just\n- a list\n"))

    def test_empty_file_uses_defaults(self, tmp_path):
        assert AppConfig.load_from_yaml(_write(tmp_path, "")).timezone == "UTC"

    def test_unknown_timezone(self):
        with pytest.raises(ValidationError, match="Unknown timezone"):
            AppConfig(timezone="Mars/Olympus_Mons")

    def test_block_rules_order(self):
        with pytest.raises(ValidationError, match="latest_hour must be later"):
            AppConfig(block_rules={"earliest_hour": 20, "latest_hour": 8})

    def test_reminder_windows(self):
        with pytest.raises(ValidationError, match="missed_lookback_minutes must exceed"):
            AppConfig(reminders={"missed_grace_minutes": 60, "missed_lookback_minutes": 30})


class TestWindowConfig:
    """Tests for WindowConfig."""

    def test_end_before_start(self):
        with pytest.raises(ValidationError, match="must be later than start"):
            WindowConfig(days=["mon"], start="17:00", end="09:00")

    def test_bad_clock(self):
        with pytest.raises(ValidationError, match="expected HH:MM"):
            WindowConfig(days=["mon"], start="9am", end="17:00")

    def test_unknown_day(self):
        with pytest.raises(ValidationError, match="Unknown weekday"):
            WindowConfig(days=["funday"])

    def test_empty_days(self):
        with pytest.raises(ValidationError, match="at least one day"):
            WindowConfig(days=[])

    @pytest.mark.parametrize("day", ["monkey", "tues", "m", "sundays"])
    def test_day_names_must_match_exactly(self, day):
        with pytest.raises(ValidationError, match="Unknown weekday"):
            WindowConfig(days=[day])

    def test_short_and_long_day_names(self):
        window = WindowConfig(days=["Mon", "wednesday", " FRI ", 6])

        assert window.days == [0, 2, 4, 6]

    def test_window_can_end_at_midnight(self):
        window = WindowConfig(days=["sat"], start="20:00", end="24:00").to_window()

        assert window.end_time == END_OF_DAY
        assert window.describe() == "Sat 20:00-24:00"

    def test_window_cannot_start_at_midnight(self):
        with pytest.raises(ValidationError, match="must be later than start"):
            WindowConfig(days=["sat"], start="24:00", end="24:00")


class TestSearchDefaults:
    """Tests for SearchDefaults."""

    def test_overrides_win(self):
        search = SearchDefaults(duration_minutes=30, max_results=12)

        config = search.to_search_config("Europe/Berlin", duration_minutes=90, max_results=None, step_minutes=15)

        assert config.duration == timedelta(minutes=90)
        assert config.max_results == 12
        assert config.step_minutes == 15
        assert config.horizon_days == 14
        assert config.timezone == "Europe/Berlin"

    def test_rejects_non_positive(self):
        with pytest.raises(ValidationError, match="greater than zero"):
            SearchDefaults(step_minutes=0)


def test_parse_helpers():
    assert parse_clock(" 07:45 ") == time(7, 45)
    assert parse_weekday("Friday") == 4
    assert parse_weekday(6) == 6
    with pytest.raises(ValueError):
        parse_weekday(7)
    with pytest.raises(ValueError):
        parse_clock("25:00")
    with pytest.raises(ValueError):
        parse_clock("24:30")
    assert parse_clock("24:00") == END_OF_DAY
