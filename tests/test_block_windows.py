"""
Tests for reminder, missed-block and rescue selection.
"""

import pendulum
import pytest

from goalpilot.domain.block_windows import (
    due_for_reminder,
    has_free_stretch,
    missed_blocks,
    nudge_allowed,
    parse_scheduled_block,
    rescue_blocks,
    rescue_due,
)
from goalpilot.domain.models import ScheduledBlock

NOW = pendulum.parse("2024-11-25 12:00", tz="UTC")


def _block(block_id: str, minutes_from_now: int, **kwargs) -> ScheduledBlock:
    start = NOW.add(minutes=minutes_from_now)
    return ScheduledBlock(id=block_id, title=f"Block {block_id}", start=start, end=start.add(hours=1), **kwargs)


class TestReminders:
    """Tests for due_for_reminder."""

    def test_window_is_half_open(self):
        blocks = [
            _block("now", 0),
            _block("soon", 9),
            _block("edge", 10),
            _block("past", -1),
        ]

        assert [b.id for b in due_for_reminder(blocks, NOW, reminder_minutes=10)] == ["now", "soon"]

    def test_skips_already_reminded_and_unscheduled(self):
        blocks = [
            _block("reminded", 5, reminder_sent=True),
            _block("done", 5, status="completed"),
            _block("due", 5),
        ]

        assert [b.id for b in due_for_reminder(blocks, NOW)] == ["due"]


class TestMissedBlocks:
    """Tests for missed_blocks."""

    def test_grace_and_lookback(self):
        blocks = [
            _block("too-old", -121),
            _block("oldest", -120),
            _block("missed", -31),
            _block("grace-edge", -30),
            _block("in-grace", -10),
        ]

        assert [b.id for b in missed_blocks(blocks, NOW)] == ["oldest", "missed"]

    def test_already_notified(self):
        blocks = [_block("notified", -60, missed_notification_sent=True)]

        assert missed_blocks(blocks, NOW) == []


class TestRescue:
    """Tests for rescue_blocks and free stretch detection."""

    def test_rescue_horizon_sorted(self):
        blocks = [
            _block("late", 11 * 60),
            _block("early", 30),
            _block("tomorrow", 12 * 60),
            _block("moved", 60, status="rescheduled"),
        ]

        assert [b.id for b in rescue_blocks(blocks, NOW, horizon_hours=12)] == ["early", "late"]

    def test_free_stretch(self):
        assert has_free_stretch([_block("later", 120)], NOW, lookahead_minutes=120)
        assert not has_free_stretch([_block("soon", 119)], NOW, lookahead_minutes=120)
        assert has_free_stretch([], NOW)


class TestRescueDue:
    """Tests for rescue_due."""

    @pytest.mark.parametrize(
        "last_interaction,unresponsive,expected",
        [
            (NOW.subtract(minutes=121), 2, True),
            (NOW.subtract(minutes=121), 5, True),
            (NOW.subtract(minutes=120), 2, False),
            (NOW.subtract(minutes=30), 4, False),
            (NOW.subtract(hours=6), 1, False),
            (None, 3, False),
        ],
    )
    def test_needs_silence_and_ignored_reminders(self, last_interaction, unresponsive, expected):
        assert rescue_due(last_interaction, unresponsive, NOW, idle_minutes=120, min_unresponsive=2) is expected


class TestNudgeAllowed:
    """Tests for nudge_allowed."""

    @pytest.mark.parametrize(
        "last_nudge,expected",
        [
            (None, True),
            (NOW.subtract(minutes=121), True),
            (NOW.subtract(minutes=120), False),
            (NOW.subtract(minutes=5), False),
        ],
    )
    def test_cooldown(self, last_nudge, expected):
        assert nudge_allowed(last_nudge, NOW, cooldown_minutes=120) is expected


def test_parse_scheduled_block_accepts_database_keys():
    block = parse_scheduled_block(
        {
            "id": 7,
            "title": "Essay draft",
            "start_time": "2024-11-25T14:00:00+00:00",
            "end_time": "2024-11-25T15:00:00+00:00",
            "status": "scheduled",
            "reminder_sent": True,
        }
    )

    assert block.id == "7"
    assert block.is_scheduled
    assert block.reminder_sent
    assert not block.missed_notification_sent
    assert block.start == NOW.add(hours=2)
