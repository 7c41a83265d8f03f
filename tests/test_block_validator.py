"""
Tests for the suggested block sanity checks.
"""

import pendulum
import pytest

from goalpilot.domain.block_validator import (
    BlockRules,
    parse_time_block,
    screen_blocks,
    validate_time_block,
)
from goalpilot.domain.models import BusyInterval, TimeBlock

NOW = pendulum.parse("2024-11-25 08:00", tz="America/Chicago")


def _block(start: str, end: str, title: str = "") -> TimeBlock:
    return TimeBlock(
        start=pendulum.parse(start, tz="America/Chicago"),
        end=pendulum.parse(end, tz="America/Chicago"),
        title=title,
    )


RULES = BlockRules(timezone="America/Chicago")


class TestValidateTimeBlock:
    """Tests for validate_time_block."""

    def test_valid_block(self):
        result = validate_time_block(_block("2024-11-26 10:00", "2024-11-26 11:30"), NOW, RULES)

        assert result.valid
        assert result.reason is None

    @pytest.mark.parametrize(
        "start,end",
        [
            ("2024-11-26 04:30", "2024-11-26 05:30"),
            ("2024-11-26 23:00", "2024-11-26 23:45"),
        ],
    )
    def test_outside_reasonable_hours(self, start, end):
        result = validate_time_block(_block(start, end), NOW, RULES)

        assert not result.valid
        assert result.reason == "Outside reasonable hours (5am-11pm)"

    def test_hour_is_read_in_rules_timezone(self):
        """04:00 UTC is 22:00 in Chicago, which is fine."""
        block = TimeBlock(
            start=pendulum.parse("2024-11-27 04:00", tz="UTC"),
            end=pendulum.parse("2024-11-27 05:00", tz="UTC"),
        )

        assert validate_time_block(block, NOW, RULES).valid
        assert not validate_time_block(block, NOW, BlockRules(timezone="UTC")).valid

    def test_too_short(self):
        result = validate_time_block(_block("2024-11-26 10:00", "2024-11-26 10:20"), NOW, RULES)

        assert result.reason == "Block too short (min 30 min)"

    def test_too_long(self):
        result = validate_time_block(_block("2024-11-26 10:00", "2024-11-26 14:01"), NOW, RULES)

        assert result.reason == "Block too long (max 4 hours)"

    def test_exactly_four_hours_is_allowed(self):
        assert validate_time_block(_block("2024-11-26 10:00", "2024-11-26 14:00"), NOW, RULES).valid

    def test_in_the_past(self):
        result = validate_time_block(_block("2024-11-24 10:00", "2024-11-24 11:00"), NOW, RULES)

        assert result.reason == "Cannot schedule in the past"

    def test_hour_check_runs_first(self):
        """A past block at 3am is reported for its hour, not its date."""
        result = validate_time_block(_block("2024-11-24 03:00", "2024-11-24 03:10"), NOW, RULES)

        assert result.reason == "Outside reasonable hours (5am-11pm)"

    def test_custom_rules_in_reason(self):
        rules = BlockRules(earliest_hour=7, latest_hour=12, min_minutes=45, max_minutes=120, timezone="America/Chicago")

        assert validate_time_block(_block("2024-11-26 06:00", "2024-11-26 07:00"), NOW, rules).reason == (
            "Outside reasonable hours (7am-12pm)"
        )
        assert validate_time_block(_block("2024-11-26 08:00", "2024-11-26 08:30"), NOW, rules).reason == (
            "Block too short (min 45 min)"
        )
        assert validate_time_block(_block("2024-11-26 08:00", "2024-11-26 11:00"), NOW, rules).reason == (
            "Block too long (max 2 hours)"
        )


class TestScreenBlocks:
    """Tests for screen_blocks."""

    def test_splits_and_preserves_order(self):
        busy = [
            BusyInterval(
                start=pendulum.parse("2024-11-26 13:00", tz="America/Chicago"),
                end=pendulum.parse("2024-11-26 14:00", tz="America/Chicago"),
            )
        ]
        blocks = [
            _block("2024-11-26 12:30", "2024-11-26 13:30", "overlaps lecture"),
            _block("2024-11-26 09:00", "2024-11-26 10:00", "fine"),
            _block("2024-11-26 14:00", "2024-11-26 15:00", "right after lecture"),
            _block("2024-11-26 02:00", "2024-11-26 03:00", "night owl"),
        ]

        result = screen_blocks(blocks, busy, NOW, RULES)

        assert [b.title for b in result.accepted] == ["fine", "right after lecture"]
        assert [(b.title, reason) for b, reason in result.rejected] == [
            ("overlaps lecture", "Conflicts with existing event"),
            ("night owl", "Outside reasonable hours (5am-11pm)"),
        ]
        assert not result.all_rejected

    def test_all_rejected(self):
        result = screen_blocks([_block("2024-11-20 10:00", "2024-11-20 11:00")], [], NOW, RULES)

        assert result.all_rejected


def test_parse_time_block():
    block = parse_time_block(
        {
            "start": "2024-11-26T15:00:00Z",
            "end": "2024-11-26T16:00:00Z",
            "title": "Flashcards",
            "microTasks": ["Open deck", "Review 20 cards"],
        },
        timezone="America/Chicago",
    )

    assert block.title == "Flashcards"
    assert block.micro_tasks == ["Open deck", "Review 20 cards"]
    assert block.start == pendulum.parse("2024-11-26 09:00", tz="America/Chicago")
    assert block.duration_minutes() == 60


def test_parse_time_block_requires_start():
    with pytest.raises(KeyError):
        parse_time_block({"end": "2024-11-26T16:00:00Z"})
