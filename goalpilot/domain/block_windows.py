"""
Selection of scheduled blocks for reminders, missed-block follow-ups and rescue.

Every window here is half-open on the block start time: ``lower <= start < upper``.
Only blocks with status "scheduled" are considered.
"""

from typing import Callable, List, Optional, Sequence

import pendulum
from pendulum import DateTime

from .models import ScheduledBlock


def _select(
    blocks: Sequence[ScheduledBlock],
    lower: DateTime,
    upper: DateTime,
    predicate: Optional[Callable[[ScheduledBlock], bool]] = None
) -> List[ScheduledBlock]:
    selected = [
        block for block in blocks
        if block.is_scheduled
        and lower <= block.start < upper
        and (predicate is None or predicate(block))
    ]
    return sorted(selected, key=lambda b: b.start)


def due_for_reminder(
    blocks: Sequence[ScheduledBlock],
    now: DateTime,
    reminder_minutes: int = 10
) -> List[ScheduledBlock]:
    """Blocks starting within the next ``reminder_minutes`` that were not reminded yet."""
    return _select(
        blocks,
        now,
        now.add(minutes=reminder_minutes),
        lambda b: not b.reminder_sent
    )


def missed_blocks(
    blocks: Sequence[ScheduledBlock],
    now: DateTime,
    grace_minutes: int = 30,
    lookback_minutes: int = 120
) -> List[ScheduledBlock]:
    """
    Blocks that started more than ``grace_minutes`` ago but no longer than
    ``lookback_minutes`` ago, still marked scheduled and not yet followed up.
    """
    return _select(
        blocks,
        now.subtract(minutes=lookback_minutes),
        now.subtract(minutes=grace_minutes),
        lambda b: not b.missed_notification_sent
    )


def rescue_blocks(
    blocks: Sequence[ScheduledBlock],
    now: DateTime,
    horizon_hours: int = 12
) -> List[ScheduledBlock]:
    """
    Upcoming blocks to move off the plate when the user has gone quiet.

    This only selects; callers decide whether to rescue via ``rescue_due``.
    """
    return _select(blocks, now, now.add(hours=horizon_hours))


def rescue_due(
    last_interaction: Optional[DateTime],
    unresponsive_count: int,
    now: DateTime,
    idle_minutes: int = 120,
    min_unresponsive: int = 2
) -> bool:
    """
    True when the user has ignored reminders long enough to be rescued.

    Requires a known last interaction older than ``idle_minutes`` and at least
    ``min_unresponsive`` unanswered reminders. Without a recorded interaction
    nothing is rescued.
    """
    if last_interaction is None:
        return False
    return (
        last_interaction < now.subtract(minutes=idle_minutes)
        and unresponsive_count >= min_unresponsive
    )


def has_free_stretch(
    blocks: Sequence[ScheduledBlock],
    now: DateTime,
    lookahead_minutes: int = 120
) -> bool:
    """True when nothing scheduled starts within the lookahead."""
    return not _select(blocks, now, now.add(minutes=lookahead_minutes))


def nudge_allowed(
    last_nudge_at: Optional[DateTime],
    now: DateTime,
    cooldown_minutes: int = 120
) -> bool:
    """True when the user was never nudged or the last nudge is older than the cooldown."""
    if last_nudge_at is None:
        return True
    return last_nudge_at < now.subtract(minutes=cooldown_minutes)


def parse_scheduled_block(data: dict, timezone: str = "UTC") -> ScheduledBlock:
    """
    Build a ScheduledBlock from a JSON-like mapping.

    Accepts both ``start``/``end`` and ``start_time``/``end_time`` keys.

    Raises:
        KeyError: If a required key is missing
        ValueError: If a timestamp cannot be parsed
    """
    start = pendulum.parse(data.get("start_time") or data["start"], tz=timezone)
    end = pendulum.parse(data.get("end_time") or data["end"], tz=timezone)

    return ScheduledBlock(
        id=str(data.get("id", "")),
        title=data.get("title", ""),
        start=start,
        end=end,
        status=data.get("status", "scheduled"),
        reminder_sent=bool(data.get("reminder_sent", False)),
        missed_notification_sent=bool(data.get("missed_notification_sent", False))
    )
