"""
Sanity checks for suggested work blocks.

Suggested blocks come from a language model and are not trusted: each one is
checked against simple bounds and against the user's busy calendar before it
is offered for booking.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

import pendulum
from pendulum import DateTime

from .models import BusyInterval, TimeBlock


@dataclass
class BlockRules:
    """Bounds a suggested block must respect."""
    earliest_hour: int = 5
    latest_hour: int = 23
    min_minutes: int = 30
    max_minutes: int = 240
    timezone: str = "UTC"


@dataclass(frozen=True)
class BlockValidation:
    """Outcome of validating a single block."""
    valid: bool
    reason: Optional[str] = None


@dataclass
class ScreeningResult:
    """Blocks split into accepted and rejected (with the rejection reason)."""
    accepted: List[TimeBlock] = field(default_factory=list)
    rejected: List[Tuple[TimeBlock, str]] = field(default_factory=list)

    @property
    def all_rejected(self) -> bool:
        """True when blocks were suggested but none survived."""
        return not self.accepted and bool(self.rejected)


CONFLICT_REASON = "Conflicts with existing event"


def parse_time_block(data: dict, timezone: str = "UTC") -> TimeBlock:
    """
    Build a TimeBlock from a suggestion mapping.

    Expected keys: ``start`` and ``end`` (ISO 8601), optional ``title`` and
    ``microTasks``.

    Raises:
        KeyError: If start or end is missing
        ValueError: If a timestamp cannot be parsed
    """
    return TimeBlock(
        start=pendulum.parse(data["start"], tz=timezone),
        end=pendulum.parse(data["end"], tz=timezone),
        title=data.get("title", ""),
        micro_tasks=list(data.get("microTasks") or data.get("micro_tasks") or [])
    )


def _format_hour(hour: int) -> str:
    if hour % 12 == 0:
        return "12am" if hour % 24 == 0 else "12pm"
    return f"{hour % 12}{'am' if hour < 12 else 'pm'}"


def _format_minutes(minutes: int) -> str:
    if minutes >= 60 and minutes % 60 == 0:
        hours = minutes // 60
        return f"{hours} hour" if hours == 1 else f"{hours} hours"
    return f"{minutes} min"


def validate_time_block(
    block: TimeBlock,
    now: DateTime,
    rules: Optional[BlockRules] = None
) -> BlockValidation:
    """
    Validate one suggested block against the rules.

    Checks run in order: hour of day, minimum duration, maximum duration,
    and finally that the block starts in the future.

    Args:
        block: The suggested block
        now: Current instant
        rules: Bounds to apply, defaults to ``BlockRules()``

    Returns:
        BlockValidation with the first failing reason, if any
    """
    rules = rules or BlockRules()
    hour = block.start.in_timezone(rules.timezone).hour

    if hour < rules.earliest_hour or hour >= rules.latest_hour:
        return BlockValidation(
            valid=False,
            reason=(
                f"Outside reasonable hours "
                f"({_format_hour(rules.earliest_hour)}-{_format_hour(rules.latest_hour)})"
            )
        )

    duration = block.duration_minutes()

    if duration < rules.min_minutes:
        return BlockValidation(
            valid=False,
            reason=f"Block too short (min {_format_minutes(rules.min_minutes)})"
        )

    if duration > rules.max_minutes:
        return BlockValidation(
            valid=False,
            reason=f"Block too long (max {_format_minutes(rules.max_minutes)})"
        )

    if block.start < now:
        return BlockValidation(valid=False, reason="Cannot schedule in the past")

    return BlockValidation(valid=True)


def has_conflict(block: TimeBlock, busy: Sequence[BusyInterval]) -> bool:
    """Check a block against busy intervals (half-open overlap)."""
    return any(interval.overlaps(block.start, block.end) for interval in busy)


def screen_blocks(
    blocks: Sequence[TimeBlock],
    busy: Sequence[BusyInterval],
    now: DateTime,
    rules: Optional[BlockRules] = None
) -> ScreeningResult:
    """
    Split suggested blocks into accepted and rejected ones.

    Input order is preserved in both lists.
    """
    result = ScreeningResult()

    for block in blocks:
        validation = validate_time_block(block, now, rules)
        if not validation.valid:
            result.rejected.append((block, validation.reason))
            continue

        if has_conflict(block, busy):
            result.rejected.append((block, CONFLICT_REASON))
            continue

        result.accepted.append(block)

    return result
