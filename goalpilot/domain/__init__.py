"""
Domain layer - pure scheduling logic.
"""

from .availability_resolver import AvailabilityResolver, find_slots
from .block_validator import BlockRules, BlockValidation, ScreeningResult, screen_blocks, validate_time_block
from .models import AvailabilityWindow, BusyInterval, CandidateSlot, ScheduledBlock, SearchConfig, TimeBlock

__all__ = [
    "AvailabilityResolver",
    "AvailabilityWindow",
    "BlockRules",
    "BlockValidation",
    "BusyInterval",
    "CandidateSlot",
    "ScheduledBlock",
    "ScreeningResult",
    "SearchConfig",
    "TimeBlock",
    "find_slots",
    "screen_blocks",
    "validate_time_block",
]
