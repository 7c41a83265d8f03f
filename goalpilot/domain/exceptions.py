"""
Domain-specific exception hierarchy for the GoalPilot scheduling toolkit.
"""


class GoalPilotError(Exception):
    """Base class for all application-level errors."""


class CalendarAPIError(GoalPilotError):
    """Raised when calendar data cannot be fetched, parsed or written."""


class AuthenticationError(GoalPilotError):
    """Raised when authentication or token handling fails."""
