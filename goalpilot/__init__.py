"""
GoalPilot - availability resolution and scheduling helpers for student calendars.
"""

__version__ = "0.1.0"
