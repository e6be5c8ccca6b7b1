"""Service module exports."""

from . import messages, preferences, reminder_windows, schedule, streaks

__all__ = [
    "messages",
    "preferences",
    "reminder_windows",
    "schedule",
    "streaks",
]
