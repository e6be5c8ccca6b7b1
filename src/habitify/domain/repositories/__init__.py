"""Repository protocols."""

from .reminder_store import ReminderStore

__all__ = ["ReminderStore"]
