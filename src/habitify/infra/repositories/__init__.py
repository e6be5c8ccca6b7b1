"""SQLModel repository implementations."""

from .reminder_store import SQLModelReminderStore

__all__ = ["SQLModelReminderStore"]
