"""Blueprint exports."""

from . import reminders

__all__ = ["reminders"]
