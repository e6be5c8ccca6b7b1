"""SQLModel table exports."""

from .habit import Completion, Habit
from .notification import PushSubscription, ReminderClaim
from .profile import Profile

__all__ = [
    "Completion",
    "Habit",
    "Profile",
    "PushSubscription",
    "ReminderClaim",
]
