"""Reminder store protocol."""

from __future__ import annotations

from datetime import date
from typing import Iterable, Optional, Protocol

from ...models.habit import Completion, Habit
from ...models.notification import PushSubscription
from ...models.profile import Profile
from ...services.preferences import Channel
from ...services.streaks import StreakData


class ReminderStore(Protocol):
    """Read/write queries the reminder engine needs from persistence."""

    def query_active_habits_with_reminder(self) -> list[Habit]:
        """Non-archived habits that have a reminder time."""
        ...

    def query_active_habits(self, user_ids: Iterable[str]) -> list[Habit]:
        """Non-archived habits owned by the given users."""
        ...

    def query_profiles(
        self, user_ids: Optional[Iterable[str]] = None, channel: Optional[Channel] = None
    ) -> list[Profile]:
        """Profiles for ``user_ids`` (all when None), optionally only those with ``channel`` on."""
        ...

    def query_completion(self, habit_id: int, on: date) -> Optional[Completion]:
        """Completion for a habit on a local date, if any."""
        ...

    def query_completion_history(self, user_id: str, since: date) -> list[Completion]:
        """All of a user's completions on or after ``since``."""
        ...

    def query_subscriptions(self, user_ids: Iterable[str]) -> dict[str, list[PushSubscription]]:
        """Push subscriptions grouped by user id."""
        ...

    def delete_subscriptions(self, subscription_ids: Iterable[int]) -> int:
        """Remove expired push endpoints; returns the number deleted."""
        ...

    def claim_slot(self, slot_key: str, local_date: date) -> bool:
        """Atomically mark a reminder slot as taken; False if already claimed."""
        ...

    def release_slot(self, slot_key: str, local_date: date) -> None:
        """Drop a claim so a later invocation may retry the slot."""
        ...

    def prune_claims(self, before: date) -> int:
        """Delete slot claims for local dates before ``before``; returns the number removed."""
        ...

    def set_profile_timezone(self, user_id: str, tz_name: str) -> Profile:
        """Record the time zone detected at login."""
        ...

    def query_owner_timezone(self, habit_id: int) -> Optional[str]:
        """Time zone of the habit owner's profile (UTC without one), or None for an unknown habit."""
        ...

    def get_streak(self, habit_id: int, today: date) -> StreakData:
        """Current/best streak for one habit as of the local ``today``."""
        ...
