"""Streak accounting over a weekly habit schedule."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import AbstractSet, Iterable

from .schedule import is_due

DEFAULT_LOOKBACK_DAYS = 365


@dataclass(frozen=True)
class StreakData:
    """Derived streak counts for one habit."""

    current_streak: int = 0
    best_streak: int = 0

    def to_dict(self) -> dict[str, int]:
        return {"currentStreak": self.current_streak, "bestStreak": self.best_streak}


def calculate_streak(
    completion_dates: Iterable[date],
    weekly_schedule: AbstractSet[int],
    today: date,
    *,
    lookback_days: int = DEFAULT_LOOKBACK_DAYS,
) -> StreakData:
    """Return current and best streaks of consecutive scheduled days.

    Walks backwards from ``today`` over ``lookback_days`` days. Days the habit is
    not scheduled on are skipped entirely. An unfinished ``today`` is treated as
    undecided rather than as a break, since the user still has until midnight.
    ``today`` must already be the user's local date.
    """

    completed = set(completion_dates)
    if not completed:
        return StreakData()

    current = 0
    best = 0
    running = 0
    checking_current = True

    for offset in range(lookback_days):
        day = today - timedelta(days=offset)
        if not is_due(weekly_schedule, day):
            continue

        if day in completed:
            running += 1
            continue

        if checking_current:
            if offset == 0:
                continue
            current = running
            checking_current = False
        best = max(best, running)
        running = 0

    if checking_current:
        current = running
    best = max(best, running)

    return StreakData(current_streak=current, best_streak=best)


def is_completed(completion) -> bool:
    """A completion row counts only when it logged some progress (``value > 0``)."""

    return completion is not None and completion.value > 0


def completed_days_by_habit(completions: Iterable) -> dict[int, set[date]]:
    """Group the local dates of counting completions by habit id."""

    days: dict[int, set[date]] = {}
    for completion in completions:
        if is_completed(completion):
            days.setdefault(completion.habit_id, set()).add(completion.completed_on)
    return days


__all__ = [
    "DEFAULT_LOOKBACK_DAYS",
    "StreakData",
    "calculate_streak",
    "completed_days_by_habit",
    "is_completed",
]
