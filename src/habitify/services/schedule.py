"""Weekly schedule matching for habits."""

from __future__ import annotations

from datetime import date
from typing import AbstractSet, Iterable, TypeVar

ALL_WEEKDAYS = frozenset(range(7))

_HabitT = TypeVar("_HabitT")


def weekday_index(day: date) -> int:
    """Return the weekday of ``day`` numbered 0 = Sunday .. 6 = Saturday."""

    return day.isoweekday() % 7


def is_daily(weekly_schedule: AbstractSet[int]) -> bool:
    """An empty or full schedule means the habit is due every day."""

    return not weekly_schedule or ALL_WEEKDAYS.issubset(weekly_schedule)


def is_due(weekly_schedule: AbstractSet[int], day: date) -> bool:
    """Return True when a habit with ``weekly_schedule`` is due on the local ``day``."""

    if is_daily(weekly_schedule):
        return True
    return weekday_index(day) in weekly_schedule


def habits_due_on(habits: Iterable[_HabitT], day: date) -> list[_HabitT]:
    """Filter habits (anything exposing ``weekly_schedule``) to those due on ``day``."""

    return [habit for habit in habits if is_due(habit.weekly_schedule, day)]  # type: ignore[attr-defined]


__all__ = ["ALL_WEEKDAYS", "habits_due_on", "is_daily", "is_due", "weekday_index"]
