"""Time-zone aware dispatch windows for reminders.

The dispatcher is polled every few minutes, so reminders are bucketed rather
than matched to the exact minute: local wall-clock minutes are truncated to the
window size and a reminder fires when its target time falls inside the bucket.
A trigger that runs a few seconds late still lands in the same bucket.

Streak-risk alerts use a per-user evening slot derived from a stable hash of the
user id, which spreads the alerts across 18:00-23:00 while keeping each user's
slot identical from one day to the next.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger("habitify.reminder_windows")

UTC_NAME = "UTC"
EVENING_START_HOUR = 18
EVENING_END_HOUR = 23
EVENING_TOLERANCE_MINUTES = 7
URGENT_FROM_HOUR = 21


def resolve_timezone(name: str | None) -> ZoneInfo:
    """Return the IANA zone for ``name``, falling back to UTC when unknown."""

    tz_name = (name or UTC_NAME).strip() or UTC_NAME
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown time zone %r, using UTC", tz_name)
        return ZoneInfo(UTC_NAME)


def is_valid_timezone(name: str | None) -> bool:
    if not name:
        return False
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return False
    return True


def to_local(now_utc: datetime, tz_name: str | None) -> datetime:
    """Convert an instant to the user's wall-clock time (naive input is taken as UTC)."""

    if now_utc.tzinfo is None:
        now_utc = now_utc.replace(tzinfo=timezone.utc)
    return now_utc.astimezone(resolve_timezone(tz_name))


def local_today(now_utc: datetime, tz_name: str | None) -> date:
    """Return the calendar date the user is currently living in."""

    return to_local(now_utc, tz_name).date()


def parse_reminder_time(value: str) -> time:
    """Parse ``HH:MM`` or ``HH:MM:SS`` into a :class:`datetime.time`.

    Raises:
        ValueError: for malformed or out-of-range values
    """

    parts = value.strip().split(":")
    if len(parts) not in (2, 3):
        raise ValueError(f"Invalid reminder time: {value!r}")
    hour, minute = int(parts[0]), int(parts[1])
    second = int(parts[2]) if len(parts) == 3 else 0
    return time(hour, minute, second)


def window_start(local_now: datetime, window_minutes: int) -> int:
    """Return the start of the current bucket as minutes since local midnight."""

    truncated = (local_now.minute // window_minutes) * window_minutes
    return local_now.hour * 60 + truncated


def is_within_window(
    now_utc: datetime,
    tz_name: str | None,
    target_local_time: str,
    window_minutes: int = 5,
) -> bool:
    """Return True when ``target_local_time`` lies in the user's current window.

    The window is ``[start, start + window_minutes)`` where ``start`` is the local
    time truncated down to a multiple of ``window_minutes``.
    """

    if window_minutes <= 0:
        raise ValueError("window_minutes must be positive")
    target = parse_reminder_time(target_local_time)
    local_now = to_local(now_utc, tz_name)

    start_seconds = window_start(local_now, window_minutes) * 60
    end_seconds = start_seconds + window_minutes * 60
    target_seconds = target.hour * 3600 + target.minute * 60 + target.second
    return start_seconds <= target_seconds < end_seconds


def user_hash(user_id: str) -> int:
    """Stable, non-cryptographic hash of a user id (sum of code points)."""

    return sum(ord(char) for char in str(user_id))


def evening_slot(user_id: str) -> time:
    """Return the user's fixed evening alert time inside 18:00-23:00."""

    value = user_hash(user_id)
    span = EVENING_END_HOUR - EVENING_START_HOUR
    return time(EVENING_START_HOUR + value % span, (value * 7) % 60)


def is_within_evening_streak_window(
    user_id: str,
    now_utc: datetime,
    tz_name: str | None,
    tolerance_minutes: int = EVENING_TOLERANCE_MINUTES,
) -> bool:
    """Return True when the user's local time is within the tolerance of their slot."""

    local_now = to_local(now_utc, tz_name)
    if local_now.hour < EVENING_START_HOUR or local_now.hour >= EVENING_END_HOUR:
        return False

    slot = evening_slot(user_id)
    now_minutes = local_now.hour * 60 + local_now.minute
    slot_minutes = slot.hour * 60 + slot.minute
    return abs(now_minutes - slot_minutes) <= tolerance_minutes


def is_urgent(local_now: datetime) -> bool:
    """Late-evening alerts are sent with raised priority."""

    return local_now.hour >= URGENT_FROM_HOUR


__all__ = [
    "evening_slot",
    "is_urgent",
    "is_valid_timezone",
    "is_within_evening_streak_window",
    "is_within_window",
    "local_today",
    "parse_reminder_time",
    "resolve_timezone",
    "to_local",
    "user_hash",
    "window_start",
]
