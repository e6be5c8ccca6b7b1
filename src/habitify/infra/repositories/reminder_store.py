"""SQLModel implementation of the reminder store."""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import date, timedelta
from typing import Callable, Iterable, Optional

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, col, select

from ...models.habit import Completion, Habit
from ...models.notification import PushSubscription, ReminderClaim
from ...models.profile import Profile
from ...services.preferences import Channel, channel_flag
from ...services.reminder_windows import UTC_NAME, is_valid_timezone
from ...services.streaks import (
    DEFAULT_LOOKBACK_DAYS,
    StreakData,
    calculate_streak,
    completed_days_by_habit,
)

logger = logging.getLogger("habitify.store")


class SQLModelReminderStore:
    """SQLModel-based reminder store implementation."""

    def __init__(self, session_factory: Callable[[], Session]):
        """Initialize with a session factory."""
        self.session_factory = session_factory

    def query_active_habits_with_reminder(self) -> list[Habit]:
        with self.session_factory() as session:
            statement = (
                select(Habit)
                .where(Habit.is_archived == False)  # noqa: E712
                .where(col(Habit.reminder_time).is_not(None))
                .order_by(Habit.id)  # type: ignore
            )
            rows = list(session.exec(statement).all())
            session.expunge_all()
            return rows

    def query_active_habits(self, user_ids: Iterable[str]) -> list[Habit]:
        ids = list(user_ids)
        if not ids:
            return []
        with self.session_factory() as session:
            statement = (
                select(Habit)
                .where(Habit.is_archived == False)  # noqa: E712
                .where(col(Habit.user_id).in_(ids))
                .order_by(Habit.id)  # type: ignore
            )
            rows = list(session.exec(statement).all())
            session.expunge_all()
            return rows

    def query_profiles(
        self, user_ids: Optional[Iterable[str]] = None, channel: Optional[Channel] = None
    ) -> list[Profile]:
        with self.session_factory() as session:
            statement = select(Profile)
            if user_ids is not None:
                ids = list(user_ids)
                if not ids:
                    return []
                statement = statement.where(col(Profile.user_id).in_(ids))
            if channel is not None:
                # Unset toggles count as enabled.
                flag = getattr(Profile, channel_flag(channel))
                statement = statement.where(or_(flag == True, flag.is_(None)))  # noqa: E712
            rows = list(session.exec(statement.order_by(Profile.user_id)).all())  # type: ignore
            session.expunge_all()
            return rows

    def query_completion(self, habit_id: int, on: date) -> Optional[Completion]:
        with self.session_factory() as session:
            obj = session.exec(
                select(Completion)
                .where(Completion.habit_id == habit_id)
                .where(Completion.completed_on == on)
            ).first()
            if obj:
                session.expunge(obj)
            return obj

    def query_completion_history(self, user_id: str, since: date) -> list[Completion]:
        with self.session_factory() as session:
            statement = (
                select(Completion)
                .where(Completion.user_id == user_id)
                .where(Completion.completed_on >= since)
                .order_by(Completion.completed_on)  # type: ignore
            )
            rows = list(session.exec(statement).all())
            session.expunge_all()
            return rows

    def query_subscriptions(self, user_ids: Iterable[str]) -> dict[str, list[PushSubscription]]:
        ids = list(user_ids)
        grouped: dict[str, list[PushSubscription]] = defaultdict(list)
        if not ids:
            return {}
        with self.session_factory() as session:
            rows = session.exec(
                select(PushSubscription)
                .where(col(PushSubscription.user_id).in_(ids))
                .order_by(PushSubscription.id)  # type: ignore
            ).all()
            for row in rows:
                grouped[row.user_id].append(row)
            session.expunge_all()
        return dict(grouped)

    def delete_subscriptions(self, subscription_ids: Iterable[int]) -> int:
        ids = sorted(set(subscription_ids))
        if not ids:
            return 0
        with self.session_factory() as session:
            rows = session.exec(
                select(PushSubscription).where(col(PushSubscription.id).in_(ids))
            ).all()
            for row in rows:
                session.delete(row)
            session.commit()
            deleted = len(rows)
        logger.info("Deleted expired push subscriptions", extra={"count": deleted, "ids": ids})
        return deleted

    def claim_slot(self, slot_key: str, local_date: date) -> bool:
        with self.session_factory() as session:
            session.add(ReminderClaim(slot_key=slot_key, local_date=local_date))
            try:
                session.commit()
            except IntegrityError:
                session.rollback()
                return False
            return True

    def release_slot(self, slot_key: str, local_date: date) -> None:
        with self.session_factory() as session:
            claim = session.get(ReminderClaim, (slot_key, local_date))
            if claim:
                session.delete(claim)
                session.commit()

    def set_profile_timezone(self, user_id: str, tz_name: str) -> Profile:
        if not is_valid_timezone(tz_name):
            logger.warning("Rejected time zone %r for user %s", tz_name, user_id)
            tz_name = UTC_NAME
        with self.session_factory() as session:
            profile = session.get(Profile, user_id)
            if profile is None:
                profile = Profile(user_id=user_id, timezone=tz_name)
            else:
                profile.timezone = tz_name
            session.add(profile)
            session.commit()
            session.refresh(profile)
            session.expunge(profile)
            return profile

    def prune_claims(self, before: date) -> int:
        with self.session_factory() as session:
            rows = session.exec(
                select(ReminderClaim).where(ReminderClaim.local_date < before)
            ).all()
            for row in rows:
                session.delete(row)
            session.commit()
            pruned = len(rows)
        if pruned:
            logger.info("Pruned reminder claims", extra={"count": pruned, "before": before.isoformat()})
        return pruned

    def query_owner_timezone(self, habit_id: int) -> Optional[str]:
        with self.session_factory() as session:
            habit = session.get(Habit, habit_id)
            if habit is None:
                return None
            profile = session.get(Profile, habit.user_id)
            return profile.timezone if profile is not None else UTC_NAME

    def get_streak(self, habit_id: int, today: date) -> StreakData:
        since = today - timedelta(days=DEFAULT_LOOKBACK_DAYS)
        with self.session_factory() as session:
            habit = session.get(Habit, habit_id)
            if habit is None:
                return StreakData()
            rows = session.exec(
                select(Completion)
                .where(Completion.habit_id == habit_id)
                .where(Completion.completed_on >= since)
            ).all()
            days = completed_days_by_habit(rows).get(habit_id, set())
            return calculate_streak(days, habit.weekly_schedule, today)
