"""Reminder dispatch: decides what is due right now and fans it out to channels.

One pass handles every habit (reminder path) or every user (evening streak-risk
path). Units of work are independent: a failure in one is recorded in the run
summary and never stops the others, and ``run``/``run_streak_alerts`` always
return a summary instead of raising.

Duplicate sends across overlapping or repeated triggers are prevented by the
"already completed today" check plus an atomic claim on the (slot, channel,
local date) triple. A channel that delivered nothing gives its claim back so the
next trigger can try again; nothing is retried inside a run. Claims older than
a couple of days are pruned at the end of every pass.
"""

from __future__ import annotations

import logging
import time as _time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable, Iterable, Mapping, Optional, Sequence, TypeVar

from ..config import BaseConfig
from ..domain.repositories.reminder_store import ReminderStore
from ..models.habit import Habit
from ..models.notification import PushSubscription
from ..models.profile import Profile
from ..notifiers.base import Notification, Notifier, NotifierConfigurationError
from .messages import MessageProvider, RandomMessageProvider, reminder_title, streak_title
from .preferences import Channel, enabled_channels
from .reminder_windows import (
    is_urgent,
    is_within_evening_streak_window,
    is_within_window,
    to_local,
)
from .schedule import habits_due_on, is_due
from .streaks import DEFAULT_LOOKBACK_DAYS, calculate_streak, completed_days_by_habit, is_completed

logger = logging.getLogger("habitify.dispatcher")

_UnitT = TypeVar("_UnitT")

STREAK_RISK_THRESHOLD = 5
CLAIM_RETENTION_DAYS = 2


@dataclass(frozen=True)
class DeliveryFailure:
    """One failed send, kept for the run summary."""

    channel: Channel
    destination: str
    detail: str
    status_code: Optional[int] = None
    permanent: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "channel": self.channel.value,
            "destination": self.destination,
            "detail": self.detail,
            "status_code": self.status_code,
            "permanent": self.permanent,
        }


@dataclass
class UnitOutcome:
    """Result of processing a single habit or user."""

    sent: int = 0
    skipped: bool = False
    deferred: bool = False
    errors: list[str] = field(default_factory=list)
    failures: list[DeliveryFailure] = field(default_factory=list)
    expired_subscription_ids: list[int] = field(default_factory=list)

    @classmethod
    def skip(cls, reason: str, **extra: Any) -> "UnitOutcome":
        logger.debug("Skipped: %s", reason, extra=extra)
        return cls(skipped=True)

    def absorb(self, other: "UnitOutcome") -> None:
        self.sent += other.sent
        self.errors.extend(other.errors)
        self.failures.extend(other.failures)
        self.expired_subscription_ids.extend(other.expired_subscription_ids)


@dataclass
class DispatchSummary:
    """Summary returned by every dispatcher run; safe to log or serialise."""

    kind: str
    processed: int = 0
    sent: int = 0
    skipped: int = 0
    deferred: int = 0
    expired_subscriptions: int = 0
    errors: list[str] = field(default_factory=list)
    failures: list[DeliveryFailure] = field(default_factory=list)

    def merge(self, outcome: UnitOutcome) -> None:
        if outcome.deferred:
            self.deferred += 1
            return
        self.processed += 1
        self.sent += outcome.sent
        if outcome.skipped:
            self.skipped += 1
        self.errors.extend(outcome.errors)
        self.failures.extend(outcome.failures)

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "processed": self.processed,
            "sent": self.sent,
            "errors": list(self.errors),
            "skipped": self.skipped,
            "deferred": self.deferred,
            "expired_subscriptions": self.expired_subscriptions,
            "failures": [failure.to_dict() for failure in self.failures],
        }


def _as_utc(now_utc: Optional[datetime]) -> datetime:
    if now_utc is None:
        return datetime.now(timezone.utc)
    if now_utc.tzinfo is None:
        return now_utc.replace(tzinfo=timezone.utc)
    return now_utc.astimezone(timezone.utc)


class ReminderDispatcher:
    """Periodic reminder and streak-risk dispatcher."""

    def __init__(
        self,
        store: ReminderStore,
        notifiers: Mapping[Channel, Notifier],
        messages: Optional[MessageProvider] = None,
        *,
        window_minutes: int = 5,
        streak_threshold: int = STREAK_RISK_THRESHOLD,
        history_days: int = DEFAULT_LOOKBACK_DAYS,
        max_workers: int = 1,
        time_budget_seconds: Optional[float] = None,
        claim_slots: bool = True,
        claim_retention_days: int = CLAIM_RETENTION_DAYS,
        clock: Callable[[], float] = _time.monotonic,
    ):
        self.store = store
        self.notifiers = dict(notifiers)
        self.messages = messages or RandomMessageProvider()
        self.window_minutes = window_minutes
        self.streak_threshold = streak_threshold
        self.history_days = history_days
        self.max_workers = max(1, max_workers)
        self.time_budget_seconds = time_budget_seconds
        self.claim_slots = claim_slots
        self.claim_retention_days = max(1, claim_retention_days)
        self.clock = clock

    @classmethod
    def from_config(
        cls,
        config: BaseConfig,
        store: ReminderStore,
        notifiers: Mapping[Channel, Notifier],
        messages: Optional[MessageProvider] = None,
    ) -> "ReminderDispatcher":
        return cls(
            store,
            notifiers,
            messages,
            window_minutes=config.REMINDER_WINDOW_MINUTES,
            streak_threshold=config.STREAK_RISK_THRESHOLD,
            history_days=config.STREAK_HISTORY_DAYS,
            max_workers=config.DISPATCH_MAX_WORKERS,
            time_budget_seconds=config.DISPATCH_TIME_BUDGET_SECONDS,
            claim_slots=config.CLAIM_REMINDER_SLOTS,
            claim_retention_days=config.CLAIM_RETENTION_DAYS,
        )

    # ------------------------------------------------------------------
    # Reminder path
    # ------------------------------------------------------------------

    def run(self, now_utc: Optional[datetime] = None) -> DispatchSummary:
        """Send every habit reminder whose window contains ``now_utc``."""

        now = _as_utc(now_utc)
        summary = DispatchSummary(kind="reminders")
        logger.info("Reminder dispatch started", extra={"now_utc": now.isoformat()})

        try:
            habits = self.store.query_active_habits_with_reminder()
            user_ids = sorted({habit.user_id for habit in habits})
            profiles = {p.user_id: p for p in self.store.query_profiles(user_ids)} if user_ids else {}
        except Exception as exc:
            logger.exception("Could not load habits or profiles")
            summary.errors.append(f"store: {exc}")
            return summary

        channels = self._usable_channels(summary)
        subscriptions = self._load_subscriptions(user_ids, channels, summary)

        def process(habit: Habit) -> UnitOutcome:
            return self._process_habit(
                habit,
                profiles.get(habit.user_id),
                subscriptions.get(habit.user_id, []),
                channels,
                now,
            )

        self._run_units(habits, process, summary, label=lambda habit: f"habit {habit.id}")
        self._prune_claims(now, summary)
        return self._finish(summary)

    def _process_habit(
        self,
        habit: Habit,
        profile: Optional[Profile],
        subscriptions: Sequence[PushSubscription],
        channels: frozenset[Channel],
        now: datetime,
    ) -> UnitOutcome:
        if profile is None:
            logger.warning(
                "Habit references a user without a profile",
                extra={"habit_id": habit.id, "user_id": habit.user_id},
            )
            return UnitOutcome(skipped=True)

        if not habit.reminder_time or not is_within_window(
            now, profile.timezone, habit.reminder_time, self.window_minutes
        ):
            return UnitOutcome(skipped=True)

        today = to_local(now, profile.timezone).date()
        if not is_due(habit.weekly_schedule, today):
            return UnitOutcome.skip("not scheduled today", habit_id=habit.id)

        if is_completed(self.store.query_completion(habit.id, today)):
            return UnitOutcome.skip("already completed today", habit_id=habit.id)

        targets = self._targets(profile, subscriptions, channels)
        if not targets:
            return UnitOutcome.skip("no enabled channel", habit_id=habit.id)

        notification = Notification(
            title=reminder_title(habit.icon, habit.name),
            body=self.messages.pick_message(habit.name, 0),
            metadata={
                "habit_id": habit.id,
                "priority": 4,
                "tags": [habit.icon] if habit.icon else [],
                "subject": self.messages.pick_subject(habit.name),
            },
        )
        logger.info(
            "Habit reminder due",
            extra={"habit_id": habit.id, "user_id": habit.user_id, "local_date": today.isoformat()},
        )
        return self._claim_and_deliver(f"reminder:{habit.id}", today, targets, notification, habit.name)

    # ------------------------------------------------------------------
    # Evening streak-risk path
    # ------------------------------------------------------------------

    def run_streak_alerts(self, now_utc: Optional[datetime] = None) -> DispatchSummary:
        """Warn users in their evening slot whose best running streak is at risk."""

        now = _as_utc(now_utc)
        summary = DispatchSummary(kind="streak_alerts")
        logger.info("Streak alert dispatch started", extra={"now_utc": now.isoformat()})

        try:
            profiles = self.store.query_profiles()
        except Exception as exc:
            logger.exception("Could not load profiles")
            summary.errors.append(f"store: {exc}")
            return summary

        channels = self._usable_channels(summary)

        def process(profile: Profile) -> UnitOutcome:
            return self._process_streak_user(profile, channels, now)

        self._run_units(profiles, process, summary, label=lambda profile: f"user {profile.user_id}")
        self._prune_claims(now, summary)
        return self._finish(summary)

    def _process_streak_user(
        self, profile: Profile, channels: frozenset[Channel], now: datetime
    ) -> UnitOutcome:
        if not is_within_evening_streak_window(profile.user_id, now, profile.timezone):
            return UnitOutcome(skipped=True)

        local_now = to_local(now, profile.timezone)
        today = local_now.date()

        due = habits_due_on(self.store.query_active_habits([profile.user_id]), today)
        if not due:
            return UnitOutcome.skip("no habits scheduled today", user_id=profile.user_id)

        history = self.store.query_completion_history(
            profile.user_id, today - timedelta(days=self.history_days)
        )
        completed = completed_days_by_habit(history)

        incomplete = [habit for habit in due if today not in completed.get(habit.id, set())]
        if not incomplete:
            return UnitOutcome.skip("all habits completed", user_id=profile.user_id)

        at_risk: Optional[Habit] = None
        max_streak = 0
        for habit in incomplete:
            streak = calculate_streak(
                completed.get(habit.id, set()),
                habit.weekly_schedule,
                today,
                lookback_days=self.history_days,
            ).current_streak
            if streak > max_streak:
                max_streak = streak
                at_risk = habit

        if at_risk is None or max_streak <= self.streak_threshold:
            return UnitOutcome.skip(
                "no significant streak at risk", user_id=profile.user_id, streak=max_streak
            )

        subscriptions: Sequence[PushSubscription] = []
        if Channel.PUSH in channels:
            subscriptions = self.store.query_subscriptions([profile.user_id]).get(profile.user_id, [])
        targets = self._targets(profile, subscriptions, channels)
        if not targets:
            return UnitOutcome.skip("no enabled channel", user_id=profile.user_id)

        urgent = is_urgent(local_now)
        title = streak_title(at_risk.icon, max_streak)
        notification = Notification(
            title=title,
            body=self.messages.pick_streak_message(max_streak, len(incomplete), urgent),
            metadata={
                "habit_id": at_risk.id,
                "priority": 5 if urgent else 4,
                "tags": ["fire", "warning"],
                "subject": title,
            },
        )
        logger.info(
            "Streak at risk",
            extra={"user_id": profile.user_id, "habit_id": at_risk.id, "streak": max_streak},
        )
        return self._claim_and_deliver(
            f"streak:{profile.user_id}", today, targets, notification, at_risk.name
        )

    # ------------------------------------------------------------------
    # Shared plumbing
    # ------------------------------------------------------------------

    def _usable_channels(self, summary: DispatchSummary) -> frozenset[Channel]:
        """Validate each notifier once per run; misconfigured channels sit the run out."""

        usable = set()
        for channel, notifier in self.notifiers.items():
            try:
                notifier.validate()
            except NotifierConfigurationError as exc:
                logger.error("Channel disabled for this run: %s", exc)
                summary.errors.append(str(exc))
                continue
            usable.add(channel)
        return frozenset(usable)

    def _load_subscriptions(
        self, user_ids: list[str], channels: frozenset[Channel], summary: DispatchSummary
    ) -> dict[str, list[PushSubscription]]:
        if Channel.PUSH not in channels or not user_ids:
            return {}
        try:
            return self.store.query_subscriptions(user_ids)
        except Exception as exc:
            logger.exception("Could not load push subscriptions")
            summary.errors.append(f"subscriptions: {exc}")
            return {}

    def _targets(
        self,
        profile: Profile,
        subscriptions: Sequence[PushSubscription],
        channels: frozenset[Channel],
    ) -> list[tuple[Channel, Any, str]]:
        allowed = enabled_channels(profile) & channels
        targets = []
        for channel in Channel:
            if channel not in allowed:
                continue
            for destination in self.notifiers[channel].destinations(profile, subscriptions):
                targets.append((channel, destination.target, destination.label))
        return targets

    def _claim_and_deliver(
        self,
        slot_key: str,
        local_date: date,
        targets: list[tuple[Channel, Any, str]],
        notification: Notification,
        subject_name: str,
    ) -> UnitOutcome:
        """Deliver on each channel whose ``<slot>:<channel>`` claim this invocation wins.

        A channel that sent nothing gives its claim back, so the next trigger
        retries it without repeating the channels that already delivered.
        """

        by_channel: dict[Channel, list[tuple[Channel, Any, str]]] = {}
        for target in targets:
            by_channel.setdefault(target[0], []).append(target)

        outcome = UnitOutcome()
        claimed = 0
        for channel, channel_targets in by_channel.items():
            channel_slot = f"{slot_key}:{channel.value}"
            if self.claim_slots and not self.store.claim_slot(channel_slot, local_date):
                logger.debug("Channel slot already claimed", extra={"slot": channel_slot})
                continue
            claimed += 1
            delivered = self._deliver(channel_targets, notification, subject_name)
            if self.claim_slots and delivered.sent == 0:
                self._release(channel_slot, local_date, delivered)
            outcome.absorb(delivered)

        if not claimed:
            return UnitOutcome.skip("slot already claimed", slot=slot_key)
        return outcome

    def _release(self, slot: str, local_date: date, outcome: UnitOutcome) -> None:
        try:
            self.store.release_slot(slot, local_date)
        except Exception as exc:
            logger.exception("Could not release reminder slot", extra={"slot": slot})
            outcome.errors.append(f"release {slot}: {exc}")

    def _prune_claims(self, now: datetime, summary: DispatchSummary) -> None:
        """Drop claims old enough that no time zone can still be living that date."""

        if not self.claim_slots:
            return
        try:
            self.store.prune_claims(now.date() - timedelta(days=self.claim_retention_days))
        except Exception as exc:
            logger.exception("Could not prune reminder claims")
            summary.errors.append(f"claims cleanup: {exc}")

    def _deliver(
        self,
        targets: list[tuple[Channel, Any, str]],
        notification: Notification,
        subject_name: str,
    ) -> UnitOutcome:
        outcome = UnitOutcome()
        for channel, target, label in targets:
            try:
                result = self.notifiers[channel].send(
                    target, notification.title, notification.body, notification.metadata
                )
            except Exception as exc:
                logger.exception("Notifier raised", extra={"channel": channel.value})
                outcome.failures.append(DeliveryFailure(channel, label, str(exc)))
                outcome.errors.append(f"{subject_name}: {channel.value} {exc}")
                continue

            if result.ok:
                outcome.sent += 1
                logger.info("Sent %s notification", channel.value, extra={"destination": label})
                continue

            outcome.failures.append(
                DeliveryFailure(channel, label, result.detail, result.status_code, result.permanent)
            )
            if result.permanent and isinstance(target, PushSubscription) and target.id is not None:
                outcome.expired_subscription_ids.append(target.id)
                logger.info("Push subscription gone", extra={"subscription_id": target.id})
            else:
                outcome.errors.append(f"{subject_name}: {channel.value} delivery failed ({result.detail})")
                logger.warning(
                    "Delivery failed",
                    extra={"channel": channel.value, "destination": label, "status": result.status_code},
                )
        return outcome

    def _run_units(
        self,
        units: Sequence[_UnitT],
        process: Callable[[_UnitT], UnitOutcome],
        summary: DispatchSummary,
        *,
        label: Callable[[_UnitT], str],
    ) -> None:
        """Process units sequentially or on a thread pool, within the time budget."""

        deadline = None
        if self.time_budget_seconds is not None:
            deadline = self.clock() + self.time_budget_seconds

        def guarded(unit: _UnitT) -> UnitOutcome:
            if deadline is not None and self.clock() >= deadline:
                return UnitOutcome(deferred=True)
            try:
                return process(unit)
            except Exception as exc:
                logger.exception("Unit of work failed", extra={"unit": label(unit)})
                return UnitOutcome(errors=[f"{label(unit)}: {exc}"])

        expired: list[int] = []
        outcomes: Iterable[UnitOutcome]
        if self.max_workers > 1 and len(units) > 1:
            with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="habitify-dispatch") as pool:
                outcomes = list(pool.map(guarded, units))
        else:
            outcomes = (guarded(unit) for unit in units)

        for outcome in outcomes:
            summary.merge(outcome)
            expired.extend(outcome.expired_subscription_ids)

        if expired:
            try:
                summary.expired_subscriptions = self.store.delete_subscriptions(expired)
            except Exception as exc:
                logger.exception("Could not delete expired subscriptions")
                summary.errors.append(f"subscriptions cleanup: {exc}")

    def _finish(self, summary: DispatchSummary) -> DispatchSummary:
        if summary.deferred:
            logger.warning("Time budget exhausted", extra={"deferred": summary.deferred})
        logger.info(
            "Dispatch finished",
            extra={
                "kind": summary.kind,
                "processed": summary.processed,
                "sent": summary.sent,
                "errors": len(summary.errors),
                "expired_subscriptions": summary.expired_subscriptions,
            },
        )
        return summary


__all__ = [
    "DeliveryFailure",
    "DispatchSummary",
    "ReminderDispatcher",
    "STREAK_RISK_THRESHOLD",
    "UnitOutcome",
]
