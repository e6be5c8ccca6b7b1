"""Background scheduler that polls the reminder dispatcher."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

from apscheduler.schedulers.background import BackgroundScheduler as APScheduler
from apscheduler.triggers.interval import IntervalTrigger

if TYPE_CHECKING:
    from .context import AppContext

logger = logging.getLogger("habitify.scheduler")


class ReminderScheduler:
    """Runs the reminder and streak-alert passes on fixed intervals."""

    def __init__(self, ctx: AppContext):
        """Initialize the scheduler with app context.

        Args:
            ctx: Application context with the dispatcher and config
        """
        self.ctx = ctx
        self.scheduler: Optional[APScheduler] = None

    def start(self) -> None:
        """Start the background scheduler."""
        if self.scheduler is not None:
            logger.warning("Scheduler already running")
            return

        config = self.ctx.config
        self.scheduler = APScheduler(timezone="UTC")

        self.scheduler.add_job(
            func=self._run_reminders,
            trigger=IntervalTrigger(minutes=config.REMINDER_WINDOW_MINUTES),
            id="habit_reminders",
            name="Habit Reminders",
            replace_existing=True,
            # A late pass must not overlap the next one; the next trigger picks up anything missed.
            max_instances=1,
            coalesce=True,
        )
        logger.info("Scheduled habit reminders every %s minutes", config.REMINDER_WINDOW_MINUTES)

        self.scheduler.add_job(
            func=self._run_streak_alerts,
            trigger=IntervalTrigger(minutes=config.STREAK_ALERT_INTERVAL_MINUTES),
            id="streak_alerts",
            name="Streak Risk Alerts",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        logger.info("Scheduled streak alerts every %s minutes", config.STREAK_ALERT_INTERVAL_MINUTES)

        self.scheduler.start()
        logger.info("Reminder scheduler started")

    def stop(self) -> None:
        """Stop the background scheduler gracefully."""
        if self.scheduler is not None:
            self.scheduler.shutdown(wait=True)
            self.scheduler = None
            logger.info("Reminder scheduler stopped")

    @property
    def running(self) -> bool:
        return self.scheduler is not None and self.scheduler.running

    def job_ids(self) -> list[str]:
        if self.scheduler is None:
            return []
        return [job.id for job in self.scheduler.get_jobs()]

    def _run_reminders(self) -> None:
        summary = self.ctx.dispatcher.run()
        logger.info("Scheduled reminder pass complete", extra=summary.to_dict())

    def _run_streak_alerts(self) -> None:
        summary = self.ctx.dispatcher.run_streak_alerts()
        logger.info("Scheduled streak pass complete", extra=summary.to_dict())


def create_scheduler(ctx: AppContext, *, auto_start: bool = False) -> ReminderScheduler:
    """Create and optionally start a reminder scheduler.

    Args:
        ctx: Application context
        auto_start: Whether to start the scheduler immediately

    Returns:
        ReminderScheduler instance
    """
    scheduler = ReminderScheduler(ctx)
    if auto_start:
        scheduler.start()
    return scheduler
