"""Pytest configuration and shared fixtures for Habitify tests.

This module provides database fixtures, test data factories, and fake notifiers
for exercising the reminder engine without touching real channels or the app database.
"""

from __future__ import annotations

import tempfile
from datetime import date
from pathlib import Path
from typing import Any, Callable, Mapping, Optional, Sequence

import pytest
from sqlmodel import Session, SQLModel, create_engine

# Import all models to ensure they're registered with SQLModel metadata
from habitify.models import Completion, Habit, Profile, PushSubscription
from habitify.infra.repositories import SQLModelReminderStore
from habitify.notifiers.base import DeliveryResult, Destination, NotifierConfigurationError
from habitify.services.preferences import Channel

# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture(scope="function")
def db_engine():
    """Create an isolated SQLite database file for each test.

    Yields:
        Engine: SQLModel engine connected to test database
    """
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = Path(f.name)

    engine = create_engine(
        f"sqlite:///{db_path}", echo=False, connect_args={"check_same_thread": False}
    )
    SQLModel.metadata.create_all(engine)

    yield engine

    engine.dispose()
    db_path.unlink(missing_ok=True)


@pytest.fixture(scope="function")
def db_session(db_engine):
    """Create a database session for a single test."""
    session = Session(db_engine, expire_on_commit=False)
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


@pytest.fixture(scope="function")
def session_factory(db_engine):
    """Session factory matching the Callable[[], Session] repositories expect."""

    def factory():
        return Session(db_engine, expire_on_commit=False)

    return factory


@pytest.fixture
def store(session_factory) -> SQLModelReminderStore:
    return SQLModelReminderStore(session_factory)


# =============================================================================
# Test Data Factories
# =============================================================================


@pytest.fixture
def profile_factory(db_session):
    """Factory for creating test profiles."""

    def _create_profile(
        user_id: str = "user-1",
        email: Optional[str] = "casey@example.com",
        timezone: str = "UTC",
        notify_push: Optional[bool] = None,
        notify_ntfy: Optional[bool] = None,
        notify_email: Optional[bool] = None,
    ) -> Profile:
        profile = Profile(
            user_id=user_id,
            email=email,
            timezone=timezone,
            notify_push=notify_push,
            notify_ntfy=notify_ntfy,
            notify_email=notify_email,
        )
        db_session.add(profile)
        db_session.commit()
        db_session.refresh(profile)
        return profile

    return _create_profile


@pytest.fixture
def habit_factory(db_session):
    """Factory for creating test habits.

    Returns:
        Callable: Function that creates and persists Habit instances
    """

    def _create_habit(
        name: str = "Test Habit",
        user_id: str = "user-1",
        reminder_time: Optional[str] = None,
        schedule: Sequence[int] = (),
        icon: str = "*",
        is_archived: bool = False,
    ) -> Habit:
        habit = Habit(
            user_id=user_id,
            name=name,
            icon=icon,
            reminder_time=reminder_time,
            is_archived=is_archived,
        )
        habit.set_schedule(schedule)
        db_session.add(habit)
        db_session.commit()
        db_session.refresh(habit)
        return habit

    return _create_habit


@pytest.fixture
def completion_factory(db_session):
    """Factory for recording completions."""

    def _complete(habit: Habit, *days: date, value: int = 1) -> list[Completion]:
        rows = []
        for day in days:
            row = Completion(habit_id=habit.id, user_id=habit.user_id, completed_on=day, value=value)
            db_session.add(row)
            rows.append(row)
        db_session.commit()
        return rows

    return _complete


@pytest.fixture
def subscription_factory(db_session):
    def _create_subscription(user_id: str = "user-1", endpoint: str = "https://push.example/1") -> PushSubscription:
        sub = PushSubscription(user_id=user_id, endpoint=endpoint, p256dh="key", auth="secret")
        db_session.add(sub)
        db_session.commit()
        db_session.refresh(sub)
        return sub

    return _create_subscription


# =============================================================================
# Fake Notifiers
# =============================================================================


class FakeNotifier:
    """Records sends; ``responder`` decides each result."""

    def __init__(
        self,
        channel: Channel,
        *,
        configured: bool = True,
        responder: Optional[Callable[[Any], DeliveryResult]] = None,
    ):
        self.channel = channel
        self.configured = configured
        self.responder = responder
        self.sent: list[dict[str, Any]] = []

    def destinations(self, profile: Profile, subscriptions: Sequence[PushSubscription]) -> list[Destination]:
        if self.channel is Channel.PUSH:
            return [Destination(sub, sub.endpoint) for sub in subscriptions]
        if not profile.email:
            return []
        if self.channel is Channel.NTFY:
            return [Destination(f"habits_{profile.user_id}", f"habits_{profile.user_id}")]
        return [Destination(profile.email, profile.email)]

    def validate(self) -> None:
        if not self.configured:
            raise NotifierConfigurationError(self.channel, "not configured")

    def send(self, destination, title, body, metadata: Optional[Mapping[str, Any]] = None) -> DeliveryResult:
        self.sent.append(
            {"destination": destination, "title": title, "body": body, "metadata": dict(metadata or {})}
        )
        if self.responder is not None:
            return self.responder(destination)
        return DeliveryResult.success(201)


class FixedMessages:
    """Deterministic message provider."""

    def pick_message(self, habit_name: str, streak: int = 0) -> str:
        return f"Time for {habit_name}"

    def pick_subject(self, habit_name: str) -> str:
        return f"{habit_name} is waiting"

    def pick_streak_message(self, streak: int, incomplete_count: int, urgent: bool) -> str:
        return f"{streak} days at risk ({incomplete_count} open, urgent={urgent})"


@pytest.fixture
def fake_notifiers() -> dict[Channel, FakeNotifier]:
    return {channel: FakeNotifier(channel) for channel in Channel}


@pytest.fixture
def fixed_messages() -> FixedMessages:
    return FixedMessages()


@pytest.fixture
def notifier_factory() -> Callable[..., FakeNotifier]:
    """Build a fake notifier with custom configuration or responder."""
    return FakeNotifier


# =============================================================================
# Flask Application
# =============================================================================


@pytest.fixture
def app(tmp_path, monkeypatch, fake_notifiers, fixed_messages):
    """Application wired to a temporary data dir and fake channels."""
    from habitify import create_app

    monkeypatch.setenv("HABITIFY_DATA_DIR", str(tmp_path))
    monkeypatch.delenv("HABITIFY_DATABASE_URL", raising=False)
    monkeypatch.setenv("HABITIFY_DISPATCH_TOKEN", "s3cret")
    app = create_app("testing", notifiers=fake_notifiers, messages=fixed_messages)
    yield app
    app.extensions["habitify"].engine.dispose()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def app_ctx(app):
    """The habitify AppContext behind ``app``."""
    return app.extensions["habitify"]
