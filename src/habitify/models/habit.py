"""Habit tracking data structures."""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import ClassVar, Iterable, Optional

from sqlalchemy.orm import relationship
from sqlmodel import Field, Relationship, SQLModel

HABIT_KINDS = ("boolean", "measurable")


def parse_schedule(raw: str | None) -> frozenset[int]:
    """Decode the stored comma-separated weekday list (0 = Sunday)."""

    if not raw:
        return frozenset()
    return frozenset(int(part) for part in raw.split(",") if part.strip())


def format_schedule(days: Iterable[int]) -> str:
    """Validate weekday indices and encode them for storage.

    Raises:
        ValueError: if any value falls outside 0..6
    """

    normalized = set()
    for day in days:
        value = int(day)
        if value < 0 or value > 6:
            raise ValueError(f"Weekday index out of range: {day!r}")
        normalized.add(value)
    return ",".join(str(d) for d in sorted(normalized))


class Habit(SQLModel, table=True):
    """A user-defined recurring habit with an optional daily reminder."""

    __tablename__: ClassVar[str] = "habit"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(nullable=False, index=True, max_length=64)
    name: str = Field(nullable=False, max_length=80, index=True)
    icon: str = Field(default="", max_length=16)
    color: str = Field(default="#6366f1", max_length=16)
    kind: str = Field(default="boolean", max_length=16)
    unit: Optional[str] = Field(default=None, max_length=32)
    frequency_days: str = Field(default="", max_length=32)
    target_count: int = Field(default=1, nullable=False)
    reminder_time: Optional[str] = Field(default=None, max_length=8)
    is_archived: bool = Field(default=False, nullable=False, index=True)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    completions: list["Completion"] = Relationship(
        back_populates="habit",
        sa_relationship=relationship(
            "Completion", back_populates="habit", cascade="all, delete-orphan"
        ),
    )

    @property
    def weekly_schedule(self) -> frozenset[int]:
        return parse_schedule(self.frequency_days)

    def set_schedule(self, days: Iterable[int]) -> None:
        """Replace the weekly schedule, rejecting out-of-range weekdays."""

        self.frequency_days = format_schedule(days)


class Completion(SQLModel, table=True):
    """Record that a habit was satisfied on a local calendar day."""

    __tablename__: ClassVar[str] = "completion"

    habit_id: int = Field(foreign_key="habit.id", primary_key=True)
    completed_on: date = Field(primary_key=True, index=True)
    user_id: str = Field(nullable=False, index=True, max_length=64)
    value: int = Field(default=1, nullable=False)
    note: Optional[str] = Field(default=None, max_length=255)

    habit: "Habit" = Relationship(
        back_populates="completions",
        sa_relationship=relationship("Habit", back_populates="completions"),
    )
