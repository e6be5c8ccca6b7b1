"""Push subscriptions and reminder delivery claims."""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import ClassVar, Optional

from sqlmodel import Field, SQLModel


class PushSubscription(SQLModel, table=True):
    """Browser push endpoint registered by a user's device."""

    __tablename__: ClassVar[str] = "push_subscription"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(nullable=False, index=True, max_length=64)
    endpoint: str = Field(nullable=False, unique=True, max_length=1024)
    p256dh: str = Field(default="", max_length=255)
    auth: str = Field(default="", max_length=255)

    def as_descriptor(self) -> dict[str, object]:
        return {"endpoint": self.endpoint, "keys": {"p256dh": self.p256dh, "auth": self.auth}}


class ReminderClaim(SQLModel, table=True):
    """Marker row proving a reminder slot was taken for a local day.

    The composite primary key makes the claim an insert-if-absent write, so two
    overlapping dispatcher invocations cannot both send the same reminder.
    """

    __tablename__: ClassVar[str] = "reminder_claim"

    slot_key: str = Field(primary_key=True, max_length=96)
    local_date: date = Field(primary_key=True)
    claimed_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
