"""User profile with time zone and notification preferences."""

from __future__ import annotations

from typing import ClassVar, Optional

from sqlmodel import Field, SQLModel


class Profile(SQLModel, table=True):
    """Per-user settings read by the reminder engine.

    Channel toggles are nullable: a missing flag means the user never saw the
    setting, which is treated as enabled.
    """

    __tablename__: ClassVar[str] = "profile"

    user_id: str = Field(primary_key=True, max_length=64)
    email: Optional[str] = Field(default=None, max_length=255)
    timezone: str = Field(default="UTC", nullable=False, max_length=64)
    notify_push: Optional[bool] = Field(default=None)
    notify_ntfy: Optional[bool] = Field(default=None)
    notify_email: Optional[bool] = Field(default=None)
