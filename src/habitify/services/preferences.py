"""Per-user notification channel preferences."""

from __future__ import annotations

from enum import Enum

from ..models.profile import Profile


class Channel(str, Enum):
    """Notification delivery mechanisms."""

    PUSH = "push"
    NTFY = "ntfy"
    EMAIL = "email"


_FLAG_BY_CHANNEL = {
    Channel.PUSH: "notify_push",
    Channel.NTFY: "notify_ntfy",
    Channel.EMAIL: "notify_email",
}


def is_channel_enabled(profile: Profile, channel: Channel) -> bool:
    # Absent flags are enabled so existing users keep receiving newly added channels.
    flag = getattr(profile, _FLAG_BY_CHANNEL[channel], None)
    return flag is None or bool(flag)


def enabled_channels(profile: Profile) -> frozenset[Channel]:
    """Return the set of channels the user has not switched off."""

    return frozenset(channel for channel in Channel if is_channel_enabled(profile, channel))


def channel_flag(channel: Channel) -> str:
    """Return the profile column holding the toggle for ``channel``."""

    return _FLAG_BY_CHANNEL[channel]


__all__ = ["Channel", "channel_flag", "enabled_channels", "is_channel_enabled"]
