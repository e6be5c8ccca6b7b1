"""Topic-based pub/sub delivery via ntfy."""

from __future__ import annotations

import re
from typing import Any, Mapping, Optional, Sequence

import requests

from ..models.notification import PushSubscription
from ..models.profile import Profile
from ..services.preferences import Channel
from .base import DeliveryResult, Destination, HttpNotifier, NotifierConfigurationError

_NON_ALNUM = re.compile(r"[^a-z0-9]")


def user_topic(topic_prefix: str, email: str) -> str:
    """Derive a user's topic from the configured prefix and their email local part."""

    username = _NON_ALNUM.sub("", email.split("@")[0].lower())
    return f"{topic_prefix}_{username}"


class NtfyNotifier(HttpNotifier):
    """Publishes JSON messages (topic, title, priority, tags) to the ntfy server root."""

    channel = Channel.NTFY

    def __init__(
        self,
        topic_prefix: Optional[str],
        *,
        base_url: str = "https://ntfy.sh",
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        super().__init__(timeout=timeout, session=session)
        self.topic_prefix = topic_prefix
        self.base_url = base_url.rstrip("/")

    def validate(self) -> None:
        if not self.topic_prefix:
            raise NotifierConfigurationError(self.channel, "NTFY_TOPIC is not configured")

    def destinations(
        self, profile: Profile, subscriptions: Sequence[PushSubscription]
    ) -> list[Destination]:
        if not profile.email:
            return []
        topic = self.topic_for(profile.email)
        return [Destination(topic, topic)]

    def topic_for(self, email: str) -> str:
        self.validate()
        return user_topic(self.topic_prefix or "", email)

    def send(
        self,
        destination: str,
        title: str,
        body: str,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> DeliveryResult:
        self.validate()
        meta = metadata or {}
        message: dict[str, Any] = {
            "topic": destination,
            "title": title,
            "message": body,
            "priority": int(meta.get("priority", 3)),
        }
        if meta.get("tags"):
            message["tags"] = list(meta["tags"])
        return self._post(self.base_url, json=message)
