"""Browser push delivery through a push gateway."""

from __future__ import annotations

from typing import Any, Mapping, Optional, Sequence

import requests

from ..models.notification import PushSubscription
from ..models.profile import Profile
from ..services.preferences import Channel
from .base import DeliveryResult, Destination, HttpNotifier, NotifierConfigurationError


class WebPushNotifier(HttpNotifier):
    """Hands the subscription and payload to a gateway that encrypts and delivers it.

    The gateway relays the push service's status, so a 404/410 means the browser
    subscription no longer exists.
    """

    channel = Channel.PUSH

    def __init__(
        self,
        gateway_url: Optional[str],
        vapid_public_key: Optional[str],
        vapid_private_key: Optional[str],
        *,
        vapid_subject: str = "mailto:noreply@habitify.app",
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        super().__init__(timeout=timeout, session=session)
        self.gateway_url = gateway_url
        self.vapid_public_key = vapid_public_key
        self.vapid_private_key = vapid_private_key
        self.vapid_subject = vapid_subject

    def destinations(
        self, profile: Profile, subscriptions: Sequence[PushSubscription]
    ) -> list[Destination]:
        return [Destination(sub, sub.endpoint) for sub in subscriptions]

    def validate(self) -> None:
        if not self.vapid_public_key or not self.vapid_private_key:
            raise NotifierConfigurationError(self.channel, "VAPID keys are not configured")
        if not self.gateway_url:
            raise NotifierConfigurationError(self.channel, "PUSH_GATEWAY_URL is not configured")

    def send(
        self,
        destination: PushSubscription,
        title: str,
        body: str,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> DeliveryResult:
        self.validate()
        meta = metadata or {}
        payload = {
            "title": title,
            "body": body,
            "icon": meta.get("icon_url", "/pwa-192x192.png"),
            "data": {"habitId": meta.get("habit_id"), "url": "/"},
        }
        return self._post(
            self.gateway_url,
            json={
                "subscription": destination.as_descriptor(),
                "payload": payload,
                "vapid": {
                    "subject": self.vapid_subject,
                    "publicKey": self.vapid_public_key,
                    "privateKey": self.vapid_private_key,
                },
            },
        )
