"""Transactional email delivery through the Brevo HTTP API."""

from __future__ import annotations

from typing import Any, Mapping, Optional, Sequence

import requests

from ..models.notification import PushSubscription
from ..models.profile import Profile
from ..services.preferences import Channel
from .base import DeliveryResult, Destination, HttpNotifier, NotifierConfigurationError


class EmailNotifier(HttpNotifier):
    channel = Channel.EMAIL

    def __init__(
        self,
        api_key: Optional[str],
        *,
        api_url: str = "https://api.brevo.com/v3/smtp/email",
        sender_email: str = "noreply@habitify.app",
        sender_name: str = "Habitify",
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        super().__init__(timeout=timeout, session=session)
        self.api_key = api_key
        self.api_url = api_url
        self.sender_email = sender_email
        self.sender_name = sender_name

    def destinations(
        self, profile: Profile, subscriptions: Sequence[PushSubscription]
    ) -> list[Destination]:
        if not profile.email:
            return []
        return [Destination(profile.email, profile.email)]

    def validate(self) -> None:
        if not self.api_key:
            raise NotifierConfigurationError(self.channel, "BREVO_API_KEY is not set")

    def send(
        self,
        destination: str,
        title: str,
        body: str,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> DeliveryResult:
        self.validate()
        return self._post(
            self.api_url,
            headers={
                "accept": "application/json",
                "api-key": self.api_key or "",
                "content-type": "application/json",
            },
            json={
                "sender": {"name": self.sender_name, "email": self.sender_email},
                "to": [{"email": destination}],
                "subject": (metadata or {}).get("subject", title),
                "textContent": body,
            },
        )
