"""Notification channels and their construction from configuration."""

from __future__ import annotations

from ..config import BaseConfig
from ..services.preferences import Channel
from .base import (
    DeliveryError,
    DeliveryResult,
    Notification,
    Notifier,
    NotifierConfigurationError,
    NotifierError,
)
from .email import EmailNotifier
from .ntfy import NtfyNotifier, user_topic
from .webpush import WebPushNotifier


def build_notifiers(config: BaseConfig) -> dict[Channel, Notifier]:
    """Create one notifier per channel; unconfigured ones fail in ``validate()``."""

    timeout = config.CHANNEL_TIMEOUT_SECONDS
    return {
        Channel.PUSH: WebPushNotifier(
            config.PUSH_GATEWAY_URL,
            config.VAPID_PUBLIC_KEY,
            config.VAPID_PRIVATE_KEY,
            vapid_subject=config.VAPID_SUBJECT,
            timeout=timeout,
        ),
        Channel.NTFY: NtfyNotifier(
            config.NTFY_TOPIC,
            base_url=config.NTFY_BASE_URL,
            timeout=timeout,
        ),
        Channel.EMAIL: EmailNotifier(
            config.BREVO_API_KEY,
            api_url=config.BREVO_API_URL,
            sender_email=config.SENDER_EMAIL,
            sender_name=config.SENDER_NAME,
            timeout=timeout,
        ),
    }


__all__ = [
    "DeliveryError",
    "DeliveryResult",
    "EmailNotifier",
    "Notification",
    "Notifier",
    "NotifierConfigurationError",
    "NotifierError",
    "NtfyNotifier",
    "WebPushNotifier",
    "build_notifiers",
    "user_topic",
]
