"""Notifier contract, delivery results, and error types."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any, Mapping, NamedTuple, Optional, Protocol, Sequence

import requests

from ..models.notification import PushSubscription
from ..models.profile import Profile
from ..services.preferences import Channel

PERMANENT_STATUS_CODES = frozenset({404, 410})


class NotifierError(Exception):
    """Base class for notifier failures."""


class NotifierConfigurationError(NotifierError):
    """Raised when a channel is missing credentials or endpoints."""

    def __init__(self, channel: Channel, message: str):
        super().__init__(f"{channel.value}: {message}")
        self.channel = channel


class DeliveryError(NotifierError):
    """A single delivery attempt failed."""

    def __init__(self, message: str, *, status_code: Optional[int] = None, permanent: bool = False):
        super().__init__(message)
        self.status_code = status_code
        self.permanent = permanent


class Destination(NamedTuple):
    """A concrete delivery target plus a printable label for logs and summaries."""

    target: Any
    label: str


@dataclass(frozen=True)
class DeliveryResult:
    """Outcome of one ``send`` call."""

    ok: bool
    status_code: Optional[int] = None
    detail: str = ""
    permanent: bool = False

    @classmethod
    def success(cls, status_code: Optional[int] = None) -> "DeliveryResult":
        return cls(ok=True, status_code=status_code)

    @classmethod
    def failure(cls, error: DeliveryError) -> "DeliveryResult":
        return cls(
            ok=False,
            status_code=error.status_code,
            detail=str(error),
            permanent=error.permanent,
        )


@dataclass
class Notification:
    """Title/body pair plus channel-specific hints (priority, tags, habit id)."""

    title: str
    body: str
    metadata: dict[str, Any] = field(default_factory=dict)


class Notifier(Protocol):
    """Delivers a notification to one destination on one channel."""

    channel: Channel

    def destinations(
        self, profile: Profile, subscriptions: Sequence[PushSubscription]
    ) -> list[Destination]:
        """Where this channel should deliver for ``profile`` (may be empty)."""
        ...

    def validate(self) -> None:
        """Raise :class:`NotifierConfigurationError` when the channel cannot send."""
        ...

    def send(
        self,
        destination: Any,
        title: str,
        body: str,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> DeliveryResult:
        ...


class HttpNotifier:
    """Shared plumbing for channels that deliver over HTTP with ``requests``."""

    channel: Channel

    def __init__(self, *, timeout: float = 10.0, session: Optional[requests.Session] = None):
        self.timeout = timeout
        self._shared_session = session
        self._local = threading.local()

    @property
    def session(self) -> requests.Session:
        """The injected session, otherwise one per thread (dispatch workers share notifiers)."""

        if self._shared_session is not None:
            return self._shared_session
        session = getattr(self._local, "session", None)
        if session is None:
            session = requests.Session()
            self._local.session = session
        return session

    def _post(self, url: str, **kwargs: Any) -> DeliveryResult:
        """Single bounded attempt; transport errors become failed results."""

        try:
            response = self.session.post(url, timeout=self.timeout, **kwargs)
        except requests.RequestException as exc:
            return DeliveryResult.failure(DeliveryError(f"{type(exc).__name__}: {exc}"))
        return self._classify(response)

    def _classify(self, response: requests.Response) -> DeliveryResult:
        if 200 <= response.status_code < 300:
            return DeliveryResult.success(response.status_code)
        return DeliveryResult.failure(
            DeliveryError(
                f"HTTP {response.status_code}: {response.text[:500]}",
                status_code=response.status_code,
                permanent=response.status_code in PERMANENT_STATUS_CODES,
            )
        )


__all__ = [
    "DeliveryError",
    "DeliveryResult",
    "Destination",
    "HttpNotifier",
    "Notification",
    "Notifier",
    "NotifierConfigurationError",
    "NotifierError",
    "PERMANENT_STATUS_CODES",
]
