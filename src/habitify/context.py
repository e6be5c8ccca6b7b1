"""Application context for dependency injection."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional

from sqlmodel import Session

from .config import BaseConfig
from .infra.database import bootstrap_database
from .infra.repositories import SQLModelReminderStore
from .notifiers import Notifier, build_notifiers
from .services.dispatcher import ReminderDispatcher
from .services.messages import MessageProvider
from .services.preferences import Channel


@dataclass
class AppContext:
    """Centralized wiring of configuration, persistence, channels and the dispatcher."""

    config: BaseConfig
    engine: Any
    session_factory: Callable[[], Session]
    store: SQLModelReminderStore
    notifiers: Mapping[Channel, Notifier]
    dispatcher: ReminderDispatcher


def create_app_context(
    config: Optional[BaseConfig] = None,
    *,
    notifiers: Optional[Mapping[Channel, Notifier]] = None,
    messages: Optional[MessageProvider] = None,
) -> AppContext:
    """Create and initialize the application context.

    ``notifiers`` and ``messages`` may be injected (tests, alternative transports);
    otherwise channels are built from configuration.
    """

    if config is None:
        config = BaseConfig()

    engine, session_factory = bootstrap_database(config)
    store = SQLModelReminderStore(session_factory)
    channel_notifiers = notifiers if notifiers is not None else build_notifiers(config)
    dispatcher = ReminderDispatcher.from_config(config, store, channel_notifiers, messages)

    return AppContext(
        config=config,
        engine=engine,
        session_factory=session_factory,
        store=store,
        notifiers=channel_notifiers,
        dispatcher=dispatcher,
    )
