"""Habitify reminder and streak service: application factory."""

from __future__ import annotations

from importlib import import_module
from typing import Iterable, Mapping, Optional

from flask import Flask

from . import cli as _cli
from .config import BaseConfig, DevConfig, TestConfig

_CONFIG_MAP = {
    "development": DevConfig,
    "testing": TestConfig,
    "default": BaseConfig,
}


def _resolve_config(name: str | None) -> type[BaseConfig]:
    """Return the config class for the provided environment name."""

    if not name:
        return BaseConfig
    return _CONFIG_MAP.get(name.lower(), BaseConfig)


def _blueprint_paths() -> Iterable[str]:
    yield "habitify.blueprints.reminders"


def create_app(
    config_name: str | None = None,
    *,
    notifiers: Optional[Mapping] = None,
    messages=None,
) -> Flask:
    """Create and configure the Flask application instance."""

    from .context import create_app_context
    from .logging_config import setup_logging

    app = Flask(__name__, instance_relative_config=True)
    config_obj = _resolve_config(config_name)()
    app.config.from_object(config_obj)
    app.config["HABITIFY_CONFIG"] = config_obj

    setup_logging(config_obj)
    ctx = create_app_context(config_obj, notifiers=notifiers, messages=messages)
    app.extensions["habitify"] = ctx

    _register_blueprints(app)
    _cli.init_app(app)

    if config_obj.REMINDER_SCHEDULER_ENABLED:
        from .scheduler import create_scheduler

        app.extensions["habitify_scheduler"] = create_scheduler(ctx, auto_start=True)

    return app


def _register_blueprints(app: Flask) -> None:
    """Import and register all blueprints declared in `_blueprint_paths`."""

    for dotted_path in _blueprint_paths():
        module = import_module(dotted_path)
        app.register_blueprint(getattr(module, "bp"))


__all__ = ["create_app"]
