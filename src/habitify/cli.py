"""Flask CLI commands for Habitify."""

from __future__ import annotations

import json

import click


def _parse_now(value: str | None):
    from .blueprints.reminders.routes import parse_instant

    try:
        return parse_instant(value)
    except ValueError as exc:
        raise click.BadParameter(f"not an ISO-8601 instant: {value}") from exc


def init_app(app) -> None:
    """Register CLI commands on the Flask app."""

    @app.cli.command("habitify-send-reminders")
    @click.option("--now", "now_raw", default=None, help="Override the current instant (ISO-8601)")
    def send_reminders(now_raw: str | None) -> None:
        """Run one habit reminder pass and print the summary."""

        summary = app.extensions["habitify"].dispatcher.run(_parse_now(now_raw))
        click.echo(json.dumps(summary.to_dict(), indent=2))

    @app.cli.command("habitify-send-streak-reminders")
    @click.option("--now", "now_raw", default=None, help="Override the current instant (ISO-8601)")
    def send_streak_reminders(now_raw: str | None) -> None:
        """Run one evening streak-risk pass and print the summary."""

        summary = app.extensions["habitify"].dispatcher.run_streak_alerts(_parse_now(now_raw))
        click.echo(json.dumps(summary.to_dict(), indent=2))
