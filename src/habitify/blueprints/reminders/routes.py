"""HTTP trigger surface for the reminder engine."""

from __future__ import annotations

import hmac
from datetime import date, datetime, timezone
from functools import wraps
from typing import Optional

from flask import current_app, jsonify, request

from ...context import AppContext
from ...services.reminder_windows import local_today
from . import bp


def _ctx() -> AppContext:
    return current_app.extensions["habitify"]


def _require_dispatch_token(view):
    """Reject calls without the shared bearer token when one is configured."""

    @wraps(view)
    def wrapper(*args, **kwargs):
        expected = _ctx().config.DISPATCH_TOKEN
        if expected:
            supplied = request.headers.get("Authorization", "")
            if not hmac.compare_digest(supplied, f"Bearer {expected}"):
                return jsonify({"error": "unauthorized"}), 401
        return view(*args, **kwargs)

    return wrapper


def parse_instant(raw: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 instant; naive values are taken as UTC.

    Raises:
        ValueError: when ``raw`` is not a valid timestamp
    """

    if not raw:
        return None
    value = datetime.fromisoformat(raw.strip().replace("Z", "+00:00"))
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def _requested_now() -> Optional[datetime]:
    payload = request.get_json(silent=True) or {}
    return parse_instant(payload.get("now") or request.args.get("now"))


@bp.post("/run")
@_require_dispatch_token
def run_reminders():
    """Dispatch habit reminders whose window contains now."""

    try:
        now = _requested_now()
    except ValueError:
        return jsonify({"error": "invalid_now"}), 400
    summary = _ctx().dispatcher.run(now)
    return jsonify(summary.to_dict())


@bp.post("/streaks/run")
@_require_dispatch_token
def run_streak_alerts():
    """Dispatch evening streak-risk alerts."""

    try:
        now = _requested_now()
    except ValueError:
        return jsonify({"error": "invalid_now"}), 400
    summary = _ctx().dispatcher.run_streak_alerts(now)
    return jsonify(summary.to_dict())


@bp.get("/habits/<int:habit_id>/streak")
def habit_streak(habit_id: int):
    """Return the current/best streak for a habit as of ``today``.

    ``today`` defaults to the calendar date in the owner's profile time zone at
    ``now`` (query parameter, defaults to the current instant). An explicit
    ``?today=YYYY-MM-DD`` overrides the lookup.
    """

    ctx = _ctx()
    raw_today = request.args.get("today")
    if raw_today:
        try:
            today = date.fromisoformat(raw_today)
        except ValueError:
            return jsonify({"error": "invalid_today"}), 400
    else:
        try:
            now = parse_instant(request.args.get("now")) or datetime.now(timezone.utc)
        except ValueError:
            return jsonify({"error": "invalid_now"}), 400
        today = local_today(now, ctx.store.query_owner_timezone(habit_id))
    streak = ctx.store.get_streak(habit_id, today)
    return jsonify({"habit_id": habit_id, "today": today.isoformat(), **streak.to_dict()})


@bp.post("/profiles/<user_id>/timezone")
@_require_dispatch_token
def update_timezone(user_id: str):
    """Store the IANA time zone detected by the client at login."""

    payload = request.get_json(silent=True) or {}
    tz_name = payload.get("timezone") or request.form.get("timezone")
    if not tz_name:
        return jsonify({"error": "timezone_required"}), 400
    profile = _ctx().store.set_profile_timezone(user_id, tz_name)
    return jsonify({"user_id": profile.user_id, "timezone": profile.timezone})
