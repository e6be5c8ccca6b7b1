"""Application configuration objects and helpers."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool = False) -> bool:
    """Interpret environment variable values as booleans."""

    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    """Interpret environment variable values as integers, falling back on bad input."""

    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError:
        return default


class BaseConfig:
    """Base configuration shared across environments."""

    APP_NAME = "Habitify"
    DB_FILENAME = "habitify.db"
    DEFAULT_TIMEZONE = "UTC"
    STREAK_ALERT_INTERVAL_MINUTES = 5

    def __init__(self) -> None:
        self.SECRET_KEY = os.getenv("HABITIFY_SECRET_KEY", "replace-me")
        self.DATA_DIR = self._resolve_data_dir()
        self.DEV_MODE = _env_bool("HABITIFY_DEV_MODE", default=True)
        self.DATABASE_URL = os.getenv("HABITIFY_DATABASE_URL", self._build_sqlite_url())
        self.DISPATCH_TOKEN = os.getenv("HABITIFY_DISPATCH_TOKEN") or None

        # Dispatch tuning
        self.REMINDER_WINDOW_MINUTES = _env_int("REMINDER_WINDOW_MINUTES", 5)
        self.STREAK_RISK_THRESHOLD = _env_int("STREAK_RISK_THRESHOLD", 5)
        self.STREAK_HISTORY_DAYS = _env_int("STREAK_HISTORY_DAYS", 365)
        self.DISPATCH_MAX_WORKERS = max(1, _env_int("DISPATCH_MAX_WORKERS", 1))
        self.DISPATCH_TIME_BUDGET_SECONDS = _env_float("DISPATCH_TIME_BUDGET_SECONDS", 240.0)
        self.CHANNEL_TIMEOUT_SECONDS = _env_float("CHANNEL_TIMEOUT_SECONDS", 10.0)
        self.SQLITE_BUSY_TIMEOUT_MS = _env_int("SQLITE_BUSY_TIMEOUT_MS", 15000)
        self.CLAIM_RETENTION_DAYS = max(1, _env_int("CLAIM_RETENTION_DAYS", 2))
        self.CLAIM_REMINDER_SLOTS = _env_bool("CLAIM_REMINDER_SLOTS", default=True)
        self.REMINDER_SCHEDULER_ENABLED = _env_bool("REMINDER_SCHEDULER_ENABLED", default=False)

        # Channel credentials
        self.PUSH_GATEWAY_URL = os.getenv("PUSH_GATEWAY_URL") or None
        self.VAPID_PUBLIC_KEY = os.getenv("VAPID_PUBLIC_KEY") or None
        self.VAPID_PRIVATE_KEY = os.getenv("VAPID_PRIVATE_KEY") or None
        self.VAPID_SUBJECT = os.getenv("VAPID_SUBJECT", "mailto:noreply@habitify.app")
        self.NTFY_BASE_URL = os.getenv("NTFY_BASE_URL", "https://ntfy.sh").rstrip("/")
        self.NTFY_TOPIC = os.getenv("NTFY_TOPIC") or None
        self.BREVO_API_URL = os.getenv("BREVO_API_URL", "https://api.brevo.com/v3/smtp/email")
        self.BREVO_API_KEY = os.getenv("BREVO_API_KEY") or None
        self.SENDER_EMAIL = os.getenv("SENDER_EMAIL", "noreply@habitify.app")
        self.SENDER_NAME = os.getenv("SENDER_NAME", "Habitify")

        if not self.DEV_MODE and self.SECRET_KEY == "replace-me":
            raise ValueError("HABITIFY_SECRET_KEY must be set in non-dev mode.")
        if self.REMINDER_WINDOW_MINUTES <= 0 or 60 % self.REMINDER_WINDOW_MINUTES:
            raise ValueError("REMINDER_WINDOW_MINUTES must be a positive divisor of 60.")

    def _resolve_data_dir(self) -> Path:
        """Return the directory where the SQLite file and logs live."""

        data_root = os.getenv("HABITIFY_DATA_DIR", "instance")
        path = Path(data_root).expanduser().resolve()
        path.mkdir(parents=True, exist_ok=True)
        return path

    def _build_sqlite_url(self) -> str:
        db_path = self.DATA_DIR / self.DB_FILENAME
        return f"sqlite:///{db_path}"

    def sqlalchemy_engine_options(self) -> dict[str, Any]:
        """Expose engine kwargs for SQLModel to consume."""

        if not self.DATABASE_URL.startswith("sqlite"):
            return {"pool_pre_ping": True}
        # Bounded wait on a locked database so a store call can never block a run.
        connect_args: dict[str, Any] = {"check_same_thread": False, "timeout": self.SQLITE_BUSY_TIMEOUT_MS / 1000}
        return {"connect_args": connect_args}


class DevConfig(BaseConfig):
    """Development configuration using local SQLite."""

    DEBUG = True
    TESTING = False


class TestConfig(BaseConfig):
    """Configuration used by the test-suite and the Flask test client."""

    DEBUG = False
    TESTING = True

    def __init__(self) -> None:
        super().__init__()
        self.REMINDER_SCHEDULER_ENABLED = False
