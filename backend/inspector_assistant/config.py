"""
Runtime configuration.

Values come from the environment (a `.env` file is loaded by `main.create_app`).
They are read on each call so that a freshly loaded `.env` and test
overrides via `monkeypatch.setenv` are always picked up.
"""

import os
from typing import Optional


def _get_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}")


def _get_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def is_production() -> bool:
    return os.getenv("APP_ENV", "development").lower() == "production"


def log_level() -> str:
    return os.getenv("LOG_LEVEL", "INFO")


def app_timezone() -> str:
    """IANA timezone used to decide what "today" means for an inspector."""
    return os.getenv("APP_TIMEZONE", "UTC")


# Sessions / LM context

def session_window_hours() -> int:
    return _get_int("SESSION_WINDOW_HOURS", 24)


def history_max_turns() -> int:
    """Number of trailing history entries replayed to the LM (0 = all)."""
    return _get_int("HISTORY_MAX_TURNS", 40)


def intent_model() -> str:
    return os.getenv("INTENT_MODEL", "gpt-4o-mini")


def openai_api_key() -> Optional[str]:
    return os.getenv("OPENAI_API_KEY")


def action_results_in_reply() -> bool:
    return _get_bool("ACTION_RESULTS_IN_REPLY", False)


# Wassenger

def wassenger_api_url() -> str:
    return os.getenv("WASSENGER_API_URL", "https://api.wassenger.com/v1")


def wassenger_api_key() -> Optional[str]:
    return os.getenv("WASSENGER_API_KEY")


def wassenger_device_id() -> Optional[str]:
    return os.getenv("WASSENGER_DEVICE_ID")


def webhook_secret() -> Optional[str]:
    return os.getenv("WASSENGER_WEBHOOK_SECRET")


def webhook_signature_header() -> str:
    return os.getenv("WEBHOOK_SIGNATURE_HEADER", "X-Hub-Signature-256")


# Delivery de-duplication

def redis_url() -> str:
    return os.getenv("REDIS_URL", "redis://localhost:6379")


def dedup_ttl_seconds() -> int:
    return _get_int("DEDUP_TTL_SECONDS", 24 * 60 * 60)


# Scheduled notifiers

def admin_contact() -> Optional[str]:
    return os.getenv("ADMIN_CONTACT")


def stale_lead_hours() -> int:
    return _get_int("STALE_LEAD_HOURS", 48)


def reports_base_url() -> str:
    return os.getenv("REPORTS_BASE_URL", "https://reports.propertystewards.com/report").rstrip("/")
