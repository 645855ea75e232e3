# backend/salonpos/config.py
from __future__ import annotations
import os

from flask import current_app, has_app_context


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/salonpos.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///salonpos.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Civil timezone used when a store has none of its own
    STORE_TIMEZONE = os.environ.get("STORE_TIMEZONE", "America/New_York")

    # Approval routing
    APPROVAL_WINDOW_HOURS = int(os.environ.get("APPROVAL_WINDOW_HOURS", "48"))

    # Queue / attendance
    CHECK_IN_WINDOW_MINUTES = int(os.environ.get("CHECK_IN_WINDOW_MINUTES", "15"))
    CLOSING_TOLERANCE_MINUTES = int(os.environ.get("CLOSING_TOLERANCE_MINUTES", "15"))
    DAILY_INACTIVITY_HOURS = float(os.environ.get("DAILY_INACTIVITY_HOURS", "2"))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")


def get_setting(key: str):
    """Read a setting from the active app, falling back to the Config default."""
    if has_app_context() and key in current_app.config:
        return current_app.config[key]
    return getattr(Config, key)
