# backend/backspace/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/backspace.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///backspace.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Reporting windows (0=Monday ... 5=Saturday, 6=Sunday)
    REPORT_WEEK_START = int(os.environ.get("REPORT_WEEK_START", "5"))
    TOP_CUSTOMERS_LIMIT = int(os.environ.get("TOP_CUSTOMERS_LIMIT", "5"))
    RECENT_ACTIVITY_LIMIT = int(os.environ.get("RECENT_ACTIVITY_LIMIT", "10"))
    # Business clock for report buckets, in minutes east of UTC (Cairo: 120 or 180)
    REPORT_TZ_OFFSET_MINUTES = int(os.environ.get("REPORT_TZ_OFFSET_MINUTES", "0"))
