"""
Configuration for the movie club service.
All values come from the environment (optionally a .env file).
"""

import os
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

load_dotenv()

# Database path configuration
DB_PATH = os.getenv("DB_PATH", "./data/movieclub.db")

DEBUG = os.getenv("DEBUG", "false").lower() == "true"

# Scheduling (0=Monday .. 6=Sunday)
SCHEDULE_WEEKDAY = int(os.getenv("SCHEDULE_WEEKDAY", "0"))
SCHEDULE_SEED = os.getenv("SCHEDULE_SEED")
EARLY_PROMOTION_ENABLED = os.getenv("EARLY_PROMOTION_ENABLED", "true").lower() == "true"

# Reminders and notifications
VOTE_REMINDER_AFTER_HOURS = int(os.getenv("VOTE_REMINDER_AFTER_HOURS", "48"))
NOTIFY_WEBHOOK_URL = os.getenv("NOTIFY_WEBHOOK_URL")
NOTIFY_TIMEOUT_SEC = int(os.getenv("NOTIFY_TIMEOUT_SEC", "5"))

# Trigger endpoints and admin surface
CRON_SECRET = os.getenv("CRON_SECRET")
ADMIN_TOKEN = os.getenv("ADMIN_TOKEN")
HEARTBEAT_INTERVAL_SEC = int(os.getenv("HEARTBEAT_INTERVAL_SEC", "3600"))

VERSION = "1.0.0"


def get_db_path() -> str:
    """Database path, re-read so tests can point at a temporary file."""
    return os.getenv("DB_PATH", DB_PATH)


def ensure_db_directory():
    """Ensure the database directory exists."""
    Path(get_db_path()).parent.mkdir(parents=True, exist_ok=True)


def debug_enabled() -> bool:
    """Check if debug mode is enabled."""
    return os.getenv("DEBUG", "false").lower() == "true"


def get_schedule_weekday() -> int:
    return int(os.getenv("SCHEDULE_WEEKDAY", str(SCHEDULE_WEEKDAY)))


def get_schedule_seed() -> Optional[int]:
    """Seed for the batch shuffle, None for OS entropy."""
    raw = os.getenv("SCHEDULE_SEED", SCHEDULE_SEED or "")
    return int(raw) if raw.strip() else None


def is_early_promotion_enabled() -> bool:
    return os.getenv("EARLY_PROMOTION_ENABLED", "true").lower() == "true"


def get_vote_reminder_hours() -> int:
    return int(os.getenv("VOTE_REMINDER_AFTER_HOURS", str(VOTE_REMINDER_AFTER_HOURS)))


def get_webhook_url() -> Optional[str]:
    return os.getenv("NOTIFY_WEBHOOK_URL") or None


def get_cron_secret() -> Optional[str]:
    return os.getenv("CRON_SECRET") or None


def get_admin_token() -> Optional[str]:
    return os.getenv("ADMIN_TOKEN") or None


def get_heartbeat_interval() -> int:
    """Get heartbeat interval in seconds."""
    return int(os.getenv("HEARTBEAT_INTERVAL_SEC", str(HEARTBEAT_INTERVAL_SEC)))


def validate_config() -> List[str]:
    """Validate configuration and return any issues."""
    issues = []

    try:
        weekday = get_schedule_weekday()
        if not 0 <= weekday <= 6:
            issues.append(f"SCHEDULE_WEEKDAY must be 0-6: {weekday}")
    except ValueError:
        issues.append(f"Invalid SCHEDULE_WEEKDAY: {os.getenv('SCHEDULE_WEEKDAY')}")

    try:
        get_schedule_seed()
    except ValueError:
        issues.append(f"Invalid SCHEDULE_SEED: {os.getenv('SCHEDULE_SEED')}")

    try:
        if get_vote_reminder_hours() < 0:
            issues.append("VOTE_REMINDER_AFTER_HOURS must be >= 0")
    except ValueError:
        issues.append(f"Invalid VOTE_REMINDER_AFTER_HOURS: {os.getenv('VOTE_REMINDER_AFTER_HOURS')}")

    try:
        if get_heartbeat_interval() < 1:
            issues.append("HEARTBEAT_INTERVAL_SEC must be >= 1")
    except ValueError:
        issues.append(f"Invalid HEARTBEAT_INTERVAL_SEC: {os.getenv('HEARTBEAT_INTERVAL_SEC')}")

    return issues
