"""Watch Me Run configuration — loaded from environment variables."""

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv(Path(__file__).resolve().parent.parent / ".env")

REPO_ROOT = Path(__file__).resolve().parent.parent
PACKAGE_DIR = Path(__file__).resolve().parent

# Bundled fallback meet list
MEETS_CSV_PATH = Path(os.environ.get("MEETS_CSV_PATH", str(PACKAGE_DIR / "data" / "meets.csv")))

# Supabase
SUPABASE_URL = os.environ.get("SUPABASE_URL", "")
SUPABASE_SERVICE_KEY = os.environ.get("SUPABASE_SERVICE_KEY", "")

# Bearer secret for the API (empty = open, local dev)
API_SECRET = os.environ.get("API_SECRET", "")

# Server
HOST = os.environ.get("HOST", "0.0.0.0")
PORT = int(os.environ.get("PORT", "8000"))

# Zone used for calendar-day arithmetic and for CSV dates (which carry no zone)
LOCAL_TIMEZONE = os.environ.get("LOCAL_TIMEZONE", "America/New_York")

# Refresh cadence
MEET_REFRESH_MINUTES = int(os.environ.get("MEET_REFRESH_MINUTES", "60"))
STORE_POLL_SECONDS = int(os.environ.get("STORE_POLL_SECONDS", "30"))

# Answer given when the notification permission is first requested
NOTIFICATIONS_ENABLED = os.environ.get("NOTIFICATIONS_ENABLED", "true").lower() in ("1", "true", "yes")

# Reminder defaults (per-user overrides live in wmr_reminder_settings)
OWNER_REMINDER_ENABLED = True
OWNER_REMINDER_HOURS_BEFORE = int(os.environ.get("OWNER_REMINDER_HOURS_BEFORE", "6"))
WATCHING_REMINDERS_ENABLED = True
WATCHING_FIRST_MINUTES_BEFORE = int(os.environ.get("WATCHING_FIRST_MINUTES_BEFORE", "20"))
WATCHING_SECOND_MINUTES_BEFORE = int(os.environ.get("WATCHING_SECOND_MINUTES_BEFORE", "0"))
FEATURED_EVENT_LEAD_MINUTES = int(os.environ.get("FEATURED_EVENT_LEAD_MINUTES", "20"))
