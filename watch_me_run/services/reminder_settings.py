"""Per-user reminder settings, stored in wmr_reminder_settings."""

import logging
from dataclasses import asdict, dataclass

from watch_me_run import supabase_client as db
from watch_me_run.config import (
    OWNER_REMINDER_ENABLED,
    OWNER_REMINDER_HOURS_BEFORE,
    WATCHING_FIRST_MINUTES_BEFORE,
    WATCHING_REMINDERS_ENABLED,
    WATCHING_SECOND_MINUTES_BEFORE,
)

logger = logging.getLogger(__name__)

# Choices offered to users; other values are still accepted
OWNER_HOURS_OPTIONS = [6, 12, 18, 24]
WATCHING_FIRST_MINUTES_OPTIONS = [0, 5, 10, 20, 30, 60]
WATCHING_SECOND_HOURS_OPTIONS = [0, 6, 12, 24, 48]


@dataclass
class ReminderSettings:
    owner_enabled: bool = OWNER_REMINDER_ENABLED
    owner_hours_before: int = OWNER_REMINDER_HOURS_BEFORE
    watching_enabled: bool = WATCHING_REMINDERS_ENABLED
    watching_first_minutes: int = WATCHING_FIRST_MINUTES_BEFORE
    watching_second_minutes: int = WATCHING_SECOND_MINUTES_BEFORE

    def normalized(self) -> "ReminderSettings":
        """Owner lead at least 1 hour; watching leads at least 0 (0 = off)."""
        return ReminderSettings(
            owner_enabled=bool(self.owner_enabled),
            owner_hours_before=max(1, int(self.owner_hours_before)),
            watching_enabled=bool(self.watching_enabled),
            watching_first_minutes=max(0, int(self.watching_first_minutes)),
            watching_second_minutes=max(0, int(self.watching_second_minutes)),
        )

    @classmethod
    def from_record(cls, row: dict | None) -> "ReminderSettings":
        defaults = cls()
        if not row:
            return defaults
        values = {k: row[k] for k in asdict(defaults) if row.get(k) is not None}
        try:
            return cls(**values).normalized()
        except (TypeError, ValueError):
            logger.warning("Ignoring malformed reminder settings row: %s", row)
            return defaults

    def to_record(self) -> dict:
        return asdict(self.normalized())


def get_reminder_settings(user_id: str) -> ReminderSettings:
    """Stored settings, or defaults when absent or unreadable."""
    try:
        row = db.get_reminder_settings(user_id)
    except Exception as e:
        logger.warning("Could not load reminder settings for %s: %s", user_id, e)
        return ReminderSettings()
    return ReminderSettings.from_record(row)


def save_reminder_settings(user_id: str, settings: ReminderSettings) -> dict:
    try:
        db.upsert_reminder_settings(user_id, settings.to_record())
    except Exception as e:
        logger.warning("Could not save reminder settings for %s: %s", user_id, e)
        return {"success": False, "message": str(e)}
    return {"success": True}
