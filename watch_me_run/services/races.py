"""Owner race flow — persist a race, then keep its setup reminder in step."""

import logging
from typing import Iterable

from watch_me_run import supabase_client as db
from watch_me_run.models import UserRace
from watch_me_run.services.reminder_settings import ReminderSettings
from watch_me_run.services.reminders import ReminderScheduler
from watch_me_run.services.stores import UserRaceStore

logger = logging.getLogger(__name__)


def _apply_owner_reminder(reminders: ReminderScheduler, uid: str, race: UserRace,
                          settings: ReminderSettings) -> dict:
    if settings.owner_enabled:
        return reminders.schedule_owner_reminder(
            race.id, race.name, race.date, uid, settings.owner_hours_before,
        )
    return reminders.cancel_owner_reminder(race.id, uid)


def save_race(store: UserRaceStore, reminders: ReminderScheduler, uid: str | None,
              race: UserRace, settings: ReminderSettings) -> dict:
    """Upsert the race and (re)schedule or cancel its owner reminder.

    Without a signed-in uid this is a no-op.
    """
    if not uid:
        logger.info("save_race: not signed in, ignoring %s", race.id)
        return {"success": False, "message": "Not signed in"}

    result = store.add_or_update(race, uid)
    if not result["success"]:
        return result

    if settings.owner_enabled:
        reminders.center.request_authorization_if_needed()
    result["reminders"] = _apply_owner_reminder(reminders, uid, race, settings)
    return result


def delete_race(store: UserRaceStore, reminders: ReminderScheduler, uid: str | None,
                race_id: str) -> dict:
    if not uid:
        return {"success": False, "message": "Not signed in"}
    cancelled = reminders.cancel_owner_reminder(race_id, uid)
    result = store.delete(race_id, uid)
    result["reminders"] = cancelled
    return result


def apply_owner_settings(reminders: ReminderScheduler, uid: str,
                         races: Iterable[UserRace], settings: ReminderSettings) -> dict:
    """Re-apply the owner reminder to every future race after a settings change."""
    now = reminders.now()
    total = {"scheduled": [], "cancelled": [], "skipped": []}
    for race in races:
        if race.is_in_past(now):
            continue
        outcome = _apply_owner_reminder(reminders, uid, race, settings)
        for key in total:
            total[key].extend(outcome[key])
    return total


def load_races(uid: str) -> list[UserRace]:
    """One-shot read of a user's races. Errors yield []."""
    try:
        return [UserRace.from_record(r) for r in db.get_user_races(uid)]
    except Exception as e:
        logger.warning("Could not load races for %s: %s", uid, e)
        return []
