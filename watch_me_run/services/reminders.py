"""Reminder policy — when to fire race reminders and under which identity.

Three kinds of reminder:
- owner:    nudge a runner to finish their race details N hours before start
- watching: up to two slots ("first", "second") for races of a watched runner
- featured: one slot for a watched event inside a featured meet

Identities do not encode the time or the lead, so rescheduling replaces the
previous reminder instead of adding a second one. Every schedule call cancels
the identity before adding.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable

from watch_me_run.models import ReminderRequest, UserRace
from watch_me_run.services.meet_status import local_now, localize
from watch_me_run.services.notifications import NotificationCenter

logger = logging.getLogger(__name__)

WATCH_SLOTS = ("first", "second")


# ---------------------------------------------------------------------------
# Identities
# ---------------------------------------------------------------------------

def owner_reminder_id(owner_id: str, race_id: str) -> str:
    return f"owner:{owner_id}:{race_id}:details"


def watching_reminder_id(race_id: str, slot: str) -> str:
    return f"watch:{race_id}:{slot}"


def featured_event_key(featured_meet_id: str, event_id: str) -> str:
    return f"{featured_meet_id}_::{event_id}"


def featured_reminder_id(event_key: str) -> str:
    return f"watch-featured:{event_key}"


# ---------------------------------------------------------------------------
# Pure builders
# ---------------------------------------------------------------------------

def _lead_text(minutes: int) -> str:
    if minutes % 60 == 0:
        hours = minutes // 60
        return "1 hour" if hours == 1 else f"{hours} hours"
    return "1 minute" if minutes == 1 else f"{minutes} minutes"


def _in_future(event_time: datetime, lead: timedelta, now: datetime) -> bool:
    # Instant arithmetic: across a DST change wall-clock math is off by an hour
    return localize(event_time).astimezone(timezone.utc) - lead > localize(now).astimezone(timezone.utc)


def build_owner_reminder(race_id: str, race_name: str, race_start: datetime,
                         owner_id: str, hours_before: int,
                         now: datetime | None = None) -> ReminderRequest | None:
    """Owner "finish your race details" reminder, or None if already too late."""
    hours = max(1, int(hours_before))
    lead = timedelta(hours=hours)
    if not _in_future(race_start, lead, now or local_now()):
        return None
    return ReminderRequest(
        subject_id=race_id,
        subject_name=race_name,
        event_time=race_start,
        lead_time=lead,
        notification_id=owner_reminder_id(owner_id, race_id),
        title="Race coming up",
        body=(
            f"{race_name} begins in {_lead_text(hours * 60)}! Please make sure to update "
            "your race information so friends can follow along."
        ),
    )


def build_watching_reminders(race_id: str, race_name: str, race_start: datetime,
                             first_lead_minutes: int, second_lead_minutes: int,
                             now: datetime | None = None) -> list[ReminderRequest]:
    """Zero, one or two reminders for a watched race. A lead of 0 disables a slot."""
    now = now or local_now()
    requests = []
    for slot, minutes in zip(WATCH_SLOTS, (first_lead_minutes, second_lead_minutes)):
        minutes = int(minutes)
        if minutes <= 0:
            continue
        lead = timedelta(minutes=minutes)
        if not _in_future(race_start, lead, now):
            continue
        requests.append(ReminderRequest(
            subject_id=race_id,
            subject_name=race_name,
            event_time=race_start,
            lead_time=lead,
            notification_id=watching_reminder_id(race_id, slot),
            title="Race starting soon",
            body=f"{race_name} starts in {_lead_text(minutes)}.",
        ))
    return requests


def build_featured_reminder(event_key: str, event_name: str, event_start: datetime,
                            lead_minutes: int,
                            now: datetime | None = None) -> ReminderRequest | None:
    minutes = int(lead_minutes)
    if minutes <= 0:
        return None
    lead = timedelta(minutes=minutes)
    if not _in_future(event_start, lead, now or local_now()):
        return None
    return ReminderRequest(
        subject_id=event_key,
        subject_name=event_name,
        event_time=event_start,
        lead_time=lead,
        notification_id=featured_reminder_id(event_key),
        title="Event starting soon",
        body=f"{event_name} starts in {_lead_text(minutes)}.",
    )


def _result(scheduled=None, cancelled=None, skipped=None) -> dict:
    return {
        "scheduled": list(scheduled or []),
        "cancelled": list(cancelled or []),
        "skipped": list(skipped or []),
    }


# ---------------------------------------------------------------------------
# Scheduler service
# ---------------------------------------------------------------------------

class ReminderScheduler:
    """Applies the reminder policy to a NotificationCenter.

    Results are dicts: {"scheduled": [ids], "cancelled": [ids], "skipped": [reasons]}.
    Nothing here raises for a past fire time or a missing permission.
    """

    def __init__(self, center: NotificationCenter,
                 clock: Callable[[], datetime] | None = None) -> None:
        self.center = center
        self._clock = clock or local_now

    def for_user(self, user_id: str) -> "ReminderScheduler":
        """Same policy and clock over user_id's own notification namespace."""
        return ReminderScheduler(self.center.for_user(user_id), clock=self._clock)

    def now(self) -> datetime:
        return self._clock()

    def _replace(self, identities: list[str], requests: list[ReminderRequest],
                 skipped: list[str]) -> dict:
        cancelled = self.center.remove_pending(identities)
        if not self.center.is_authorized:
            if requests:
                skipped.append("not_authorized")
            return _result(cancelled=cancelled, skipped=skipped)
        scheduled = [r.notification_id for r in requests if self.center.add(r)]
        return _result(scheduled, cancelled, skipped)

    # -- owner ------------------------------------------------------------

    def schedule_owner_reminder(self, race_id: str, race_name: str, race_start: datetime,
                                owner_id: str, hours_before: int) -> dict:
        identity = owner_reminder_id(owner_id, race_id)
        request = build_owner_reminder(race_id, race_name, race_start, owner_id,
                                       hours_before, now=self.now())
        skipped = []
        if request is None:
            logger.info("Skipping owner reminder for %s: reminder time already passed", race_name)
            skipped.append(f"{identity}:past")
        return self._replace([identity], [request] if request else [], skipped)

    def cancel_owner_reminder(self, race_id: str, owner_id: str) -> dict:
        return _result(cancelled=self.center.remove_pending([owner_reminder_id(owner_id, race_id)]))

    # -- watching ---------------------------------------------------------

    def schedule_watching_reminders(self, race_id: str, race_name: str, race_start: datetime,
                                    first_lead_minutes: int, second_lead_minutes: int) -> dict:
        identities = [watching_reminder_id(race_id, slot) for slot in WATCH_SLOTS]
        requests = build_watching_reminders(race_id, race_name, race_start,
                                            first_lead_minutes, second_lead_minutes,
                                            now=self.now())
        built = {r.notification_id for r in requests}
        skipped = [i for i in identities if i not in built]
        return self._replace(identities, requests, skipped)

    def cancel_watching_reminders(self, race_id: str) -> dict:
        identities = [watching_reminder_id(race_id, slot) for slot in WATCH_SLOTS]
        return _result(cancelled=self.center.remove_pending(identities))

    def reschedule_watching_for_races(self, races: Iterable[UserRace], settings) -> dict:
        """Cancel-then-schedule both slots for every future race.

        With watching reminders disabled in settings this only cancels.
        """
        now = self.now()
        total = _result()
        for race in races:
            if race.is_in_past(now):
                continue
            if settings.watching_enabled:
                outcome = self.schedule_watching_reminders(
                    race.id, race.name, race.date,
                    settings.watching_first_minutes, settings.watching_second_minutes,
                )
            else:
                outcome = self.cancel_watching_reminders(race.id)
            for key in total:
                total[key].extend(outcome[key])
        return total

    def cancel_watching_for_races(self, races: Iterable[UserRace]) -> dict:
        now = self.now()
        cancelled = []
        for race in races:
            if race.is_in_past(now):
                continue
            cancelled.extend(self.cancel_watching_reminders(race.id)["cancelled"])
        return _result(cancelled=cancelled)

    # -- featured events --------------------------------------------------

    def schedule_featured_reminder(self, event_key: str, event_name: str,
                                   event_start: datetime, lead_minutes: int) -> dict:
        identity = featured_reminder_id(event_key)
        request = build_featured_reminder(event_key, event_name, event_start,
                                          lead_minutes, now=self.now())
        skipped = [] if request else [f"{identity}:not_due"]
        return self._replace([identity], [request] if request else [], skipped)

    def cancel_featured_reminder(self, event_key: str) -> dict:
        return _result(cancelled=self.center.remove_pending([featured_reminder_id(event_key)]))
