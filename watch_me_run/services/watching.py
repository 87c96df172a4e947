"""Watching orchestration — keeps watching reminders in step with who is watched.

Per signed-in user:
- follows the WatchingStore snapshot
- runs a FriendRaceStore for each watched friend
- on every friend race-list change, cancel-then-reschedules both watching
  slots for each of that friend's future races
- on unwatch, cancels both slots for every future race of that friend
"""

import logging
import threading

from apscheduler.schedulers.base import BaseScheduler

from watch_me_run.config import FEATURED_EVENT_LEAD_MINUTES
from watch_me_run.models import UserRace, parse_timestamp
from watch_me_run.services.races import load_races
from watch_me_run.services.reminder_settings import ReminderSettings
from watch_me_run.services.reminders import ReminderScheduler, featured_event_key
from watch_me_run.services.stores import FriendRaceStore, WatchingStore

logger = logging.getLogger(__name__)


class WatchingService:

    def __init__(self, user_id: str, reminders: ReminderScheduler,
                 settings: ReminderSettings,
                 scheduler: BaseScheduler | None = None,
                 store: WatchingStore | None = None,
                 featured_lead_minutes: int = FEATURED_EVENT_LEAD_MINUTES) -> None:
        self.user_id = user_id
        self.reminders = reminders
        self.settings = settings.normalized()
        self.store = store or WatchingStore(scheduler)
        self.featured_lead_minutes = featured_lead_minutes
        self._scheduler = scheduler
        # friend_id -> (store, unsubscribe)
        self._friends: dict[str, tuple] = {}
        # friend_id -> ids of future races reminders were last applied to
        self._applied: dict[str, set[str]] = {}
        self._unsubscribe = None
        # Snapshot callbacks and request handlers both mutate _friends and _applied
        self._lock = threading.RLock()

    # -- lifecycle --------------------------------------------------------

    def start(self) -> None:
        if not self.user_id:
            return
        if self._unsubscribe is None:
            self._unsubscribe = self.store.subscribe(self._on_watching_changed)
        self.store.start_listening(self.user_id)

    def stop(self) -> None:
        """Tear down listeners. Pending reminders are left in place."""
        with self._lock:
            if self._unsubscribe is not None:
                self._unsubscribe()
                self._unsubscribe = None
            for friend_id in list(self._friends):
                self._drop_friend(friend_id, cancel=False)
            self.store.stop_listening()

    @property
    def watched_friend_ids(self) -> set[str]:
        return self.store.watched_friend_ids

    def friend_races(self, friend_id: str) -> list[UserRace]:
        entry = self._friends.get(friend_id)
        return entry[0].races if entry else []

    # -- snapshot handlers ------------------------------------------------

    def _on_watching_changed(self, store: WatchingStore) -> None:
        with self._lock:
            watched = store.watched_friend_ids
            for friend_id in watched - set(self._friends):
                self._follow_friend(friend_id)
            for friend_id in set(self._friends) - watched:
                self._drop_friend(friend_id, cancel=True)

    def _follow_friend(self, friend_id: str) -> None:
        friend_store = FriendRaceStore(self._scheduler, scope=self.user_id)
        unsubscribe = friend_store.subscribe(
            lambda s, fid=friend_id: self._on_friend_races(fid, s.races)
        )
        self._friends[friend_id] = (friend_store, unsubscribe)
        friend_store.start_listening(friend_id)

    def _drop_friend(self, friend_id: str, cancel: bool) -> None:
        entry = self._friends.pop(friend_id, None)
        if entry is None:
            return
        friend_store, unsubscribe = entry
        unsubscribe()
        applied = self._applied.pop(friend_id, set())
        if cancel:
            self.reminders.cancel_watching_for_races(friend_store.races)
            for race_id in applied:
                self.reminders.cancel_watching_reminders(race_id)
        friend_store.stop_listening()

    def _on_friend_races(self, friend_id: str, races: list[UserRace]) -> dict:
        with self._lock:
            now = self.reminders.now()
            future = [r for r in races if not r.is_in_past(now)]
            current_ids = {r.id for r in future}
            for race_id in self._applied.get(friend_id, set()) - current_ids:
                self.reminders.cancel_watching_reminders(race_id)
            self._applied[friend_id] = current_ids
            return self.reminders.reschedule_watching_for_races(future, self.settings)

    # -- toggles ----------------------------------------------------------

    def toggle_friend(self, friend_id: str) -> dict:
        if not self.user_id:
            return {"success": False, "message": "Not signed in"}

        if friend_id not in self.store.watched_friend_ids:
            self.reminders.center.request_authorization_if_needed()

        with self._lock:
            was_followed = friend_id in self._friends
            result = self.store.toggle_friend_watching(self.user_id, friend_id)
            if not result["success"]:
                return result

            # The snapshot handler usually follows or drops the friend already
            if result["watching"]:
                if friend_id not in self._friends:
                    self._follow_friend(friend_id)
            elif friend_id in self._friends:
                self._drop_friend(friend_id, cancel=True)
            elif not was_followed:
                self.reminders.cancel_watching_for_races(load_races(friend_id))
            return result

    def toggle_featured_event(self, featured_meet_id: str, event_id: str,
                              event_name: str, event_start=None) -> dict:
        if not self.user_id:
            return {"success": False, "message": "Not signed in"}

        key = featured_event_key(featured_meet_id, event_id)
        if key in self.store.watched_featured_event_keys:
            self.reminders.cancel_featured_reminder(key)
        else:
            self.reminders.center.request_authorization_if_needed()

        result = self.store.toggle_featured_event_watching(
            self.user_id, key, featured_meet_id, event_id, event_name, event_start,
        )
        result["event_key"] = key
        if not result["success"] or not result["watching"]:
            return result

        if event_start is None:
            logger.info("No start time for featured event %s; skipping reminder", event_name)
        elif self.settings.watching_enabled:
            result["reminders"] = self.reminders.schedule_featured_reminder(
                key, event_name, event_start, self.featured_lead_minutes,
            )
        return result

    # -- settings ---------------------------------------------------------

    def apply_settings(self, settings: ReminderSettings) -> None:
        """Reschedule every watched subject under new settings."""
        with self._lock:
            self.settings = settings.normalized()
            for friend_id, (friend_store, _) in list(self._friends.items()):
                self._on_friend_races(friend_id, friend_store.races)

        for key, row in self.store.watched_featured_events.items():
            start = parse_timestamp(row.get("event_start"))
            if start is None:
                continue
            if self.settings.watching_enabled:
                self.reminders.schedule_featured_reminder(
                    key, row.get("event_name") or "", start, self.featured_lead_minutes,
                )
            else:
                self.reminders.cancel_featured_reminder(key)
