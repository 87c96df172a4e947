"""Live stores — read-through caches over Supabase tables.

A store is pointed at a key (user id, or "all" for global lists) with
start_listening(). It fetches a full snapshot immediately and then on an
APScheduler interval job; every successful fetch replaces the snapshot
wholesale and notifies subscribers. There is no diffing and no local
reconciliation: the last snapshot from the server wins.

Writes go straight to Supabase and return a result dict. The cache catches up
on its next fetch.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.base import BaseScheduler

from watch_me_run import supabase_client as db
from watch_me_run.config import MEET_REFRESH_MINUTES, MEETS_CSV_PATH, STORE_POLL_SECONDS
from watch_me_run.models import (
    FeaturedEvent,
    FeaturedMeet,
    Meet,
    UserDetails,
    UserRace,
    sort_meets,
    to_timestamp,
)
from watch_me_run.services.meet_csv import load_meets_csv
from watch_me_run.services.meet_status import MeetStatus

logger = logging.getLogger(__name__)


class LiveStore:
    """Base class: snapshot state, subscription, and refresh job wiring."""

    name = "store"

    def __init__(self, scheduler: BaseScheduler | None = None,
                 poll_seconds: int = STORE_POLL_SECONDS,
                 scope: str | None = None) -> None:
        self._scheduler = scheduler
        self._poll_seconds = poll_seconds
        # Owner of this instance when several stores listen to the same key
        self._scope = scope
        self._key: str | None = None
        self._state = self._empty()
        self._observers: list[Callable] = []

    # -- subclass hooks ---------------------------------------------------

    def _empty(self):
        return []

    def _fetch(self, key: str):
        raise NotImplementedError

    # -- subscription -----------------------------------------------------

    @property
    def key(self) -> str | None:
        return self._key

    @property
    def is_listening(self) -> bool:
        return self._key is not None

    def subscribe(self, callback: Callable) -> Callable[[], None]:
        """Call callback(store) after every snapshot change. Returns an unsubscribe function."""
        self._observers.append(callback)

        def unsubscribe() -> None:
            if callback in self._observers:
                self._observers.remove(callback)

        return unsubscribe

    def _notify(self) -> None:
        for callback in list(self._observers):
            try:
                callback(self)
            except Exception:
                logger.exception("%s observer failed", self.name)

    def _job_id(self, key: str) -> str:
        if self._scope:
            return f"store:{self.name}:{self._scope}:{key}"
        return f"store:{self.name}:{key}"

    async def _poll(self) -> None:
        """Interval job target. As a coroutine it runs on the event loop, never in a worker thread."""
        self.refresh()

    def start_listening(self, key: str) -> None:
        self.stop_listening()
        self._key = key
        logger.info("%s: listening for %s", self.name, key)
        self.refresh()
        if self._scheduler is not None:
            self._scheduler.add_job(
                self._poll,
                trigger="interval",
                seconds=self._poll_seconds,
                id=self._job_id(key),
                replace_existing=True,
            )

    def stop_listening(self) -> None:
        key = self._key
        if key is None:
            return
        if self._scheduler is not None:
            try:
                self._scheduler.remove_job(self._job_id(key))
            except JobLookupError:
                pass
        self._key = None
        self._state = self._empty()
        logger.info("%s: stopped listening for %s and cleared state", self.name, key)
        self._notify()

    def refresh(self) -> bool:
        """Fetch and replace the snapshot. Failures keep the current state."""
        key = self._key
        if key is None:
            return False
        try:
            state = self._fetch(key)
        except Exception as e:
            logger.warning("%s: fetch failed for %s: %s", self.name, key, e)
            return False
        if self._key != key:
            # Stopped or re-keyed while the fetch was in flight
            return False
        self._state = state
        self._notify()
        return True


# ---------------------------------------------------------------------------
# Meets
# ---------------------------------------------------------------------------

class MeetStore(LiveStore):
    """All meets. Reads wmr_meets, falling back to the bundled CSV."""

    name = "meets"
    KEY = "all"

    def __init__(self, scheduler: BaseScheduler | None = None,
                 csv_path=None, poll_seconds: int = MEET_REFRESH_MINUTES * 60) -> None:
        super().__init__(scheduler, poll_seconds)
        self._csv_path = csv_path or MEETS_CSV_PATH

    def start(self) -> None:
        self.start_listening(self.KEY)

    def _fetch(self, key: str) -> list[Meet]:
        if not db.is_configured():
            return load_meets_csv(self._csv_path)
        try:
            rows = db.get_meets()
        except Exception as e:
            logger.warning("meets: Supabase unavailable (%s), using %s", e, self._csv_path)
            return load_meets_csv(self._csv_path)
        meets = [m for m in (Meet.from_record(r) for r in rows) if m is not None]
        return sort_meets(meets)

    @property
    def meets(self) -> list[Meet]:
        return sort_meets(self._state)

    def by_status(self, status: MeetStatus, now=None) -> list[Meet]:
        return [m for m in self.meets if m.status(now) == status]

    def past_meets(self, now=None) -> list[Meet]:
        return self.by_status(MeetStatus.PAST, now)

    def current_meets(self, now=None) -> list[Meet]:
        return self.by_status(MeetStatus.CURRENT, now)

    def upcoming_meets(self, now=None) -> list[Meet]:
        return self.by_status(MeetStatus.UPCOMING, now)


class FeaturedMeetStore(LiveStore):
    name = "featured_meets"
    KEY = "all"

    def start(self) -> None:
        self.start_listening(self.KEY)

    def _fetch(self, key: str) -> list[FeaturedMeet]:
        meets = [m for m in (FeaturedMeet.from_record(r) for r in db.get_featured_meets()) if m]
        return sorted(meets, key=lambda m: m.date)

    @property
    def featured_meets(self) -> list[FeaturedMeet]:
        return list(self._state)

    def get_featured_events(self, featured_meet_id: str) -> list[FeaturedEvent]:
        """One-shot read of a featured meet's events. Errors yield []."""
        try:
            rows = db.get_featured_events(featured_meet_id)
        except Exception as e:
            logger.warning("Failed to load featured events for %s: %s", featured_meet_id, e)
            return []
        return [FeaturedEvent.from_record(r) for r in rows]


# ---------------------------------------------------------------------------
# Races
# ---------------------------------------------------------------------------

class _RaceListStore(LiveStore):
    def _fetch(self, key: str) -> list[UserRace]:
        rows = db.get_user_races(key)
        logger.debug("%s snapshot for %s: %d race rows", self.name, key, len(rows))
        return [UserRace.from_record(r) for r in rows]

    @property
    def races(self) -> list[UserRace]:
        return list(self._state)

    def future_races(self, now=None) -> list[UserRace]:
        return [r for r in self._state if not r.is_in_past(now)]


class UserRaceStore(_RaceListStore):
    """The signed-in user's own races."""

    name = "user_races"

    def add_or_update(self, race: UserRace, uid: str) -> dict:
        """Merge-upsert the race row by id."""
        if not uid:
            return {"success": False, "message": "Not signed in"}
        try:
            db.upsert_user_race(uid, race.to_record())
        except Exception as e:
            logger.error("Error saving race %s for %s: %s", race.id, uid, e)
            return {"success": False, "message": str(e)}
        logger.info("Saved race %s for %s", race.id, uid)
        return {"success": True, "race_id": race.id}

    def delete(self, race_id: str, uid: str) -> dict:
        if not uid:
            return {"success": False, "message": "Not signed in"}
        try:
            db.delete_user_race(uid, race_id)
        except Exception as e:
            logger.error("Error deleting race %s for %s: %s", race_id, uid, e)
            return {"success": False, "message": str(e)}
        logger.info("Deleted race %s for %s", race_id, uid)
        return {"success": True, "race_id": race_id}


class FriendRaceStore(_RaceListStore):
    """Another runner's races, read only."""

    name = "friend_races"


# ---------------------------------------------------------------------------
# Profile
# ---------------------------------------------------------------------------

class UserDetailsStore(LiveStore):
    """The users/{uid} profile row. State is None until a row exists."""

    name = "user_details"

    def _empty(self):
        return None

    def _fetch(self, key: str) -> UserDetails | None:
        row = db.get_user(key)
        if row is None:
            logger.info("No details row yet for %s", key)
            return None
        return UserDetails.from_record(key, row)

    @property
    def details(self) -> UserDetails | None:
        return self._state

    def start_listening(self, key: str) -> None:
        if not key:
            logger.warning("user_details: start_listening called with empty uid")
            return
        super().start_listening(key)

    def save(self, details: UserDetails, uid: str) -> dict:
        """Merge the profile into wmr_users, deriving search_name_lower from the name."""
        if not uid:
            logger.error("user_details: save called with empty uid")
            return {"success": False, "message": "save called with empty uid"}

        data = details.to_record()
        trimmed = details.name.strip()
        data["name"] = trimmed
        # A blank name drops the profile out of prefix search
        data["search_name_lower"] = trimmed.lower() or None

        try:
            db.upsert_user(uid, data)
        except Exception as e:
            logger.error("user_details: save failed for %s: %s", uid, e)
            return {"success": False, "message": str(e)}
        return {"success": True}


# ---------------------------------------------------------------------------
# Watching
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class WatchingSnapshot:
    friend_ids: frozenset = frozenset()
    # event_key -> stored row (event_name, event_start, ...)
    featured_events: dict = field(default_factory=dict)


class WatchingStore(LiveStore):
    """Friends and featured events the user is watching."""

    name = "watching"

    def _empty(self):
        return WatchingSnapshot()

    def _fetch(self, key: str) -> WatchingSnapshot:
        friends = frozenset(r["friend_id"] for r in db.get_watching_friends(key))
        featured = {r["event_key"]: r for r in db.get_watching_featured_events(key)}
        return WatchingSnapshot(friend_ids=friends, featured_events=featured)

    @property
    def watched_friend_ids(self) -> set[str]:
        return set(self._state.friend_ids)

    @property
    def watched_featured_event_keys(self) -> set[str]:
        return set(self._state.featured_events)

    @property
    def watched_featured_events(self) -> dict:
        return dict(self._state.featured_events)

    def toggle_friend_watching(self, current_user_id: str, friend_id: str) -> dict:
        """Flip watching for a friend. Result includes the new "watching" value."""
        watching = friend_id not in self._state.friend_ids
        try:
            if watching:
                logger.info("watching: %s now watching friend %s", current_user_id, friend_id)
                db.add_watching_friend(current_user_id, friend_id)
            else:
                logger.info("watching: %s unwatching friend %s", current_user_id, friend_id)
                db.remove_watching_friend(current_user_id, friend_id)
        except Exception as e:
            logger.warning("watching: failed to toggle friend %s: %s", friend_id, e)
            return {"success": False, "message": str(e)}
        self.refresh()
        return {"success": True, "watching": watching}

    def toggle_featured_event_watching(self, current_user_id: str, event_key: str,
                                       featured_meet_id: str, event_id: str,
                                       event_name: str, event_start=None) -> dict:
        watching = event_key not in self._state.featured_events
        try:
            if watching:
                db.add_watching_featured_event(current_user_id, {
                    "event_key": event_key,
                    "featured_meet_id": featured_meet_id,
                    "event_id": event_id,
                    "event_name": event_name,
                    "event_start": to_timestamp(event_start),
                })
            else:
                db.remove_watching_featured_event(current_user_id, event_key)
        except Exception as e:
            logger.warning("watching: failed to toggle featured event %s: %s", event_key, e)
            return {"success": False, "message": str(e)}
        logger.info("watching: %s %s featured event %s", current_user_id,
                    "watching" if watching else "unwatching", event_key)
        self.refresh()
        return {"success": True, "watching": watching}
