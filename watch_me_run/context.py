"""Application context — the services a request handler needs, wired once.

Handlers receive stores and services from here instead of module globals.
Per-user state (own races, profile, watching) lives in a UserSession that is
opened on first use and closed on sign-out.
"""

import logging
import threading

from apscheduler.schedulers.base import BaseScheduler

from watch_me_run.services.notifications import NotificationCenter
from watch_me_run.services.races import apply_owner_settings
from watch_me_run.services.reminder_settings import (
    ReminderSettings,
    get_reminder_settings,
    save_reminder_settings,
)
from watch_me_run.services.reminders import ReminderScheduler
from watch_me_run.services.stores import (
    FeaturedMeetStore,
    MeetStore,
    UserDetailsStore,
    UserRaceStore,
)
from watch_me_run.services.watching import WatchingService

logger = logging.getLogger(__name__)


class UserSession:
    """Live stores and watching reminders for one signed-in user."""

    def __init__(self, uid: str, context: "AppContext") -> None:
        self.uid = uid
        self.reminders = context.reminders_for(uid)
        self.settings = get_reminder_settings(uid)
        self.races = UserRaceStore(context.scheduler)
        self.details = UserDetailsStore(context.scheduler)
        self.watching = WatchingService(uid, self.reminders, self.settings,
                                        scheduler=context.scheduler)

    def start(self) -> None:
        self.races.start_listening(self.uid)
        self.details.start_listening(self.uid)
        self.watching.start()

    def stop(self) -> None:
        self.watching.stop()
        self.details.stop_listening()
        self.races.stop_listening()

    def update_settings(self, settings: ReminderSettings) -> dict:
        """Persist settings, then re-apply owner and watching reminders."""
        settings = settings.normalized()
        result = save_reminder_settings(self.uid, settings)
        if not result["success"]:
            return result
        self.settings = settings
        result["owner"] = apply_owner_settings(self.reminders, self.uid, self.races.races, settings)
        self.watching.apply_settings(settings)
        return result


class AppContext:

    def __init__(self, scheduler: BaseScheduler | None = None,
                 center: NotificationCenter | None = None,
                 reminders: ReminderScheduler | None = None,
                 meet_store: MeetStore | None = None,
                 featured_store: FeaturedMeetStore | None = None) -> None:
        if scheduler is None:
            from watch_me_run.scheduler import scheduler as shared_scheduler
            scheduler = shared_scheduler
        self.scheduler = scheduler
        self.center = center or NotificationCenter(scheduler)
        self.reminders = reminders or ReminderScheduler(self.center)
        self.meet_store = meet_store or MeetStore(scheduler)
        self.featured_store = featured_store or FeaturedMeetStore(scheduler)
        self._sessions: dict[str, UserSession] = {}
        # uid -> user-scoped reminders; kept across sessions so a denial stays final
        self._user_reminders: dict[str, ReminderScheduler] = {}
        self._lock = threading.RLock()

    def start(self) -> None:
        self.meet_store.start()
        self.featured_store.start()

    def stop(self) -> None:
        for uid in list(self._sessions):
            self.end_session(uid)
        self.featured_store.stop_listening()
        self.meet_store.stop_listening()

    def reminders_for(self, uid: str) -> ReminderScheduler:
        """Reminders scoped to one user's notification namespace."""
        with self._lock:
            reminders = self._user_reminders.get(uid)
            if reminders is None:
                reminders = self.reminders.for_user(uid)
                self._user_reminders[uid] = reminders
        return reminders

    def session(self, uid: str) -> UserSession:
        with self._lock:
            session = self._sessions.get(uid)
            if session is None:
                session = UserSession(uid, self)
                self._sessions[uid] = session
                session.start()
                logger.info("Opened session for %s", uid)
        return session

    def end_session(self, uid: str) -> bool:
        with self._lock:
            session = self._sessions.pop(uid, None)
        if session is None:
            return False
        session.stop()
        logger.info("Closed session for %s", uid)
        return True
