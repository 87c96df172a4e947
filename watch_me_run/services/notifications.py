"""Notification center — one-shot reminder jobs on APScheduler, keyed by identity.

Each pending reminder is a DateTrigger job whose job id is the notification
identity, so cancel/reschedule works by id the same way a device notification
queue does. A center can be scoped to one user: its jobs are stored under
"user:{user_id}:{identity}" and every method takes and returns bare identities,
so two users watching the same race never touch each other's reminders.
"""

import logging
from typing import Callable, Iterable

from apscheduler.job import Job
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.base import BaseScheduler

from watch_me_run import supabase_client as db
from watch_me_run.config import NOTIFICATIONS_ENABLED
from watch_me_run.models import ReminderRequest

logger = logging.getLogger(__name__)

NOT_DETERMINED = "not_determined"
AUTHORIZED = "authorized"
DENIED = "denied"

# Seconds a reminder may run late (e.g. scheduler paused) before it is dropped
MISFIRE_GRACE_SECONDS = 300


def deliver_notification(identifier: str, title: str, body: str,
                         user_id: str | None = None) -> None:
    """Job target: emit the reminder and record it, best effort."""
    logger.info("Reminder %s for %s: %s (%s)", identifier, user_id or "-", title, body)
    if not db.is_configured():
        return
    try:
        db.log_notification(identifier, title, body, user_id)
    except Exception as e:
        logger.warning("Could not record delivery of %s: %s", identifier, e)


def _default_authorizer() -> bool:
    return NOTIFICATIONS_ENABLED


class NotificationCenter:
    """Pending reminders plus the permission to schedule them."""

    def __init__(self, scheduler: BaseScheduler,
                 authorizer: Callable[[], bool] | None = None,
                 status: str = NOT_DETERMINED,
                 user_id: str | None = None) -> None:
        self._scheduler = scheduler
        self._authorizer = authorizer or _default_authorizer
        self.status = status
        self.user_id = user_id or None

    def for_user(self, user_id: str) -> "NotificationCenter":
        """A center over the same scheduler whose reminders belong to user_id only."""
        return NotificationCenter(self._scheduler, self._authorizer, self.status, user_id)

    def _job_id(self, identifier: str) -> str:
        if self.user_id is None:
            return identifier
        return f"user:{self.user_id}:{identifier}"

    def _owns(self, job: Job) -> bool:
        return job.func is deliver_notification and job.kwargs.get("user_id") == self.user_id

    @property
    def is_authorized(self) -> bool:
        return self.status == AUTHORIZED

    def request_authorization_if_needed(self) -> bool:
        """Ask once. A denial is final; it is never asked again."""
        if self.status == AUTHORIZED:
            return True
        if self.status == DENIED:
            return False
        try:
            granted = bool(self._authorizer())
        except Exception as e:
            logger.warning("Notification authorization request failed: %s", e)
            granted = False
        self.status = AUTHORIZED if granted else DENIED
        if granted:
            logger.info("Notifications authorized")
        else:
            logger.info("Notifications not authorized")
        return granted

    def add(self, request: ReminderRequest) -> bool:
        """Register a one-shot job for the request. Returns False on failure."""
        try:
            self._scheduler.add_job(
                deliver_notification,
                trigger="date",
                run_date=request.fire_time,
                id=self._job_id(request.notification_id),
                name=request.subject_name,
                kwargs={
                    "identifier": request.notification_id,
                    "title": request.title,
                    "body": request.body,
                    "user_id": self.user_id,
                },
                replace_existing=True,
                misfire_grace_time=MISFIRE_GRACE_SECONDS,
            )
        except Exception as e:
            logger.warning("Failed to schedule %s: %s", request.notification_id, e)
            return False
        logger.info("Scheduled %s at %s", request.notification_id, request.fire_time.isoformat())
        return True

    def remove_pending(self, identifiers: Iterable[str]) -> list[str]:
        """Remove pending reminders by identity. Returns the ids that existed."""
        removed = []
        for identifier in identifiers:
            try:
                self._scheduler.remove_job(self._job_id(identifier))
            except JobLookupError:
                continue
            removed.append(identifier)
        if removed:
            logger.info("Cancelled %s", ", ".join(removed))
        return removed

    def get_pending(self, identifier: str) -> Job | None:
        job = self._scheduler.get_job(self._job_id(identifier))
        if job is None or not self._owns(job):
            return None
        return job

    def pending_identifiers(self) -> list[str]:
        return sorted(job.kwargs["identifier"] for job in self._scheduler.get_jobs() if self._owns(job))
