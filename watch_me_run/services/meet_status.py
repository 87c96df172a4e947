"""Meet lifecycle classification — past / current / upcoming."""

from datetime import datetime, timedelta
from enum import Enum
from zoneinfo import ZoneInfo

from watch_me_run.config import LOCAL_TIMEZONE

# Window around "now" in calendar days
PAST_DAYS = 6
UPCOMING_DAYS = 3


class MeetStatus(str, Enum):
    PAST = "past"
    CURRENT = "current"
    UPCOMING = "upcoming"


def local_zone() -> ZoneInfo:
    return ZoneInfo(LOCAL_TIMEZONE)


def localize(value: datetime) -> datetime:
    """Attach the local zone to naive datetimes; convert aware ones into it."""
    zone = local_zone()
    if value.tzinfo is None:
        return value.replace(tzinfo=zone)
    return value.astimezone(zone)


def local_now() -> datetime:
    return datetime.now(local_zone())


def classify(date: datetime, now: datetime | None = None) -> MeetStatus:
    """Classify a meet start date relative to now.

    - PAST:     date is earlier than now - 6 days
    - UPCOMING: date is later than now + 3 days
    - CURRENT:  everything in between, both bounds included

    The bounds are wall-clock (calendar day) offsets in the local zone, so a
    DST change inside the window moves them with the clock rather than by a
    fixed 24h multiple.
    """
    now = localize(now) if now is not None else local_now()
    date = localize(date)

    lower = now - timedelta(days=PAST_DAYS)
    upper = now + timedelta(days=UPCOMING_DAYS)

    if date < lower:
        return MeetStatus.PAST
    if date > upper:
        return MeetStatus.UPCOMING
    return MeetStatus.CURRENT
