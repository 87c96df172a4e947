"""Domain records and their Supabase row mappings.

Rows store timestamps as ISO-8601 strings and optional text as NULL. Empty
strings are normalised to None here, at the boundary, so services never test
for string emptiness.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import date as date_type, datetime, timedelta, timezone
from enum import IntEnum
from urllib.parse import urlparse

from watch_me_run.services.meet_status import MeetStatus, classify, local_now, localize


# ---------------------------------------------------------------------------
# Field helpers
# ---------------------------------------------------------------------------

def clean_text(value) -> str | None:
    """Trimmed string, or None when missing/blank."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def parse_url(value) -> str | None:
    """Return the URL string if it has a scheme and host, else None."""
    text = clean_text(value)
    if text is None or any(c.isspace() for c in text):
        return None
    try:
        parts = urlparse(text)
    except ValueError:
        return None
    if not parts.scheme or not parts.netloc:
        return None
    return text


def parse_timestamp(value) -> datetime | None:
    """Parse a stored timestamp (ISO string or datetime) into an aware datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    try:
        parsed = datetime.fromisoformat(str(value))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def to_timestamp(value: datetime | None) -> str | None:
    if value is None:
        return None
    return localize(value).astimezone(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Meets
# ---------------------------------------------------------------------------

class MeetPriority(IntEnum):
    HIGH = 1
    MEDIUM = 2
    LOW = 3

    @classmethod
    def parse(cls, raw) -> MeetPriority:
        """1..3 from text or int; anything else is MEDIUM."""
        try:
            return cls(int(str(raw).strip()))
        except (TypeError, ValueError):
            return cls.MEDIUM


@dataclass(frozen=True)
class Meet:
    date: datetime
    name: str
    level: str
    priority: MeetPriority = MeetPriority.MEDIUM
    live_results_url: str | None = None
    watch_url: str | None = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def status(self, now: datetime | None = None) -> MeetStatus:
        return classify(self.date, now)

    @classmethod
    def from_record(cls, row: dict) -> Meet | None:
        start = parse_timestamp(row.get("date"))
        if start is None:
            return None
        return cls(
            id=str(row.get("id") or uuid.uuid4()),
            date=start,
            name=clean_text(row.get("name")) or "",
            level=clean_text(row.get("level")) or "",
            priority=MeetPriority.parse(row.get("priority")),
            live_results_url=parse_url(row.get("live_results_url")),
            watch_url=parse_url(row.get("watch_url")),
        )

    def to_dict(self, now: datetime | None = None) -> dict:
        return {
            "id": self.id,
            "date": self.date.isoformat(),
            "name": self.name,
            "level": self.level,
            "priority": int(self.priority),
            "live_results_url": self.live_results_url,
            "watch_url": self.watch_url,
            "status": self.status(now).value,
        }


def sort_meets(meets: list[Meet]) -> list[Meet]:
    """Priority 1 → 3, then case-insensitive name. Stable."""
    return sorted(meets, key=lambda m: (int(m.priority), m.name.casefold()))


@dataclass(frozen=True)
class FeaturedMeet:
    id: str
    name: str
    date: datetime
    location: str | None = None
    live_results_url: str | None = None
    watch_url: str | None = None
    home_meet_url: str | None = None

    @classmethod
    def from_record(cls, row: dict) -> FeaturedMeet | None:
        start = parse_timestamp(row.get("date"))
        if start is None or not row.get("id"):
            return None
        return cls(
            id=str(row["id"]),
            name=clean_text(row.get("name")) or "",
            date=start,
            location=clean_text(row.get("location")),
            live_results_url=parse_url(row.get("live_results_url")),
            watch_url=parse_url(row.get("watch_url")),
            home_meet_url=parse_url(row.get("home_meet_url")),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "date": self.date.isoformat(),
            "location": self.location,
            "live_results_url": self.live_results_url,
            "watch_url": self.watch_url,
            "home_meet_url": self.home_meet_url,
        }


@dataclass(frozen=True)
class FeaturedEvent:
    id: str
    featured_meet_id: str
    name: str
    start: datetime | None = None
    raw_date: str = ""

    @classmethod
    def from_record(cls, row: dict) -> FeaturedEvent:
        raw = row.get("date")
        start = parse_timestamp(raw)
        return cls(
            id=str(row.get("id", "")),
            featured_meet_id=str(row.get("featured_meet_id", "")),
            name=clean_text(row.get("name")) or str(row.get("id", "")),
            start=start,
            raw_date="" if start is not None or raw is None else str(raw),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "featured_meet_id": self.featured_meet_id,
            "name": self.name,
            "start": self.start.isoformat() if self.start else None,
            "raw_date": self.raw_date,
        }


# ---------------------------------------------------------------------------
# User races
# ---------------------------------------------------------------------------

@dataclass
class UserRace:
    name: str
    distance: str
    date: datetime
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    live_results_url: str | None = None
    watch_url: str | None = None
    meet_page_url: str | None = None
    time_zone_identifier: str | None = None
    location: str = ""
    levels: list[str] = field(default_factory=list)
    instructions: str | None = None
    comments: str | None = None

    def is_in_past(self, now: datetime | None = None) -> bool:
        return localize(self.date) < (localize(now) if now else local_now())

    @classmethod
    def from_record(cls, row: dict) -> UserRace:
        levels = row.get("levels")
        if not isinstance(levels, list):
            # Older rows carry a single "level" string
            single = clean_text(row.get("level"))
            levels = [single] if single else []
        return cls(
            id=str(row.get("id") or uuid.uuid4()),
            name=clean_text(row.get("name")) or "Untitled race",
            distance=clean_text(row.get("distance")) or "",
            date=parse_timestamp(row.get("date")) or datetime.now(timezone.utc),
            live_results_url=parse_url(row.get("live_results_url")),
            watch_url=parse_url(row.get("watch_url")),
            meet_page_url=parse_url(row.get("meet_page_url")),
            time_zone_identifier=clean_text(row.get("time_zone_identifier")),
            location=clean_text(row.get("location")) or "",
            levels=[str(lv) for lv in levels],
            instructions=clean_text(row.get("instructions")),
            comments=clean_text(row.get("comments")),
        )

    def to_record(self) -> dict:
        """Row for a merge upsert. Absent optionals are written as NULL."""
        return {
            "id": self.id,
            "name": self.name,
            "distance": self.distance,
            "date": to_timestamp(self.date),
            "live_results_url": parse_url(self.live_results_url),
            "watch_url": parse_url(self.watch_url),
            "meet_page_url": parse_url(self.meet_page_url),
            "time_zone_identifier": clean_text(self.time_zone_identifier),
            "location": clean_text(self.location),
            "levels": list(self.levels) or None,
            "instructions": clean_text(self.instructions),
            "comments": clean_text(self.comments),
        }

    def to_dict(self) -> dict:
        data = self.to_record()
        data["date"] = self.date.isoformat()
        data["location"] = self.location
        data["levels"] = list(self.levels)
        return data


# ---------------------------------------------------------------------------
# Profiles
# ---------------------------------------------------------------------------

@dataclass
class UserDetails:
    id: str
    searchable: bool = True
    name: str = ""
    location: str = ""
    sex: str = "N"
    birthday: date_type | None = None
    affiliation: str = ""

    def age(self, today: date_type | None = None) -> int | None:
        """Whole years since birthday."""
        if self.birthday is None:
            return None
        today = today or local_now().date()
        years = today.year - self.birthday.year
        if (today.month, today.day) < (self.birthday.month, self.birthday.day):
            years -= 1
        return years

    @classmethod
    def from_record(cls, uid: str, row: dict) -> UserDetails:
        birthday = row.get("birthday")
        if isinstance(birthday, str):
            stamp = parse_timestamp(birthday)
            birthday = stamp.date() if stamp else None
        elif isinstance(birthday, datetime):
            birthday = birthday.date()
        return cls(
            id=uid,
            searchable=row.get("searchable", True) is not False,
            name=row.get("name") or "",
            location=row.get("location") or "",
            sex=row.get("sex") or "N",
            birthday=birthday if isinstance(birthday, date_type) else None,
            affiliation=row.get("affiliation") or "",
        )

    def to_record(self) -> dict:
        row = {
            "searchable": self.searchable,
            "name": self.name,
            "location": self.location,
            "sex": self.sex,
            "affiliation": self.affiliation,
        }
        if self.birthday is not None:
            row["birthday"] = self.birthday.isoformat()
        return row

    def to_dict(self) -> dict:
        data = self.to_record()
        data["id"] = self.id
        data["age"] = self.age()
        return data


@dataclass(frozen=True)
class FriendSearchResult:
    id: str
    name: str
    location: str | None = None
    affiliation: str | None = None
    searchable: bool = False

    @classmethod
    def from_record(cls, row: dict) -> FriendSearchResult:
        return cls(
            id=str(row["id"]),
            name=clean_text(row.get("name")) or "Runner",
            location=clean_text(row.get("location")),
            affiliation=clean_text(row.get("affiliation")),
            searchable=row.get("searchable") is True,
        )


# ---------------------------------------------------------------------------
# Reminders
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ReminderRequest:
    subject_id: str
    subject_name: str
    event_time: datetime
    lead_time: timedelta
    notification_id: str
    title: str = ""
    body: str = ""

    @property
    def fire_time(self) -> datetime:
        """Trigger instant (event minus lead, in elapsed time), truncated to the minute."""
        start = localize(self.event_time)
        fire = start.astimezone(timezone.utc) - self.lead_time
        return fire.replace(second=0, microsecond=0).astimezone(start.tzinfo)
