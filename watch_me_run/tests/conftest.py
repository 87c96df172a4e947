"""Shared fixtures for Watch Me Run tests.

Provides:
- fake_db: patches supabase_client with an in-memory fake
- scheduler: a started but paused APScheduler, so reminder jobs stay pending
- center / reminders: an authorized NotificationCenter and a ReminderScheduler
  whose clock is fixed at NOW
- client: sync TestClient wired to an AppContext built from the above
- row factories for races, users and meets
"""

import os
import uuid
from collections import defaultdict
from datetime import datetime, timedelta
from unittest.mock import MagicMock, patch
from zoneinfo import ZoneInfo

import pytest

# Set env vars before any watch_me_run imports
os.environ.setdefault("SUPABASE_URL", "https://fake.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_KEY", "fake-key")
os.environ["API_SECRET"] = "test-secret-123"
os.environ["LOCAL_TIMEZONE"] = "America/New_York"

EASTERN = ZoneInfo("America/New_York")

# 2026-07-01T00:00-04:00
NOW = datetime(2026, 7, 1, 0, 0, tzinfo=EASTERN)

AUTH_HEADERS = {"Authorization": "Bearer test-secret-123"}


# ---------------------------------------------------------------------------
# In-memory fake Supabase
# ---------------------------------------------------------------------------

class FakeQueryResult:
    def __init__(self, data=None):
        self.data = data or []


class FakeQueryBuilder:
    """Mimics the supabase-py query builder chain."""

    def __init__(self, store, table_name, fail=False):
        self._store = store
        self._table = table_name
        self._fail = fail
        self._filters = []
        self._order_col = None
        self._order_desc = False
        self._limit_val = None
        self._upsert_data = None
        self._upsert_conflict = None
        self._delete_mode = False
        self._insert_data = None

    def select(self, columns="*"):
        return self

    def insert(self, data):
        self._insert_data = data
        return self

    def upsert(self, data, on_conflict=None):
        self._upsert_data = data
        self._upsert_conflict = on_conflict
        return self

    def delete(self):
        self._delete_mode = True
        return self

    def eq(self, col, val):
        self._filters.append(("eq", col, val))
        return self

    def gte(self, col, val):
        self._filters.append(("gte", col, val))
        return self

    def lt(self, col, val):
        self._filters.append(("lt", col, val))
        return self

    def order(self, col, desc=False):
        self._order_col = col
        self._order_desc = desc
        return self

    def limit(self, n):
        self._limit_val = n
        return self

    def _match(self, row):
        for op, col, val in self._filters:
            row_val = row.get(col)
            if op == "eq" and row_val != val:
                return False
            if op == "gte" and (row_val is None or str(row_val) < str(val)):
                return False
            if op == "lt" and (row_val is None or str(row_val) >= str(val)):
                return False
        return True

    def execute(self):
        if self._fail:
            raise ConnectionError(f"{self._table}: connection refused")

        table = self._store[self._table]

        if self._insert_data is not None:
            row = dict(self._insert_data)
            row.setdefault("id", str(uuid.uuid4()))
            table.append(row)
            return FakeQueryResult(data=[row])

        if self._upsert_data is not None:
            row = dict(self._upsert_data)
            if self._upsert_conflict:
                conflict_cols = [c.strip() for c in self._upsert_conflict.split(",")]
                for existing in table:
                    if all(existing.get(c) == row.get(c) for c in conflict_cols):
                        existing.update(row)
                        return FakeQueryResult(data=[existing])
            table.append(row)
            return FakeQueryResult(data=[row])

        if self._delete_mode:
            removed = [r for r in table if self._match(r)]
            table[:] = [r for r in table if not self._match(r)]
            return FakeQueryResult(data=removed)

        rows = [r for r in table if self._match(r)]
        if self._order_col:
            rows.sort(key=lambda r: str(r.get(self._order_col, "")), reverse=self._order_desc)
        if self._limit_val is not None:
            rows = rows[:self._limit_val]
        return FakeQueryResult(data=[dict(r) for r in rows])


class FakeDB:
    """In-memory store keyed by table name. Set fail=True to make every query raise."""

    def __init__(self):
        self.store = defaultdict(list)
        self.fail = False

    def table(self, name):
        return FakeQueryBuilder(self.store, name, fail=self.fail)


@pytest.fixture
def fake_db():
    """Provides a clean in-memory DB and patches supabase_client._table."""
    db = FakeDB()

    with patch("watch_me_run.supabase_client._table", side_effect=db.table):
        with patch("watch_me_run.supabase_client.get_client", return_value=MagicMock()):
            with patch("watch_me_run.supabase_client.is_configured", return_value=True):
                yield db


# ---------------------------------------------------------------------------
# Scheduler and reminders
# ---------------------------------------------------------------------------

@pytest.fixture
def scheduler():
    from apscheduler.schedulers.background import BackgroundScheduler

    sched = BackgroundScheduler(timezone=EASTERN)
    sched.start(paused=True)
    yield sched
    sched.shutdown(wait=False)


@pytest.fixture
def center(scheduler):
    from watch_me_run.services.notifications import AUTHORIZED, NotificationCenter

    return NotificationCenter(scheduler, authorizer=lambda: True, status=AUTHORIZED)


@pytest.fixture
def reminders(center):
    from watch_me_run.services.reminders import ReminderScheduler

    return ReminderScheduler(center, clock=lambda: NOW)


@pytest.fixture
def client(fake_db, scheduler, center, reminders):
    """Sync test client for the FastAPI app with mocked DB and a paused scheduler."""
    from fastapi.testclient import TestClient

    from watch_me_run.app import create_app
    from watch_me_run.context import AppContext

    context = AppContext(scheduler=scheduler, center=center, reminders=reminders)
    app = create_app(context)

    with TestClient(app) as c:
        yield c


def pending_job(scheduler, identifier, user_id=None):
    from watch_me_run.services.notifications import NotificationCenter

    return NotificationCenter(scheduler, user_id=user_id).get_pending(identifier)


def pending_fire_time(scheduler, identifier, user_id=None):
    job = pending_job(scheduler, identifier, user_id)
    return job.trigger.run_date if job else None


# ---------------------------------------------------------------------------
# Data factories
# ---------------------------------------------------------------------------

def make_race(**overrides):
    defaults = {
        "id": str(uuid.uuid4()),
        "owner_id": "runner-1",
        "name": "Peachtree Road Race",
        "distance": "10K",
        "date": (NOW + timedelta(days=3, hours=8)).isoformat(),
        "live_results_url": None,
        "watch_url": None,
        "meet_page_url": None,
        "time_zone_identifier": "America/New_York",
        "location": "Atlanta, GA",
        "levels": ["Open"],
        "instructions": None,
        "comments": None,
    }
    defaults.update(overrides)
    return defaults


def make_user(**overrides):
    defaults = {
        "id": str(uuid.uuid4()),
        "name": "Sam Runner",
        "search_name_lower": "sam runner",
        "searchable": True,
        "location": "Boston, MA",
        "sex": "N",
        "birthday": "1990-05-20",
        "affiliation": "BAA",
    }
    defaults.update(overrides)
    return defaults


def make_meet(**overrides):
    defaults = {
        "id": str(uuid.uuid4()),
        "date": NOW.isoformat(),
        "name": "Penn Relays",
        "level": "Collegiate",
        "priority": 1,
        "live_results_url": "https://pennrelays.com/results",
        "watch_url": "",
    }
    defaults.update(overrides)
    return defaults
