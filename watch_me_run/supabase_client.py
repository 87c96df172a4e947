"""Supabase connection and query helpers for all wmr_* tables."""

import threading
from datetime import datetime, timezone

from supabase import Client, create_client

from watch_me_run.config import SUPABASE_SERVICE_KEY, SUPABASE_URL

_client: Client | None = None
_client_lock = threading.Lock()


def is_configured() -> bool:
    return bool(SUPABASE_URL and SUPABASE_SERVICE_KEY)


def get_client() -> Client:
    """Return the Supabase client singleton (thread-safe)."""
    global _client
    if _client is None:
        with _client_lock:
            if _client is None:
                if not is_configured():
                    raise RuntimeError("SUPABASE_URL and SUPABASE_SERVICE_KEY must be set")
                _client = create_client(SUPABASE_URL, SUPABASE_SERVICE_KEY)
    return _client


# ---------------------------------------------------------------------------
# Generic helpers
# ---------------------------------------------------------------------------

def _table(name: str):
    """Return a table query builder."""
    return get_client().table(name)


def insert(table: str, data: dict) -> dict:
    """Insert a row and return it."""
    result = _table(table).insert(data).execute()
    return result.data[0] if result.data else {}


def upsert(table: str, data: dict, on_conflict: str = "") -> dict:
    """Upsert a row and return it."""
    if on_conflict:
        q = _table(table).upsert(data, on_conflict=on_conflict)
    else:
        q = _table(table).upsert(data)
    result = q.execute()
    return result.data[0] if result.data else {}


def delete(table: str, match: dict) -> list:
    """Delete rows matching conditions."""
    q = _table(table).delete()
    for k, v in match.items():
        q = q.eq(k, v)
    result = q.execute()
    return result.data


def select(table: str, columns: str = "*", match: dict | None = None,
           order: str | None = None, order_desc: bool = False,
           limit: int | None = None) -> list[dict]:
    """Select rows with optional filtering, ordering, and limit."""
    q = _table(table).select(columns)
    if match:
        for k, v in match.items():
            q = q.eq(k, v)
    if order:
        q = q.order(order, desc=order_desc)
    if limit:
        q = q.limit(limit)
    result = q.execute()
    return result.data or []


def select_one(table: str, columns: str = "*", match: dict | None = None) -> dict | None:
    """Select a single row."""
    rows = select(table, columns, match, limit=1)
    return rows[0] if rows else None


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Meets
# ---------------------------------------------------------------------------

def get_meets() -> list[dict]:
    """All meets, ordered by start date."""
    return select("wmr_meets", order="date")


def get_featured_meets() -> list[dict]:
    return select("wmr_featured_meets", order="date")


def get_featured_events(featured_meet_id: str) -> list[dict]:
    """Events inside a featured meet, in start order."""
    return select("wmr_featured_events", match={"featured_meet_id": featured_meet_id}, order="date")


# ---------------------------------------------------------------------------
# User races
# ---------------------------------------------------------------------------

def get_user_races(owner_id: str) -> list[dict]:
    """All races owned by a user, ordered by date ascending."""
    return select("wmr_user_races", match={"owner_id": owner_id}, order="date")


def upsert_user_race(owner_id: str, data: dict) -> dict:
    """Upsert a race row by id. Every column in data is written; None clears it."""
    row = dict(data)
    row["owner_id"] = owner_id
    row["updated_at"] = _now_iso()
    return upsert("wmr_user_races", row, on_conflict="id")


def delete_user_race(owner_id: str, race_id: str) -> list:
    return delete("wmr_user_races", {"owner_id": owner_id, "id": race_id})


# ---------------------------------------------------------------------------
# User details
# ---------------------------------------------------------------------------

def get_user(uid: str) -> dict | None:
    return select_one("wmr_users", match={"id": uid})


def upsert_user(uid: str, data: dict) -> dict:
    row = dict(data)
    row["id"] = uid
    row["updated_at"] = _now_iso()
    return upsert("wmr_users", row, on_conflict="id")


def search_users(prefix: str, limit: int = 20) -> list[dict]:
    """Searchable users whose lowercase name starts with prefix."""
    q = _table("wmr_users").select("*")
    q = q.eq("searchable", True)
    q = q.gte("search_name_lower", prefix).lt("search_name_lower", prefix + "\uf8ff")
    result = q.limit(limit).execute()
    return result.data or []


# ---------------------------------------------------------------------------
# Watching
# ---------------------------------------------------------------------------

def get_watching_friends(user_id: str) -> list[dict]:
    return select("wmr_watching_friends", match={"user_id": user_id})


def add_watching_friend(user_id: str, friend_id: str) -> dict:
    return upsert("wmr_watching_friends", {
        "user_id": user_id,
        "friend_id": friend_id,
        "created_at": _now_iso(),
    }, on_conflict="user_id,friend_id")


def remove_watching_friend(user_id: str, friend_id: str) -> list:
    return delete("wmr_watching_friends", {"user_id": user_id, "friend_id": friend_id})


def get_watching_featured_events(user_id: str) -> list[dict]:
    return select("wmr_watching_featured_events", match={"user_id": user_id})


def add_watching_featured_event(user_id: str, data: dict) -> dict:
    row = dict(data)
    row["user_id"] = user_id
    row["created_at"] = _now_iso()
    return upsert("wmr_watching_featured_events", row, on_conflict="user_id,event_key")


def remove_watching_featured_event(user_id: str, event_key: str) -> list:
    return delete("wmr_watching_featured_events", {"user_id": user_id, "event_key": event_key})


# ---------------------------------------------------------------------------
# Reminder settings
# ---------------------------------------------------------------------------

def get_reminder_settings(user_id: str) -> dict | None:
    return select_one("wmr_reminder_settings", match={"user_id": user_id})


def upsert_reminder_settings(user_id: str, data: dict) -> dict:
    row = dict(data)
    row["user_id"] = user_id
    row["updated_at"] = _now_iso()
    return upsert("wmr_reminder_settings", row, on_conflict="user_id")


# ---------------------------------------------------------------------------
# Notification log
# ---------------------------------------------------------------------------

def log_notification(identifier: str, title: str, body: str, user_id: str | None = None) -> dict:
    """Record a delivered reminder."""
    return insert("wmr_notification_log", {
        "user_id": user_id,
        "notification_id": identifier,
        "title": title,
        "body": body,
        "delivered_at": _now_iso(),
    })
