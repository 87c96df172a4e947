"""Runner search by name prefix over searchable profiles."""

import logging

from watch_me_run import supabase_client as db
from watch_me_run.models import FriendSearchResult

logger = logging.getLogger(__name__)

MIN_QUERY_LENGTH = 2


def search_users(query: str, limit: int = 20) -> list[FriendSearchResult]:
    """Case-insensitive prefix search on search_name_lower.

    Queries shorter than 2 characters return nothing rather than the whole
    user table. Errors return [].
    """
    trimmed = (query or "").strip()
    if len(trimmed) < MIN_QUERY_LENGTH:
        return []
    try:
        rows = db.search_users(trimmed.lower(), limit=limit)
    except Exception as e:
        logger.warning("User search failed for %r: %s", trimmed, e)
        return []
    return [FriendSearchResult.from_record(r) for r in rows]
