"""Watching API — follow friends and featured events, and list pending reminders."""

from fastapi import APIRouter, Depends, HTTPException, Request

from watch_me_run.models import clean_text, parse_timestamp
from watch_me_run.routers.deps import NOT_SIGNED_IN, check_secret, current_user, get_context

router = APIRouter(prefix="/api/v1", dependencies=[Depends(check_secret)])


@router.get("/me/watching", tags=["Watching"])
async def my_watching(request: Request, uid: str | None = Depends(current_user)):
    if not uid:
        return {"friends": [], "featured_events": []}
    watching = get_context(request).session(uid).watching
    return {
        "friends": sorted(watching.watched_friend_ids),
        "featured_events": sorted(watching.store.watched_featured_event_keys),
    }


@router.post("/me/watching/friends/{friend_id}", tags=["Watching"])
async def toggle_friend(request: Request, friend_id: str,
                        uid: str | None = Depends(current_user)):
    """Flip watching for a friend. Watching schedules reminders for their future races."""
    if not uid:
        return NOT_SIGNED_IN
    if friend_id == uid:
        raise HTTPException(status_code=400, detail="Cannot watch yourself")
    return get_context(request).session(uid).watching.toggle_friend(friend_id)


@router.post("/me/watching/featured/{meet_id}/{event_id}", tags=["Watching"])
async def toggle_featured_event(request: Request, meet_id: str, event_id: str,
                                uid: str | None = Depends(current_user)):
    if not uid:
        return NOT_SIGNED_IN

    body = await request.json()
    if not isinstance(body, dict):
        raise HTTPException(status_code=400, detail="JSON object required")
    event_name = clean_text(body.get("event_name")) or event_id
    raw_start = body.get("event_start")
    event_start = parse_timestamp(raw_start)
    if raw_start and event_start is None:
        raise HTTPException(status_code=400, detail="event_start must be an ISO-8601 timestamp")

    watching = get_context(request).session(uid).watching
    return watching.toggle_featured_event(meet_id, event_id, event_name, event_start)


@router.get("/me/notifications", tags=["Watching"])
async def pending_notifications(request: Request, uid: str | None = Depends(current_user)):
    """Identifiers of the caller's scheduled, not yet delivered, reminders."""
    if not uid:
        return NOT_SIGNED_IN
    ids = get_context(request).reminders_for(uid).center.pending_identifiers()
    return {"pending": ids, "count": len(ids)}
