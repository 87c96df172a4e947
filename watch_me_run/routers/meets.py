"""Meets API — meet list by lifecycle status, featured meets and their events."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from watch_me_run.routers.deps import check_secret, get_context
from watch_me_run.services.meet_status import MeetStatus

router = APIRouter(prefix="/api/v1", dependencies=[Depends(check_secret)])


@router.get("/meets", tags=["Meets"])
async def list_meets(
    request: Request,
    status: Optional[str] = Query(None, description="'past', 'current' or 'upcoming'"),
):
    """Meets in priority then name order, optionally filtered by status."""
    store = get_context(request).meet_store
    if status:
        try:
            wanted = MeetStatus(status.lower())
        except ValueError:
            raise HTTPException(status_code=400, detail=f"Unknown status: {status}")
        meets = store.by_status(wanted)
    else:
        meets = store.meets

    return {"meets": [m.to_dict() for m in meets], "count": len(meets)}


@router.get("/featured-meets", tags=["Meets"])
async def list_featured_meets(request: Request):
    store = get_context(request).featured_store
    return {"featured_meets": [m.to_dict() for m in store.featured_meets]}


@router.get("/featured-meets/{meet_id}/events", tags=["Meets"])
async def list_featured_events(request: Request, meet_id: str):
    events = get_context(request).featured_store.get_featured_events(meet_id)
    return {"events": [e.to_dict() for e in events]}
