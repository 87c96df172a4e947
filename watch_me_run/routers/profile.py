"""Profile API — user details, runner search, reminder settings and sign-out."""

from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from watch_me_run.models import UserDetails, clean_text
from watch_me_run.routers.deps import NOT_SIGNED_IN, check_secret, current_user, get_context
from watch_me_run.services.reminder_settings import ReminderSettings
from watch_me_run.services.user_search import search_users

router = APIRouter(prefix="/api/v1", dependencies=[Depends(check_secret)])

_SEX_VALUES = {"M", "F", "N"}


@router.get("/me/profile", tags=["Profile"])
async def get_profile(request: Request, uid: str | None = Depends(current_user)):
    if not uid:
        return {"profile": None}
    details = get_context(request).session(uid).details.details
    return {"profile": details.to_dict() if details else None}


@router.put("/me/profile", tags=["Profile"])
async def put_profile(request: Request, uid: str | None = Depends(current_user)):
    if not uid:
        return NOT_SIGNED_IN

    body = await request.json()
    if not isinstance(body, dict):
        raise HTTPException(status_code=400, detail="JSON object required")

    sex = (clean_text(body.get("sex")) or "N").upper()
    if sex not in _SEX_VALUES:
        raise HTTPException(status_code=400, detail="sex must be M, F or N")

    birthday = None
    if body.get("birthday"):
        try:
            birthday = date.fromisoformat(str(body["birthday"])[:10])
        except ValueError:
            raise HTTPException(status_code=400, detail="birthday must be YYYY-MM-DD")

    details = UserDetails(
        id=uid,
        searchable=body.get("searchable", True) is not False,
        name=clean_text(body.get("name")) or "",
        location=clean_text(body.get("location")) or "",
        sex=sex,
        birthday=birthday,
        affiliation=clean_text(body.get("affiliation")) or "",
    )
    store = get_context(request).session(uid).details
    result = store.save(details, uid)
    if result["success"]:
        store.refresh()
    return result


@router.get("/users/search", tags=["Profile"])
async def search(q: str = Query("", description="Name prefix, at least 2 characters"),
                 limit: int = Query(20, ge=1, le=50)):
    results = search_users(q, limit=limit)
    return {
        "results": [
            {"id": r.id, "name": r.name, "location": r.location, "affiliation": r.affiliation}
            for r in results
        ],
        "count": len(results),
    }


@router.get("/me/settings/reminders", tags=["Profile"])
async def get_reminder_settings(request: Request, uid: str | None = Depends(current_user)):
    if not uid:
        return {"settings": ReminderSettings().to_record()}
    return {"settings": get_context(request).session(uid).settings.to_record()}


@router.put("/me/settings/reminders", tags=["Profile"])
async def put_reminder_settings(request: Request, uid: str | None = Depends(current_user)):
    """Save reminder settings and reschedule every pending reminder under them."""
    if not uid:
        return NOT_SIGNED_IN

    body = await request.json()
    if not isinstance(body, dict):
        raise HTTPException(status_code=400, detail="JSON object required")

    session = get_context(request).session(uid)
    values = session.settings.to_record()
    values.update({k: v for k, v in body.items() if k in values and v is not None})
    try:
        settings = ReminderSettings(**values).normalized()
    except (TypeError, ValueError):
        raise HTTPException(status_code=400, detail="Invalid reminder settings")

    result = session.update_settings(settings)
    result["settings"] = session.settings.to_record()
    return result


@router.post("/me/sign-out", tags=["Profile"])
async def sign_out(request: Request, uid: str | None = Depends(current_user)):
    """Close the user's live stores. Scheduled reminders stay pending."""
    if not uid:
        return NOT_SIGNED_IN
    closed = get_context(request).end_session(uid)
    return {"success": True, "closed": closed}
