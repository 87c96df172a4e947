"""Races API — the signed-in user's own races and read-only friend race lists.

Saving or deleting a race also keeps its owner setup reminder in step.
"""

from fastapi import APIRouter, Depends, HTTPException, Request

from watch_me_run.models import UserRace, clean_text, parse_url
from watch_me_run.routers.deps import (
    NOT_SIGNED_IN,
    check_secret,
    current_user,
    get_context,
    require_timestamp,
)
from watch_me_run.services.races import delete_race, load_races, save_race

router = APIRouter(prefix="/api/v1", dependencies=[Depends(check_secret)])

_MAX_NAME_LEN = 200


def _race_from_body(race_id: str, body: dict) -> UserRace:
    name = clean_text(body.get("name"))
    if not name:
        raise HTTPException(status_code=400, detail="name required")

    levels = body.get("levels") or []
    if not isinstance(levels, list):
        raise HTTPException(status_code=400, detail="levels must be a list")

    return UserRace(
        id=race_id,
        name=name[:_MAX_NAME_LEN],
        distance=clean_text(body.get("distance")) or "",
        date=require_timestamp(body.get("date"), "date"),
        live_results_url=parse_url(body.get("live_results_url")),
        watch_url=parse_url(body.get("watch_url")),
        meet_page_url=parse_url(body.get("meet_page_url")),
        time_zone_identifier=clean_text(body.get("time_zone_identifier")),
        location=clean_text(body.get("location")) or "",
        levels=[str(lv) for lv in levels if clean_text(lv)],
        instructions=clean_text(body.get("instructions")),
        comments=clean_text(body.get("comments")),
    )


@router.get("/me/races", tags=["Races"])
async def my_races(request: Request, uid: str | None = Depends(current_user)):
    if not uid:
        return {"races": []}
    session = get_context(request).session(uid)
    races = session.races.races
    return {"races": [r.to_dict() for r in races], "count": len(races)}


@router.put("/me/races/{race_id}", tags=["Races"])
async def put_race(request: Request, race_id: str, uid: str | None = Depends(current_user)):
    """Create or update a race, then apply the owner reminder setting."""
    if not uid:
        return NOT_SIGNED_IN

    body = await request.json()
    if not isinstance(body, dict):
        raise HTTPException(status_code=400, detail="JSON object required")
    race = _race_from_body(race_id, body)

    session = get_context(request).session(uid)
    result = save_race(session.races, session.reminders, uid, race, session.settings)
    if result["success"]:
        session.races.refresh()
    return result


@router.delete("/me/races/{race_id}", tags=["Races"])
async def remove_race(request: Request, race_id: str, uid: str | None = Depends(current_user)):
    if not uid:
        return NOT_SIGNED_IN
    session = get_context(request).session(uid)
    result = delete_race(session.races, session.reminders, uid, race_id)
    if result["success"]:
        session.races.refresh()
    return result


@router.get("/users/{user_id}/races", tags=["Races"])
async def user_races(user_id: str):
    """Another runner's races, newest snapshot from the database."""
    races = load_races(user_id)
    return {"races": [r.to_dict() for r in races], "count": len(races)}
