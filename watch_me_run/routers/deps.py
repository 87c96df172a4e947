"""Shared request helpers — context lookup, API secret, caller identity."""

from datetime import datetime

from fastapi import Header, HTTPException, Request

from watch_me_run.config import API_SECRET
from watch_me_run.context import AppContext
from watch_me_run.models import parse_timestamp

NOT_SIGNED_IN = {"success": False, "message": "Not signed in"}


def get_context(request: Request) -> AppContext:
    return request.app.state.context


def check_secret(authorization: str = Header("")) -> None:
    """Require "Bearer {API_SECRET}" when a secret is configured."""
    if API_SECRET and authorization != f"Bearer {API_SECRET}":
        raise HTTPException(status_code=401, detail="Invalid API secret")


def current_user(x_user_id: str = Header("")) -> str | None:
    """Signed-in user id, or None. Handlers no-op for None."""
    uid = x_user_id.strip()
    return uid or None


def require_timestamp(value, field: str) -> datetime:
    parsed = parse_timestamp(value)
    if parsed is None:
        raise HTTPException(status_code=400, detail=f"{field} must be an ISO-8601 timestamp")
    return parsed
