"""User routes."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Request

from homeswift_api.context import RequestContext
from homeswift_api.dependency import route_guard
from homeswift_api.exceptions import StageAbort
from homeswift_api.stages.permissions import Authenticated, HasRole

router = APIRouter()


@router.get("/me")
async def current_user(
    ctx: RequestContext = Depends(route_guard(Authenticated())),  # noqa: B008
) -> dict[str, Any]:
    return {"success": True, "user": ctx.user.public()}


@router.get("/{user_id}", dependencies=[Depends(route_guard(HasRole("admin")))])
async def get_user(user_id: str, request: Request) -> dict[str, Any]:
    user = await request.app.state.database.users.get(user_id)
    if user is None:
        raise StageAbort("User not found", status_code=404)
    return {"success": True, "user": user.public()}
