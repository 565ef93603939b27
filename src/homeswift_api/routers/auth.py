"""Authentication routes: login, token refresh, logout, current identity."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, Header, Request, Response
from pydantic import BaseModel, Field

from homeswift_api.context import RequestContext
from homeswift_api.dependency import get_context, route_guard
from homeswift_api.exceptions import AuthenticationFailed
from homeswift_api.stages.authentication import REMEMBER_COOKIE
from homeswift_api.stages.permissions import Authenticated
from homeswift_api.tokens import TokenService

logger = logging.getLogger(__name__)

router = APIRouter()


class LoginRequest(BaseModel):
    email: str = Field(min_length=3)
    password: str = Field(min_length=1)
    remember: bool = False


class RefreshRequest(BaseModel):
    refresh_token: str | None = Field(default=None, alias="refreshToken")


def _tokens(request: Request) -> TokenService:
    return request.app.state.tokens


@router.post("/login")
async def login(
    payload: LoginRequest,
    request: Request,
    response: Response,
    ctx: RequestContext = Depends(get_context),  # noqa: B008
) -> dict[str, Any]:
    user = await request.app.state.database.users.authenticate(
        payload.email, payload.password
    )
    if user is None:
        raise AuthenticationFailed("Invalid email or password")

    tokens = _tokens(request)
    access = tokens.issue(user.id, "access")
    refresh = tokens.issue(user.id, "refresh")
    response.headers["X-Access-Token"] = access
    response.headers["X-Refresh-Token"] = refresh

    if payload.remember:
        config = request.app.state.config
        response.set_cookie(
            REMEMBER_COOKIE,
            tokens.issue(user.id, "remember"),
            max_age=int(tokens.ttl("remember").total_seconds()),
            httponly=True,
            secure=config.is_production,
            samesite=config.session_cookie_samesite,
        )

    if ctx.session is not None:
        ctx.session.rotate()
        ctx.session["user_id"] = user.id

    logger.info("User %s logged in", user.id)
    return {
        "success": True,
        "user": user.public(),
        "accessToken": access,
        "refreshToken": refresh,
    }


@router.post("/refresh")
async def refresh(
    request: Request,
    response: Response,
    payload: RefreshRequest | None = None,
    x_refresh_token: str | None = Header(default=None),
) -> dict[str, Any]:
    token = x_refresh_token or (payload.refresh_token if payload else None)
    if not token:
        raise AuthenticationFailed("Refresh token required")

    tokens = _tokens(request)
    claims = tokens.verify(token, "refresh")
    user = await request.app.state.database.users.get(str(claims["sub"]))
    if user is None:
        raise AuthenticationFailed("Unknown user")

    access = tokens.issue(user.id, "access")
    response.headers["X-Access-Token"] = access
    return {"success": True, "accessToken": access}


@router.post("/logout")
async def logout(
    response: Response,
    ctx: RequestContext = Depends(get_context),  # noqa: B008
) -> dict[str, Any]:
    if ctx.session is not None:
        ctx.session.destroy()
    response.delete_cookie(REMEMBER_COOKIE)
    return {"success": True, "message": "Logged out"}


@router.get("/me")
async def me(
    ctx: RequestContext = Depends(route_guard(Authenticated())),  # noqa: B008
) -> dict[str, Any]:
    return {"success": True, "user": ctx.user.public()}
