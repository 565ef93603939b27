"""Diagnostic routes mounted under /api/test."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from homeswift_api.context import RequestContext
from homeswift_api.dependency import get_context

router = APIRouter()


@router.get("/ping")
async def ping() -> dict[str, Any]:
    return {"success": True, "message": "pong"}


@router.get("/whoami")
async def whoami(
    ctx: RequestContext = Depends(get_context),  # noqa: B008
) -> dict[str, Any]:
    return {
        "success": True,
        "authenticated": ctx.user is not None,
        "subject": ctx.identity.get("sub") if ctx.identity else None,
        "client": ctx.client_id,
    }


@router.get("/error")
async def forced_error() -> dict[str, Any]:
    raise RuntimeError("Forced failure from /api/test/error")
