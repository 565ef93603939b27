"""Fixed endpoints (banner, favicon, health, session test) and the 404 fallback."""

from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from homeswift_api.context import RequestContext
from homeswift_api.dependency import get_context

FIXED_PATHS = frozenset({"/", "/favicon.ico", "/health", "/api/session-test"})

_PROCESS_STARTED = time.monotonic()

router = APIRouter()


def process_uptime() -> float:
    return time.monotonic() - _PROCESS_STARTED


@router.get("/", response_class=PlainTextResponse)
@router.head("/", response_class=PlainTextResponse, include_in_schema=False)
async def root() -> str:
    return "HomeSwift API is running 🚀"


@router.get("/favicon.ico", include_in_schema=False)
@router.head("/favicon.ico", include_in_schema=False)
async def favicon() -> Response:
    return Response(status_code=204)


@router.get("/health")
@router.head("/health", include_in_schema=False)
async def health(request: Request) -> dict[str, Any]:
    database = request.app.state.database
    return {
        "status": "OK",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uptime": process_uptime(),
        "database": "connected" if database.connected else "disconnected",
    }


@router.get("/api/session-test")
async def session_test(
    ctx: RequestContext = Depends(get_context),  # noqa: B008
) -> dict[str, Any]:
    session = ctx.session
    if session is None:
        raise RuntimeError("Session stage is not configured")
    session["views"] = session.get("views", 0) + 1
    return {
        "message": "Session test successful",
        "views": session["views"],
        "sessionId": session.id,
        "session": dict(session),
    }


async def not_found(request: Request) -> JSONResponse:
    """Catch-all for any method on any path no other route claims."""
    return JSONResponse({"success": False, "error": "Route not found"}, status_code=404)
