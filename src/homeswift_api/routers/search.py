"""Free-text property search."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Request, Response

from homeswift_api.context import RequestContext
from homeswift_api.dependency import route_guard
from homeswift_api.persistence import LISTING_FILTERS, NUMERIC_FILTERS
from homeswift_api.stages.filters import QueryFilter
from homeswift_api.stages.pagination import LimitOffset, Page

router = APIRouter()


@router.get("")
async def search(
    request: Request,
    response: Response,
    q: str = "",
    ctx: RequestContext = Depends(  # noqa: B008
        route_guard(
            QueryFilter(*LISTING_FILTERS, numeric=NUMERIC_FILTERS),
            LimitOffset(max_limit=50),
        )
    ),
) -> dict[str, Any]:
    page: Page = ctx.state["pagination"]
    results, total = await request.app.state.database.properties.find(
        filters=ctx.state["filters"],
        text=q.strip() or None,
        limit=page.limit,
        offset=page.offset,
    )
    response.headers["X-Total-Count"] = str(total)
    return {
        "success": True,
        "query": q,
        "total": total,
        "results": [listing.public() for listing in results],
    }
