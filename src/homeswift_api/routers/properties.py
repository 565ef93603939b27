"""Property listing routes."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Request, Response
from pydantic import BaseModel, Field

from homeswift_api.context import RequestContext
from homeswift_api.dependency import route_guard
from homeswift_api.exceptions import StageAbort
from homeswift_api.persistence import LISTING_FILTERS, NUMERIC_FILTERS
from homeswift_api.stages.filters import QueryFilter
from homeswift_api.stages.pagination import LimitOffset, Page
from homeswift_api.stages.permissions import Authenticated

router = APIRouter()


class PropertyCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    city: str = Field(min_length=1, max_length=100)
    price: int = Field(ge=0)
    bedrooms: int = Field(ge=0, le=50)


@router.get("")
async def list_properties(
    request: Request,
    response: Response,
    ctx: RequestContext = Depends(  # noqa: B008
        route_guard(
            QueryFilter(*LISTING_FILTERS, numeric=NUMERIC_FILTERS),
            LimitOffset(),
        )
    ),
) -> dict[str, Any]:
    page: Page = ctx.state["pagination"]
    listings, total = await request.app.state.database.properties.find(
        filters=ctx.state["filters"], limit=page.limit, offset=page.offset
    )
    response.headers["X-Total-Count"] = str(total)
    response.headers["Content-Range"] = page.content_range(
        "properties", len(listings), total
    )
    return {"success": True, "data": [listing.public() for listing in listings]}


@router.get("/{property_id}")
async def get_property(property_id: str, request: Request) -> dict[str, Any]:
    listing = await request.app.state.database.properties.get(property_id)
    if listing is None:
        raise StageAbort("Property not found", status_code=404)
    return {"success": True, "data": listing.public()}


@router.post("", status_code=201)
async def create_property(
    payload: PropertyCreate,
    request: Request,
    ctx: RequestContext = Depends(route_guard(Authenticated())),  # noqa: B008
) -> dict[str, Any]:
    listing = await request.app.state.database.properties.add(
        **payload.model_dump(), owner_id=ctx.user.id
    )
    return {"success": True, "data": listing.public()}
