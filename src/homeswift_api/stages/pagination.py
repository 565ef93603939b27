"""Pagination stage — LimitOffset and the Page window it produces."""

from __future__ import annotations

from dataclasses import dataclass

from starlette.responses import Response

from homeswift_api.context import RequestContext
from homeswift_api.exceptions import StageAbort
from homeswift_api.stage import Stage, StageCategory


@dataclass(frozen=True)
class Page:
    """A limit/offset window over a result set."""

    limit: int
    offset: int

    def content_range(self, unit: str, count: int, total: int) -> str:
        """``Content-Range`` value for ``count`` items returned out of ``total``.

        The end position is inclusive; an empty window is ``unit */total``.
        """
        if count <= 0:
            return f"{unit} */{total}"
        return f"{unit} {self.offset}-{self.offset + count - 1}/{total}"


def _non_negative(ctx: RequestContext, name: str) -> int | None:
    raw = ctx.request.query_params.get(name)
    if raw is None or raw == "":
        return None
    try:
        value = int(raw)
    except ValueError:
        raise StageAbort(f"Invalid {name} parameter", status_code=400) from None
    if value < 0:
        raise StageAbort(f"{name.capitalize()} must not be negative", status_code=400)
    return value


class LimitOffset(Stage):
    """Reads ``limit`` plus ``offset`` (or a 1-based ``page``) into a Page.

    ``limit`` is clamped to ``max_limit``. When both ``offset`` and ``page``
    are given, ``offset`` wins.
    """

    category = StageCategory.PAGINATION

    def __init__(
        self,
        *,
        max_limit: int = 100,
        default_limit: int = 20,
        state_key: str = "pagination",
    ) -> None:
        self._max_limit = max_limit
        self._default_limit = default_limit
        self._state_key = state_key

    async def resolve(self, ctx: RequestContext) -> Response | None:
        limit = _non_negative(ctx, "limit")
        limit = self._default_limit if limit is None else min(limit, self._max_limit)

        offset = _non_negative(ctx, "offset")
        if offset is None:
            page = _non_negative(ctx, "page")
            if page == 0:
                raise StageAbort("Page numbers start at 1", status_code=400)
            offset = (page - 1) * limit if page else 0

        ctx.state[self._state_key] = Page(limit=limit, offset=offset)
        return None
