"""Filter stage — QueryFilter."""

from __future__ import annotations

import re
from collections.abc import Iterable

from starlette.responses import Response

from homeswift_api.context import RequestContext
from homeswift_api.exceptions import StageAbort
from homeswift_api.stage import Stage, StageCategory

_INTEGER = re.compile(r"-?\d+")


class QueryFilter(Stage):
    """Collects the named, non-empty query parameters into ctx.state.

    Fields listed in ``numeric`` must parse as integers; anything else is a
    400 before the route runs.
    """

    category = StageCategory.FILTERS

    def __init__(
        self,
        *fields: str,
        numeric: Iterable[str] = (),
        state_key: str = "filters",
    ) -> None:
        self._fields = fields
        self._numeric = frozenset(numeric)
        self._state_key = state_key

    async def resolve(self, ctx: RequestContext) -> Response | None:
        params = ctx.request.query_params
        selected: dict[str, str] = {}
        for name in self._fields:
            value = params.get(name, "").strip()
            if not value:
                continue
            if name in self._numeric and not _INTEGER.fullmatch(value):
                raise StageAbort(f"Invalid {name} filter", status_code=400)
            selected[name] = value
        ctx.state[self._state_key] = selected
        return None
