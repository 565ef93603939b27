"""CORS stage — origin allow-list, preflight handling and response headers."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Sequence

from starlette.datastructures import MutableHeaders
from starlette.responses import Response

from homeswift_api.context import RequestContext
from homeswift_api.exceptions import CorsRejected
from homeswift_api.stage import Stage, StageCategory

logger = logging.getLogger(__name__)

OriginMatcher = str | re.Pattern[str]


class OriginPolicy:
    """Ordered allow-list of exact origins and regular expressions.

    Matchers are tried top to bottom and the first match wins. Patterns use
    search semantics, so ``\\.vercel\\.app$`` admits any preview subdomain.
    """

    def __init__(self, matchers: Iterable[OriginMatcher]) -> None:
        self._matchers: tuple[OriginMatcher, ...] = tuple(matchers)

    def match(self, origin: str) -> OriginMatcher | None:
        for matcher in self._matchers:
            if isinstance(matcher, str):
                if matcher == origin:
                    return matcher
            elif matcher.search(origin):
                return matcher
        return None

    def allows(self, origin: str | None) -> bool:
        if not origin:
            return True
        return self.match(origin) is not None


class CorsPolicy(Stage):
    """Rejects disallowed origins and answers every OPTIONS request itself."""

    category = StageCategory.CORS

    def __init__(
        self,
        policy: OriginPolicy,
        *,
        allow_methods: Sequence[str],
        allow_headers: Sequence[str],
        expose_headers: Sequence[str] = (),
        allow_credentials: bool = True,
        max_age: int = 86400,
        preflight_status: int = 204,
    ) -> None:
        self._policy = policy
        self._allow_methods = ", ".join(allow_methods)
        self._allow_headers = ", ".join(allow_headers)
        self._expose_headers = ", ".join(expose_headers)
        self._allow_credentials = allow_credentials
        self._max_age = str(max_age)
        self._preflight_status = preflight_status

    async def resolve(self, ctx: RequestContext) -> Response | None:
        origin = ctx.origin
        if not self._policy.allows(origin):
            logger.warning("CORS policy: %s not allowed", origin)
            raise CorsRejected(origin or "")

        if ctx.request.method == "OPTIONS":
            return self._preflight(origin)
        return None

    async def on_response(
        self, ctx: RequestContext, status: int, headers: MutableHeaders
    ) -> None:
        self._apply_origin(headers, ctx.origin)
        if self._expose_headers:
            headers["Access-Control-Expose-Headers"] = self._expose_headers

    def _preflight(self, origin: str | None) -> Response:
        response = Response(status_code=self._preflight_status)
        self._apply_origin(response.headers, origin)
        response.headers["Access-Control-Allow-Methods"] = self._allow_methods
        response.headers["Access-Control-Allow-Headers"] = self._allow_headers
        response.headers["Access-Control-Max-Age"] = self._max_age
        return response

    def _apply_origin(self, headers: MutableHeaders, origin: str | None) -> None:
        if origin:
            headers["Access-Control-Allow-Origin"] = origin
        if self._allow_credentials:
            headers["Access-Control-Allow-Credentials"] = "true"
        headers.add_vary_header("Origin")
