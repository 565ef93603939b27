"""Request logging stage (development access log)."""

from __future__ import annotations

import logging
import time

from starlette.datastructures import MutableHeaders
from starlette.responses import Response

from homeswift_api.context import RequestContext
from homeswift_api.stage import Stage, StageCategory

access_logger = logging.getLogger("homeswift_api.access")


class RequestLogger(Stage):
    """Logs ``METHOD path status duration - length`` once the response starts."""

    category = StageCategory.LOGGING

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or access_logger

    async def resolve(self, ctx: RequestContext) -> Response | None:
        return None

    async def on_response(
        self, ctx: RequestContext, status: int, headers: MutableHeaders
    ) -> None:
        elapsed_ms = (time.perf_counter() - ctx.started_at) * 1000
        level = logging.WARNING if status >= 500 else logging.INFO
        self._logger.log(
            level,
            "%s %s %d %.3f ms - %s",
            ctx.request.method,
            ctx.request.url.path,
            status,
            elapsed_ms,
            headers.get("content-length", "-"),
        )
        if ctx.trace is not None:
            self._logger.debug("pipeline %s", ctx.trace.describe())
