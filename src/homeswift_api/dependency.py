"""FastAPI dependencies exposing the request context and route guards."""

from __future__ import annotations

from collections.abc import Awaitable, Callable

from starlette.requests import Request

from homeswift_api.context import RequestContext
from homeswift_api.exceptions import PipelineConfigurationError
from homeswift_api.pipeline import Pipeline
from homeswift_api.stage import Stage


def get_context(request: Request) -> RequestContext:
    """Return the RequestContext the pipeline attached to this request."""
    ctx = getattr(request.state, "context", None)
    if ctx is None:
        raise PipelineConfigurationError("PipelineMiddleware is not installed")
    return ctx


def route_guard(*stages: Stage) -> Callable[[Request], Awaitable[RequestContext]]:
    """Return a dependency that runs route-level stages on the request context.

    Only permission, filter, pagination and custom stages are accepted;
    aborts propagate to the application's error handler.
    """
    resolved = Pipeline(*stages, route_level=True).resolve()

    async def dependency(request: Request) -> RequestContext:
        ctx = get_context(request)
        for stage in resolved.stages:
            if stage.applies_to(ctx):
                await stage.resolve(ctx)
        return ctx

    return dependency
