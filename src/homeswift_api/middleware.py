"""PipelineMiddleware — ASGI middleware executing a resolved Pipeline."""

from __future__ import annotations

import time

from starlette.datastructures import MutableHeaders
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from homeswift_api.context import RequestContext
from homeswift_api.errors import ErrorHandler
from homeswift_api.exceptions import PipelineConfigurationError, StageAbort
from homeswift_api.pipeline import Pipeline, ResolvedPipeline
from homeswift_api.stage import Stage
from homeswift_api.trace import PipelineTrace, TraceEntry


class PipelineMiddleware:
    """Runs every request through the pipeline stages before the app.

    Stage failures and unexpected errors raised by the app are rendered by
    the pipeline's error handler, unless the response has already started.
    """

    def __init__(self, app: ASGIApp, pipeline: Pipeline) -> None:
        self.app = app
        self._resolved: ResolvedPipeline = pipeline.resolve()
        if self._resolved.error_handler is None:
            raise PipelineConfigurationError("A pipeline needs an error handler")
        self._error_handler: ErrorHandler = self._resolved.error_handler

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request = Request(scope, receive)
        ctx = RequestContext(request=request)
        request.state.context = ctx
        if self._resolved.debug:
            ctx.trace = PipelineTrace()

        completed: list[Stage] = []
        response_started = False

        async def send_wrapper(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
                headers = MutableHeaders(scope=message)
                for name, value in ctx.response_headers.items():
                    headers[name] = value
                for stage in reversed(completed):
                    await stage.on_response(ctx, message["status"], headers)
            await send(message)

        try:
            short_circuit = await self._run_stages(ctx, completed)
            if short_circuit is not None:
                await short_circuit(scope, receive, send_wrapper)
                return

            downstream = receive if ctx.raw_body is None else _replay(ctx.raw_body, receive)
            await self.app(scope, downstream, send_wrapper)
        except Exception as exc:
            if response_started:
                raise
            response = self._error_handler.render(exc, request)
            await response(scope, receive, send_wrapper)

    async def _run_stages(
        self, ctx: RequestContext, completed: list[Stage]
    ) -> Response | None:
        trace = ctx.trace
        started = time.perf_counter()

        for stage in self._resolved.stages:
            stage_started = time.perf_counter()
            if not stage.applies_to(ctx):
                if trace is not None:
                    trace.entries.append(_entry(stage, stage_started, "SKIPPED"))
                continue

            try:
                response = await stage.resolve(ctx)
            except Exception as exc:
                if trace is not None:
                    trace.entries.append(
                        _entry(stage, stage_started, "FAILED", reason=str(exc))
                    )
                    trace.outcome = "ABORTED" if isinstance(exc, StageAbort) else "ERROR"
                    trace.total_duration_ms = (time.perf_counter() - started) * 1000
                raise

            if response is not None:
                if trace is not None:
                    trace.entries.append(_entry(stage, stage_started, "SHORT_CIRCUIT"))
                    trace.outcome = "SHORT_CIRCUIT"
                    trace.total_duration_ms = (time.perf_counter() - started) * 1000
                return response

            completed.append(stage)
            if trace is not None:
                trace.entries.append(_entry(stage, stage_started, "OK"))

        if trace is not None:
            trace.total_duration_ms = (time.perf_counter() - started) * 1000
        return None


def _entry(
    stage: Stage, started: float, outcome: str, *, reason: str | None = None
) -> TraceEntry:
    return TraceEntry(
        stage_name=stage.name,
        category=stage.category,
        duration_ms=(time.perf_counter() - started) * 1000,
        outcome=outcome,  # type: ignore[arg-type]
        reason=reason,
    )


def _replay(body: bytes, receive: Receive) -> Receive:
    """Hand an already-consumed body to the app, then defer to ``receive``."""
    sent = False

    async def replay() -> Message:
        nonlocal sent
        if not sent:
            sent = True
            return {"type": "http.request", "body": body, "more_body": False}
        return await receive()

    return replay
