"""Throttling stage — RateLimit, ThrottleBackend, InMemoryThrottleBackend."""

from __future__ import annotations

import math
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from starlette.datastructures import MutableHeaders
from starlette.requests import Request
from starlette.responses import Response

from homeswift_api.context import RequestContext
from homeswift_api.exceptions import Throttled
from homeswift_api.stage import Stage, StageCategory


@runtime_checkable
class ThrottleBackend(Protocol):
    """Counter storage for RateLimit: one fixed window per client key."""

    async def increment(self, key: str, window_seconds: float) -> tuple[int, int]: ...
    async def reset(self, key: str) -> None: ...


@dataclass
class _Window:
    opened_at: float
    hits: int = 1


class InMemoryThrottleBackend:
    """Fixed windows held in process memory. Counts are per process.

    ``increment`` returns the hit count inside the current window and the
    whole seconds left before it closes (at least 1).
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._windows: dict[str, _Window] = {}
        self._clock = clock

    async def increment(self, key: str, window_seconds: float) -> tuple[int, int]:
        now = self._clock()
        window = self._windows.get(key)
        if window is None or now - window.opened_at >= window_seconds:
            window = self._windows[key] = _Window(opened_at=now)
        else:
            window.hits += 1
        seconds_left = window_seconds - (now - window.opened_at)
        return window.hits, max(math.ceil(seconds_left), 1)

    async def reset(self, key: str) -> None:
        self._windows.pop(key, None)

    def sweep(self, window_seconds: float) -> int:
        """Forget windows that have closed; returns how many."""
        now = self._clock()
        closed = [
            key
            for key, window in self._windows.items()
            if now - window.opened_at >= window_seconds
        ]
        for key in closed:
            del self._windows[key]
        return len(closed)


def client_address(request: Request, trusted_hops: int = 0) -> str:
    """Return the client address, looking ``trusted_hops`` back through proxies.

    With no trusted hops the socket peer is used. Otherwise the entry that
    the outermost trusted proxy appended to ``X-Forwarded-For`` wins.
    """
    if trusted_hops > 0:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            hops = [part.strip() for part in forwarded.split(",") if part.strip()]
            if hops:
                return hops[-trusted_hops] if len(hops) >= trusted_hops else hops[0]
    client = request.client
    if client is not None:
        return client.host
    return "unknown"


def _by_client(ctx: RequestContext) -> str:
    return f"ip:{ctx.client_id}"


class RateLimit(Stage):
    """Allows ``rate`` requests per client per window, then raises Throttled.

    The client is identified before the count, so ``ctx.client_id`` is set
    for later stages even on throttled requests.
    """

    category = StageCategory.THROTTLING

    def __init__(
        self,
        rate: int,
        window_seconds: float = 15 * 60,
        *,
        trusted_hops: int = 0,
        key_func: Callable[[RequestContext], str] = _by_client,
        backend: ThrottleBackend | None = None,
    ) -> None:
        self._rate = rate
        self._window = window_seconds
        self._trusted_hops = trusted_hops
        self._key_func = key_func
        self._backend = InMemoryThrottleBackend() if backend is None else backend

    async def resolve(self, ctx: RequestContext) -> Response | None:
        ctx.client_id = client_address(ctx.request, self._trusted_hops)
        hits, seconds_left = await self._backend.increment(
            self._key_func(ctx), self._window
        )
        if hits > self._rate:
            raise Throttled(retry_after=seconds_left)
        ctx.state["rate_limit_remaining"] = self._rate - hits
        return None

    async def on_response(
        self, ctx: RequestContext, status: int, headers: MutableHeaders
    ) -> None:
        headers["X-RateLimit-Limit"] = str(self._rate)
        headers["X-RateLimit-Remaining"] = str(ctx.state["rate_limit_remaining"])
