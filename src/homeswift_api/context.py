"""RequestContext — per-request state container."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from starlette.requests import Request

if TYPE_CHECKING:
    from homeswift_api.stages.sessions import Session
    from homeswift_api.trace import PipelineTrace


@dataclass
class RequestContext:
    """Lightweight per-request state container mutated by pipeline stages."""

    request: Request
    cookies: dict[str, str] = field(default_factory=dict)
    body: Any | None = None
    raw_body: bytes | None = None
    session: Session | None = None
    identity: dict[str, Any] | None = None
    user: Any | None = None
    client_id: str | None = None
    response_headers: dict[str, str] = field(default_factory=dict)
    state: dict[str, Any] = field(default_factory=dict)
    started_at: float = field(default_factory=time.perf_counter)
    trace: PipelineTrace | None = None

    @property
    def origin(self) -> str | None:
        return self.request.headers.get("origin") or None

    @property
    def path(self) -> str:
        return self.request.url.path
