"""Session stage — signed session cookie over a pluggable SessionStore."""

from __future__ import annotations

import asyncio
import logging
import secrets
import time
from collections.abc import Callable
from http.cookies import SimpleCookie
from typing import Any, Protocol, runtime_checkable

from itsdangerous import BadSignature, Signer
from starlette.datastructures import MutableHeaders
from starlette.responses import Response

from homeswift_api.context import RequestContext
from homeswift_api.stage import Stage, StageCategory

logger = logging.getLogger(__name__)


def new_session_id() -> str:
    return secrets.token_urlsafe(24)


class Session(dict[str, Any]):
    """Session data for one client; tracks whether handlers changed it."""

    def __init__(
        self, session_id: str, data: dict[str, Any] | None = None, *, new: bool = True
    ) -> None:
        super().__init__(data or {})
        self.id = session_id
        self.new = new
        self.modified = False
        self.destroyed = False
        self.previous_id: str | None = None

    def __setitem__(self, key: str, value: Any) -> None:
        self.modified = True
        super().__setitem__(key, value)

    def __delitem__(self, key: str) -> None:
        self.modified = True
        super().__delitem__(key)

    def clear(self) -> None:
        self.modified = True
        super().clear()

    def pop(self, key: str, *default: Any) -> Any:
        self.modified = True
        return super().pop(key, *default)

    def setdefault(self, key: str, default: Any = None) -> Any:
        if key not in self:
            self.modified = True
        return super().setdefault(key, default)

    def update(self, *args: Any, **kwargs: Any) -> None:
        self.modified = True
        super().update(*args, **kwargs)

    def destroy(self) -> None:
        """Drop the session from the store and clear the client cookie."""
        super().clear()
        self.destroyed = True

    def rotate(self) -> None:
        """Move the data to a fresh id and retire the current one.

        The retired id is dropped from the store when the response starts.
        """
        if not self.new and self.previous_id is None:
            self.previous_id = self.id
        self.id = new_session_id()
        self.modified = True


@runtime_checkable
class SessionStore(Protocol):
    """Capability interface for session persistence."""

    async def get(self, session_id: str) -> dict[str, Any] | None: ...
    async def set(self, session_id: str, data: dict[str, Any], ttl: int) -> None: ...
    async def destroy(self, session_id: str) -> None: ...
    async def sweep(self) -> int: ...


class InMemorySessionStore:
    """Volatile, single-process store. Sessions do not survive restarts."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._sessions: dict[str, tuple[dict[str, Any], float]] = {}
        self._clock = clock

    async def get(self, session_id: str) -> dict[str, Any] | None:
        entry = self._sessions.get(session_id)
        if entry is None:
            return None
        data, expires_at = entry
        if expires_at <= self._clock():
            del self._sessions[session_id]
            return None
        return dict(data)

    async def set(self, session_id: str, data: dict[str, Any], ttl: int) -> None:
        self._sessions[session_id] = (dict(data), self._clock() + ttl)

    async def destroy(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)

    async def sweep(self) -> int:
        now = self._clock()
        expired = [sid for sid, (_, exp) in self._sessions.items() if exp <= now]
        for sid in expired:
            del self._sessions[sid]
        return len(expired)

    def __len__(self) -> int:
        return len(self._sessions)


class SessionManager(Stage):
    """Loads or creates ctx.session and persists it when the response starts.

    New sessions are only stored once something is written to them. Stored
    sessions get their expiry pushed back on every request that loads them.
    """

    category = StageCategory.SESSION
    requires = (StageCategory.COOKIES,)

    def __init__(
        self,
        store: SessionStore,
        *,
        secret: str,
        cookie_name: str = "homeswift.sid",
        ttl: int = 2 * 60 * 60,
        secure: bool | None = None,
        samesite: str = "lax",
        domain: str | None = None,
        trusted_hops: int = 0,
    ) -> None:
        self._store = store
        self._signer = Signer(secret, salt="homeswift.session")
        self._cookie_name = cookie_name
        self._ttl = ttl
        self._secure = secure
        self._samesite = samesite
        self._domain = domain
        self._trusted_hops = trusted_hops

    async def resolve(self, ctx: RequestContext) -> Response | None:
        session_id = self._unsign(ctx.cookies.get(self._cookie_name))
        if session_id is not None:
            data = await self._store.get(session_id)
            if data is not None:
                ctx.session = Session(session_id, data, new=False)
                return None
        ctx.session = Session(new_session_id())
        return None

    async def on_response(
        self, ctx: RequestContext, status: int, headers: MutableHeaders
    ) -> None:
        session = ctx.session
        if session is None:
            return

        if session.previous_id is not None:
            await self._store.destroy(session.previous_id)

        if session.destroyed:
            await self._store.destroy(session.id)
            if not session.new:
                headers.append("set-cookie", self._cookie(ctx, "", max_age=0))
            return

        if session.modified:
            await self._store.set(session.id, dict(session), self._ttl)
            value = self._signer.sign(session.id).decode("utf-8")
            headers.append("set-cookie", self._cookie(ctx, value, max_age=self._ttl))
        elif not session.new:
            await self._store.set(session.id, dict(session), self._ttl)

    def _unsign(self, value: str | None) -> str | None:
        if not value:
            return None
        try:
            return self._signer.unsign(value).decode("utf-8")
        except BadSignature:
            logger.debug("Ignoring session cookie with a bad signature")
            return None

    def _is_secure(self, ctx: RequestContext) -> bool:
        if self._secure is not None:
            return self._secure
        if self._trusted_hops > 0:
            proto = ctx.request.headers.get("x-forwarded-proto")
            if proto:
                return proto.split(",")[0].strip().lower() == "https"
        return ctx.request.scope.get("scheme") == "https"

    def _cookie(self, ctx: RequestContext, value: str, *, max_age: int) -> str:
        cookie: SimpleCookie = SimpleCookie()
        cookie[self._cookie_name] = value
        morsel = cookie[self._cookie_name]
        morsel["path"] = "/"
        morsel["max-age"] = max_age
        morsel["httponly"] = True
        morsel["samesite"] = self._samesite
        if self._domain:
            morsel["domain"] = self._domain
        if self._is_secure(ctx):
            morsel["secure"] = True
        return cookie.output(header="").strip()


async def sweep_periodically(
    store: SessionStore,
    interval: float,
    *,
    extra: Callable[[], int] | None = None,
) -> None:
    """Reap expired sessions every ``interval`` seconds until cancelled."""
    while True:
        await asyncio.sleep(interval)
        try:
            removed = await store.sweep()
            if extra is not None:
                removed += extra()
        except Exception:
            logger.exception("Session sweep failed")
            continue
        if removed:
            logger.debug("Swept %d expired entries", removed)
