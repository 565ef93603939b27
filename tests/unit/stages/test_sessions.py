"""Tests for the session stage and store."""

from __future__ import annotations

import asyncio
from http.cookies import SimpleCookie
from typing import Any

import pytest
from itsdangerous import Signer
from starlette.datastructures import MutableHeaders
from starlette.requests import Request

from homeswift_api.context import RequestContext
from homeswift_api.stage import StageCategory
from homeswift_api.stages.sessions import (
    InMemorySessionStore,
    Session,
    SessionManager,
    SessionStore,
    sweep_periodically,
)

SECRET = "test-session-secret"


class FakeClock:
    def __init__(self) -> None:
        self.now = 500.0

    def __call__(self) -> float:
        return self.now


def _signed(session_id: str) -> str:
    return Signer(SECRET, salt="homeswift.session").sign(session_id).decode()


def _morsel(headers: MutableHeaders, name: str = "homeswift.sid") -> Any:
    cookie: SimpleCookie = SimpleCookie()
    for raw in headers.getlist("set-cookie"):
        cookie.load(raw)
    return cookie[name]


class TestSession:
    def test_fresh_session_is_unmodified(self) -> None:
        session = Session("abc")
        assert session.new
        assert not session.modified
        assert not session.destroyed

    def test_mutations_mark_modified(self) -> None:
        session = Session("abc", {"a": 1}, new=False)
        session["b"] = 2
        assert session.modified

        for mutate in (
            lambda s: s.pop("a"),
            lambda s: s.update(c=3),
            lambda s: s.clear(),
            lambda s: s.__delitem__("a"),
        ):
            other = Session("x", {"a": 1}, new=False)
            mutate(other)
            assert other.modified

    def test_setdefault_on_existing_key_is_not_a_change(self) -> None:
        session = Session("abc", {"a": 1}, new=False)
        session.setdefault("a", 5)
        assert not session.modified
        session.setdefault("b", 5)
        assert session.modified

    def test_destroy(self) -> None:
        session = Session("abc", {"a": 1})
        session.destroy()
        assert session.destroyed
        assert dict(session) == {}

    def test_rotate_keeps_data_under_a_new_id(self) -> None:
        session = Session("abc", {"a": 1}, new=False)
        session.rotate()
        assert session.id != "abc"
        assert session.previous_id == "abc"
        assert session.modified
        assert dict(session) == {"a": 1}

        session.rotate()
        assert session.previous_id == "abc"

    def test_rotate_on_unsaved_session_retires_nothing(self) -> None:
        session = Session("abc")
        session.rotate()
        assert session.id != "abc"
        assert session.previous_id is None


class TestInMemorySessionStore:
    def test_conforms_to_protocol(self) -> None:
        assert isinstance(InMemorySessionStore(), SessionStore)

    async def test_set_and_get(self) -> None:
        store = InMemorySessionStore()
        await store.set("s1", {"views": 1}, ttl=60)
        assert await store.get("s1") == {"views": 1}
        assert len(store) == 1

    async def test_get_returns_a_copy(self) -> None:
        store = InMemorySessionStore()
        await store.set("s1", {"views": 1}, ttl=60)
        data = await store.get("s1")
        assert data is not None
        data["views"] = 99
        assert await store.get("s1") == {"views": 1}

    async def test_expired_entry_is_gone(self) -> None:
        clock = FakeClock()
        store = InMemorySessionStore(clock=clock)
        await store.set("s1", {}, ttl=60)
        clock.now += 60
        assert await store.get("s1") is None
        assert len(store) == 0

    async def test_destroy(self) -> None:
        store = InMemorySessionStore()
        await store.set("s1", {}, ttl=60)
        await store.destroy("s1")
        await store.destroy("missing")
        assert await store.get("s1") is None

    async def test_sweep(self) -> None:
        clock = FakeClock()
        store = InMemorySessionStore(clock=clock)
        await store.set("old", {}, ttl=10)
        await store.set("fresh", {}, ttl=100)
        clock.now += 50
        assert await store.sweep() == 1
        assert len(store) == 1


class TestSessionManager:
    def test_category_and_requirements(self) -> None:
        stage = SessionManager(InMemorySessionStore(), secret=SECRET)
        assert stage.category == StageCategory.SESSION
        assert stage.requires == (StageCategory.COOKIES,)

    async def test_creates_new_session(self, make_ctx: Any) -> None:
        ctx = make_ctx()
        await SessionManager(InMemorySessionStore(), secret=SECRET).resolve(ctx)
        assert ctx.session is not None
        assert ctx.session.new

    async def test_untouched_new_session_is_not_saved(self, make_ctx: Any) -> None:
        store = InMemorySessionStore()
        stage = SessionManager(store, secret=SECRET)
        ctx = make_ctx()
        await stage.resolve(ctx)
        headers = MutableHeaders()
        await stage.on_response(ctx, 200, headers)
        assert len(store) == 0
        assert "set-cookie" not in headers

    async def test_modified_session_saved_with_signed_cookie(
        self, make_ctx: Any
    ) -> None:
        store = InMemorySessionStore()
        stage = SessionManager(store, secret=SECRET, ttl=7200)
        ctx = make_ctx()
        await stage.resolve(ctx)
        ctx.session["views"] = 1
        headers = MutableHeaders()
        await stage.on_response(ctx, 200, headers)

        assert await store.get(ctx.session.id) == {"views": 1}
        morsel = _morsel(headers)
        assert morsel.value == _signed(ctx.session.id)
        assert morsel["max-age"] == "7200"
        assert morsel["httponly"] is True
        assert morsel["path"] == "/"
        assert morsel["samesite"].lower() == "lax"
        assert not morsel["secure"]

    async def test_loads_existing_session(self, make_ctx: Any) -> None:
        store = InMemorySessionStore()
        await store.set("known-id", {"views": 3}, ttl=60)
        stage = SessionManager(store, secret=SECRET)
        ctx = make_ctx()
        ctx.cookies = {"homeswift.sid": _signed("known-id")}
        await stage.resolve(ctx)
        assert ctx.session.id == "known-id"
        assert not ctx.session.new
        assert ctx.session["views"] == 3

    async def test_access_refreshes_expiry(self, make_ctx: Any) -> None:
        clock = FakeClock()
        store = InMemorySessionStore(clock=clock)
        await store.set("known-id", {"views": 3}, ttl=100)
        stage = SessionManager(store, secret=SECRET, ttl=100)

        clock.now += 90
        ctx = make_ctx()
        ctx.cookies = {"homeswift.sid": _signed("known-id")}
        await stage.resolve(ctx)
        headers = MutableHeaders()
        await stage.on_response(ctx, 200, headers)
        assert "set-cookie" not in headers

        clock.now += 90
        assert await store.get("known-id") == {"views": 3}

    async def test_forged_cookie_gets_fresh_session(self, make_ctx: Any) -> None:
        store = InMemorySessionStore()
        await store.set("known-id", {"views": 3}, ttl=60)
        stage = SessionManager(store, secret=SECRET)
        ctx = make_ctx()
        ctx.cookies = {"homeswift.sid": "known-id.forged"}
        await stage.resolve(ctx)
        assert ctx.session.new
        assert ctx.session.id != "known-id"

    async def test_expired_session_replaced(self, make_ctx: Any) -> None:
        stage = SessionManager(InMemorySessionStore(), secret=SECRET)
        ctx = make_ctx()
        ctx.cookies = {"homeswift.sid": _signed("gone")}
        await stage.resolve(ctx)
        assert ctx.session.new

    async def test_destroyed_session_clears_cookie(self, make_ctx: Any) -> None:
        store = InMemorySessionStore()
        await store.set("known-id", {"user_id": "1"}, ttl=60)
        stage = SessionManager(store, secret=SECRET)
        ctx = make_ctx()
        ctx.cookies = {"homeswift.sid": _signed("known-id")}
        await stage.resolve(ctx)
        ctx.session.destroy()
        headers = MutableHeaders()
        await stage.on_response(ctx, 200, headers)
        assert await store.get("known-id") is None
        assert _morsel(headers)["max-age"] == "0"

    async def test_rotated_session_replaces_stored_id(self, make_ctx: Any) -> None:
        store = InMemorySessionStore()
        await store.set("planted-id", {"views": 2}, ttl=60)
        stage = SessionManager(store, secret=SECRET)
        ctx = make_ctx()
        ctx.cookies = {"homeswift.sid": _signed("planted-id")}
        await stage.resolve(ctx)
        ctx.session.rotate()
        ctx.session["user_id"] = "1"
        headers = MutableHeaders()
        await stage.on_response(ctx, 200, headers)

        assert await store.get("planted-id") is None
        assert await store.get(ctx.session.id) == {"views": 2, "user_id": "1"}
        assert _morsel(headers).value == _signed(ctx.session.id)
        assert len(store) == 1

    async def test_production_cookie_attributes(self, make_ctx: Any) -> None:
        stage = SessionManager(
            InMemorySessionStore(),
            secret=SECRET,
            secure=True,
            samesite="none",
            domain=".homeswift-ai.vercel.app",
        )
        ctx = make_ctx()
        await stage.resolve(ctx)
        ctx.session["x"] = 1
        headers = MutableHeaders()
        await stage.on_response(ctx, 200, headers)
        morsel = _morsel(headers)
        assert morsel["secure"] is True
        assert morsel["samesite"].lower() == "none"
        assert morsel["domain"] == ".homeswift-ai.vercel.app"

    @pytest.mark.parametrize(
        ("scheme", "headers", "hops", "expected"),
        [
            ("https", {}, 0, True),
            ("http", {}, 0, False),
            ("http", {"X-Forwarded-Proto": "https"}, 0, False),
            ("http", {"X-Forwarded-Proto": "https"}, 1, True),
        ],
    )
    async def test_auto_secure(
        self,
        make_ctx: Any,
        scheme: str,
        headers: dict[str, str],
        hops: int,
        expected: bool,
    ) -> None:
        stage = SessionManager(InMemorySessionStore(), secret=SECRET, trusted_hops=hops)
        ctx = make_ctx(scheme=scheme, headers=headers)
        await stage.resolve(ctx)
        ctx.session["x"] = 1
        out = MutableHeaders()
        await stage.on_response(ctx, 200, out)
        assert bool(_morsel(out)["secure"]) is expected

    async def test_auto_secure_reads_scheme_without_server_address(self) -> None:
        scope = {
            "type": "http",
            "method": "GET",
            "path": "/",
            "scheme": "https",
            "query_string": b"",
            "headers": [],
        }
        ctx = RequestContext(request=Request(scope))
        stage = SessionManager(InMemorySessionStore(), secret=SECRET)
        await stage.resolve(ctx)
        ctx.session["x"] = 1
        out = MutableHeaders()
        await stage.on_response(ctx, 200, out)
        assert _morsel(out)["secure"] is True


class TestSweepPeriodically:
    async def test_sweeps_until_cancelled(self) -> None:
        clock = FakeClock()
        store = InMemorySessionStore(clock=clock)
        await store.set("old", {}, ttl=1)
        clock.now += 5
        calls: list[int] = []

        def extra() -> int:
            calls.append(1)
            return 0

        task = asyncio.create_task(sweep_periodically(store, 0.01, extra=extra))
        await asyncio.sleep(0.05)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert len(store) == 0
        assert calls

    async def test_survives_sweep_errors(self, caplog: pytest.LogCaptureFixture) -> None:
        def broken() -> int:
            raise RuntimeError("boom")

        task = asyncio.create_task(
            sweep_periodically(InMemorySessionStore(), 0.01, extra=broken)
        )
        await asyncio.sleep(0.05)
        assert not task.done()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert "Session sweep failed" in caplog.text
