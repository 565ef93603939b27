"""Shared pytest fixtures for homeswift-api tests."""

from __future__ import annotations

import re
from http.cookies import SimpleCookie
from typing import Any

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from starlette.requests import Request
from starlette.types import Message

from homeswift_api.app import create_app
from homeswift_api.config import ServerConfig
from homeswift_api.context import RequestContext
from homeswift_api.persistence import InMemoryDatabase


@pytest.fixture
def make_request() -> Any:
    """Factory for creating Starlette Request objects with an optional body."""

    def _make(
        method: str = "GET",
        path: str = "/",
        headers: dict[str, str] | None = None,
        query_string: str = "",
        body: bytes = b"",
        client: tuple[str, int] | None = ("127.0.0.1", 50000),
        scheme: str = "http",
    ) -> Request:
        scope: dict[str, Any] = {
            "type": "http",
            "method": method,
            "path": path,
            "scheme": scheme,
            "query_string": query_string.encode(),
            "headers": [
                (k.lower().encode(), v.encode()) for k, v in (headers or {}).items()
            ],
            "root_path": "",
            "client": client,
            "server": ("testserver", 443 if scheme == "https" else 80),
        }
        sent = False

        async def receive() -> Message:
            nonlocal sent
            if not sent:
                sent = True
                return {"type": "http.request", "body": body, "more_body": False}
            return {"type": "http.disconnect"}

        return Request(scope, receive)

    return _make


@pytest.fixture
def make_ctx(make_request: Any) -> Any:
    """Factory for RequestContext objects around ``make_request``."""

    def _make(**kwargs: Any) -> RequestContext:
        return RequestContext(request=make_request(**kwargs))

    return _make


@pytest.fixture
def dev_config() -> ServerConfig:
    """Development config without a cookie domain so test hosts accept it."""
    return ServerConfig(environment="development", session_cookie_domain=None)


@pytest.fixture
def prod_config() -> ServerConfig:
    return ServerConfig(
        environment="production",
        session_cookie_secure=True,
        session_cookie_samesite="none",
        session_cookie_domain=".homeswift-ai.vercel.app",
        trusted_proxy_hops=1,
        request_logging=False,
        expose_error_details=False,
        expose_stack_traces=False,
    )


@pytest.fixture
def database() -> InMemoryDatabase:
    db = InMemoryDatabase()
    db.users.add("ada@example.com", "s3cret-pass", "Ada", roles=["user"])
    db.users.add("root@example.com", "admin-pass", "Root", roles=["user", "admin"])
    return db


@pytest.fixture
def send() -> Any:
    """Send one request to an app through a fresh client (no cookie jar reuse)."""

    async def _send(
        app: FastAPI, method: str = "GET", path: str = "/", **kwargs: Any
    ) -> Any:
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            return await client.request(method, path, **kwargs)

    return _send


@pytest.fixture
def set_cookie() -> Any:
    """Return the raw Set-Cookie header for a cookie name, or None."""

    def _find(response: Any, name: str) -> str | None:
        for raw in response.headers.get_list("set-cookie"):
            if re.match(rf"{re.escape(name)}=", raw):
                return raw
        return None

    return _find


@pytest.fixture
def cookie_value() -> Any:
    """Extract a cookie value from a response's Set-Cookie headers."""

    def _value(response: Any, name: str) -> str | None:
        for raw in response.headers.get_list("set-cookie"):
            cookie: SimpleCookie = SimpleCookie()
            cookie.load(raw)
            if name in cookie:
                return cookie[name].value
        return None

    return _value


@pytest.fixture
def dev_app(dev_config: ServerConfig, database: InMemoryDatabase) -> FastAPI:
    return create_app(dev_config, database=database)


@pytest.fixture
def prod_app(prod_config: ServerConfig, database: InMemoryDatabase) -> FastAPI:
    return create_app(prod_config, database=database)
