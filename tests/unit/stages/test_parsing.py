"""Tests for CookieParser and BodyParser."""

from __future__ import annotations

import json
from typing import Any

import pytest

from homeswift_api.exceptions import MalformedBody, PayloadTooLarge
from homeswift_api.stage import StageCategory
from homeswift_api.stages.parsing import BodyParser, CookieParser


def _json_ctx(make_ctx: Any, payload: Any, **kwargs: Any) -> Any:
    body = json.dumps(payload).encode()
    headers = {"Content-Type": "application/json", "Content-Length": str(len(body))}
    return make_ctx(method="POST", headers=headers, body=body, **kwargs)


class TestCookieParser:
    async def test_parses_cookies(self, make_ctx: Any) -> None:
        ctx = make_ctx(headers={"Cookie": "a=1; remember_token=xyz"})
        await CookieParser().resolve(ctx)
        assert ctx.cookies == {"a": "1", "remember_token": "xyz"}

    async def test_no_cookies(self, make_ctx: Any) -> None:
        ctx = make_ctx()
        await CookieParser().resolve(ctx)
        assert ctx.cookies == {}

    def test_category(self) -> None:
        assert CookieParser().category == StageCategory.COOKIES


class TestBodyParser:
    def test_category(self) -> None:
        assert BodyParser().category == StageCategory.BODY

    async def test_json_body(self, make_ctx: Any) -> None:
        ctx = _json_ctx(make_ctx, {"email": "ada@example.com"})
        await BodyParser().resolve(ctx)
        assert ctx.body == {"email": "ada@example.com"}
        assert ctx.raw_body == b'{"email": "ada@example.com"}'

    async def test_vendor_json_media_type(self, make_ctx: Any) -> None:
        body = b'{"a": 1}'
        ctx = make_ctx(
            method="POST",
            headers={
                "Content-Type": "application/vnd.api+json; charset=utf-8",
                "Content-Length": str(len(body)),
            },
            body=body,
        )
        await BodyParser().resolve(ctx)
        assert ctx.body == {"a": 1}

    async def test_form_body(self, make_ctx: Any) -> None:
        body = b"city=Lagos&bedrooms=3&note="
        ctx = make_ctx(
            method="POST",
            headers={
                "Content-Type": "application/x-www-form-urlencoded",
                "Content-Length": str(len(body)),
            },
            body=body,
        )
        await BodyParser().resolve(ctx)
        assert ctx.body == {"city": "Lagos", "bedrooms": "3", "note": ""}

    async def test_other_media_types_stay_raw(self, make_ctx: Any) -> None:
        body = b"plain words"
        ctx = make_ctx(
            method="POST",
            headers={"Content-Type": "text/plain", "Content-Length": str(len(body))},
            body=body,
        )
        await BodyParser().resolve(ctx)
        assert ctx.body is None
        assert ctx.raw_body == body

    async def test_no_body(self, make_ctx: Any) -> None:
        ctx = make_ctx()
        await BodyParser().resolve(ctx)
        assert ctx.body is None
        assert ctx.raw_body is None

    async def test_invalid_json(self, make_ctx: Any) -> None:
        body = b"{not json"
        ctx = make_ctx(
            method="POST",
            headers={
                "Content-Type": "application/json",
                "Content-Length": str(len(body)),
            },
            body=body,
        )
        with pytest.raises(MalformedBody) as exc_info:
            await BodyParser().resolve(ctx)
        assert exc_info.value.status_code == 400
        assert exc_info.value.detail == "Invalid JSON body"

    async def test_declared_length_over_limit(self, make_ctx: Any) -> None:
        ctx = make_ctx(
            method="POST",
            headers={"Content-Type": "application/json", "Content-Length": "2048"},
            body=b"{}",
        )
        with pytest.raises(PayloadTooLarge) as exc_info:
            await BodyParser(limit=1024).resolve(ctx)
        assert exc_info.value.status_code == 413

    async def test_streamed_body_over_limit(self, make_ctx: Any) -> None:
        ctx = make_ctx(
            method="POST",
            headers={"Content-Type": "text/plain", "Transfer-Encoding": "chunked"},
            body=b"x" * 2048,
        )
        with pytest.raises(PayloadTooLarge):
            await BodyParser(limit=1024).resolve(ctx)

    async def test_body_at_limit_accepted(self, make_ctx: Any) -> None:
        ctx = _json_ctx(make_ctx, "x" * 8)
        limit = int(ctx.request.headers["content-length"])
        await BodyParser(limit=limit).resolve(ctx)
        assert ctx.body == "x" * 8
