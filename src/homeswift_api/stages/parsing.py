"""Parsing stages — CookieParser and BodyParser."""

from __future__ import annotations

import json
from urllib.parse import parse_qsl

from starlette.datastructures import Headers
from starlette.responses import Response

from homeswift_api.context import RequestContext
from homeswift_api.exceptions import MalformedBody, PayloadTooLarge
from homeswift_api.stage import Stage, StageCategory


class CookieParser(Stage):
    """Copies request cookies into ctx.cookies."""

    category = StageCategory.COOKIES

    async def resolve(self, ctx: RequestContext) -> Response | None:
        ctx.cookies = dict(ctx.request.cookies)
        return None


class BodyParser(Stage):
    """Buffers the request body up to a size limit and decodes JSON or forms.

    The buffered bytes are replayed to the route handler, so handlers can
    still declare typed bodies. Other content types are left undecoded.
    """

    category = StageCategory.BODY

    def __init__(self, *, limit: int = 10 * 1024 * 1024) -> None:
        self._limit = limit

    async def resolve(self, ctx: RequestContext) -> Response | None:
        request = ctx.request
        if not _has_body(request.headers):
            return None

        declared = request.headers.get("content-length")
        if declared is not None and declared.isdigit() and int(declared) > self._limit:
            raise PayloadTooLarge()

        chunks: list[bytes] = []
        size = 0
        async for chunk in request.stream():
            size += len(chunk)
            if size > self._limit:
                raise PayloadTooLarge()
            chunks.append(chunk)
        raw = b"".join(chunks)
        ctx.raw_body = raw

        if not raw:
            return None

        content_type = request.headers.get("content-type", "")
        media_type = content_type.split(";", 1)[0].strip().lower()
        if media_type == "application/json" or media_type.endswith("+json"):
            try:
                ctx.body = json.loads(raw)
            except (UnicodeDecodeError, json.JSONDecodeError) as exc:
                raise MalformedBody("Invalid JSON body") from exc
        elif media_type == "application/x-www-form-urlencoded":
            try:
                ctx.body = dict(
                    parse_qsl(raw.decode("utf-8"), keep_blank_values=True)
                )
            except UnicodeDecodeError as exc:
                raise MalformedBody("Invalid form body") from exc
        return None


def _has_body(headers: Headers) -> bool:
    length = headers.get("content-length")
    if length is not None:
        return length.strip() not in ("", "0")
    return headers.get("transfer-encoding") is not None
