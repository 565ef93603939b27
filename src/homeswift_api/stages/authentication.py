"""Authentication stages — TokenAuthentication, RememberToken, UserLoader.

None of these stages rejects a request. Each one either establishes an
identity or leaves the request anonymous; route guards decide whether an
identity is required.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from starlette.datastructures import MutableHeaders
from starlette.responses import Response

from homeswift_api._types import DecodeCallback, LoadUserCallback, ReissueCallback
from homeswift_api.context import RequestContext
from homeswift_api.stage import Stage, StageCategory

logger = logging.getLogger(__name__)

REMEMBER_COOKIE = "remember_token"


class _SkipsFixedPaths(Stage):
    def __init__(self, skip_paths: Iterable[str] = ()) -> None:
        self._skip_paths = frozenset(skip_paths)

    def applies_to(self, ctx: RequestContext) -> bool:
        return ctx.path not in self._skip_paths


class TokenAuthentication(_SkipsFixedPaths):
    """Reads a Bearer token (or X-Access-Token) and decodes it via callback."""

    category = StageCategory.AUTHENTICATION

    def __init__(
        self,
        decode: DecodeCallback,
        *,
        scheme: str = "Bearer",
        header: str = "Authorization",
        fallback_header: str | None = "X-Access-Token",
        skip_paths: Iterable[str] = (),
    ) -> None:
        super().__init__(skip_paths)
        self._decode = decode
        self._scheme = scheme
        self._header = header
        self._fallback_header = fallback_header

    def _extract(self, ctx: RequestContext) -> str | None:
        auth_value = ctx.request.headers.get(self._header)
        if auth_value:
            parts = auth_value.split(" ", 1)
            if len(parts) == 2 and parts[0] == self._scheme and parts[1].strip():
                return parts[1].strip()
        if self._fallback_header:
            return ctx.request.headers.get(self._fallback_header) or None
        return None

    async def resolve(self, ctx: RequestContext) -> Response | None:
        token = self._extract(ctx)
        if token is None:
            return None
        try:
            ctx.identity = await self._decode(token)
        except Exception as exc:
            logger.debug("Access token rejected: %s", exc)
            ctx.identity = None
            ctx.state["auth_error"] = str(exc)
        return None


class RememberToken(_SkipsFixedPaths):
    """Re-establishes identity from a long-lived remember-token cookie.

    A fresh access token is handed back in ``X-Access-Token``; a rejected
    cookie is cleared from the client.
    """

    category = StageCategory.SESSION_RENEWAL
    requires = (StageCategory.COOKIES,)

    def __init__(
        self,
        validate: DecodeCallback,
        *,
        reissue: ReissueCallback | None = None,
        cookie_name: str = REMEMBER_COOKIE,
        skip_paths: Iterable[str] = (),
    ) -> None:
        super().__init__(skip_paths)
        self._validate = validate
        self._reissue = reissue
        self._cookie_name = cookie_name

    async def resolve(self, ctx: RequestContext) -> Response | None:
        if ctx.identity is not None:
            return None
        token = ctx.cookies.get(self._cookie_name)
        if not token:
            return None

        try:
            identity = await self._validate(token)
        except Exception as exc:
            logger.info("Remember token rejected: %s", exc)
            ctx.state["clear_remember_token"] = True
            return None

        ctx.identity = identity
        if self._reissue is not None:
            ctx.response_headers["X-Access-Token"] = await self._reissue(identity)
        return None

    async def on_response(
        self, ctx: RequestContext, status: int, headers: MutableHeaders
    ) -> None:
        if ctx.state.get("clear_remember_token"):
            headers.append(
                "set-cookie",
                f"{self._cookie_name}=; Max-Age=0; Path=/; HttpOnly; SameSite=lax",
            )


class UserLoader(_SkipsFixedPaths):
    """Loads ctx.user for the established identity; misses fall back to anonymous."""

    category = StageCategory.USER_LOADING
    requires = (StageCategory.AUTHENTICATION,)

    def __init__(
        self,
        load: LoadUserCallback,
        *,
        subject_claim: str = "sub",
        skip_paths: Iterable[str] = (),
    ) -> None:
        super().__init__(skip_paths)
        self._load = load
        self._subject_claim = subject_claim

    async def resolve(self, ctx: RequestContext) -> Response | None:
        if ctx.identity is None:
            return None
        subject = ctx.identity.get(self._subject_claim)
        if subject is None:
            ctx.identity = None
            return None

        try:
            user = await self._load(str(subject))
        except Exception:
            logger.warning("User lookup failed for %s", subject, exc_info=True)
            user = None

        if user is None:
            ctx.identity = None
        ctx.user = user
        return None
