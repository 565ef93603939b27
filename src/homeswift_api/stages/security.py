"""Security header stage."""

from __future__ import annotations

from collections.abc import Mapping

from starlette.datastructures import MutableHeaders
from starlette.responses import Response

from homeswift_api.context import RequestContext
from homeswift_api.stage import Stage, StageCategory

CONTENT_SECURITY_POLICY = "; ".join(
    [
        "default-src 'self'",
        "base-uri 'self'",
        "font-src 'self' https: data:",
        "form-action 'self'",
        "frame-ancestors 'self'",
        "img-src 'self' data:",
        "object-src 'none'",
        "script-src 'self'",
        "script-src-attr 'none'",
        "style-src 'self' https: 'unsafe-inline'",
        "upgrade-insecure-requests",
    ]
)

DEFAULT_SECURITY_HEADERS: dict[str, str] = {
    "Content-Security-Policy": CONTENT_SECURITY_POLICY,
    "Cross-Origin-Opener-Policy": "same-origin",
    "Cross-Origin-Resource-Policy": "same-origin",
    "Origin-Agent-Cluster": "?1",
    "Referrer-Policy": "no-referrer",
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
    "X-Content-Type-Options": "nosniff",
    "X-DNS-Prefetch-Control": "off",
    "X-Download-Options": "noopen",
    "X-Frame-Options": "SAMEORIGIN",
    "X-Permitted-Cross-Domain-Policies": "none",
    "X-XSS-Protection": "0",
}


class SecurityHeaders(Stage):
    """Adds hardening headers to every response without overriding route values.

    Cross-Origin-Embedder-Policy is not part of the defaults.
    """

    category = StageCategory.SECURITY_HEADERS

    def __init__(self, headers: Mapping[str, str] | None = None) -> None:
        self._headers = dict(DEFAULT_SECURITY_HEADERS if headers is None else headers)

    async def resolve(self, ctx: RequestContext) -> Response | None:
        return None

    async def on_response(
        self, ctx: RequestContext, status: int, headers: MutableHeaders
    ) -> None:
        for name, value in self._headers.items():
            headers.setdefault(name, value)
        if "x-powered-by" in headers:
            del headers["x-powered-by"]
