"""Permission stages — Authenticated, HasRole."""

from __future__ import annotations

from starlette.responses import Response

from homeswift_api.context import RequestContext
from homeswift_api.exceptions import AuthenticationFailed, PermissionDenied
from homeswift_api.stage import Stage, StageCategory


class Authenticated(Stage):
    """Asserts a user was loaded for the request."""

    category = StageCategory.PERMISSION

    async def resolve(self, ctx: RequestContext) -> Response | None:
        if ctx.user is None:
            raise AuthenticationFailed("Authentication required")
        return None


def _get_roles(user: object) -> list[str] | None:
    """Extract roles from user by dict key or attribute."""
    if isinstance(user, dict):
        val: list[str] | None = user.get("roles")
        return val
    return getattr(user, "roles", None)


class HasRole(Stage):
    """Checks ctx.user has the specified role."""

    category = StageCategory.PERMISSION

    def __init__(self, role: str) -> None:
        self._role = role

    async def resolve(self, ctx: RequestContext) -> Response | None:
        if ctx.user is None:
            raise AuthenticationFailed("Authentication required")
        roles = _get_roles(ctx.user)
        if roles is None or self._role not in roles:
            raise PermissionDenied()
        return None
