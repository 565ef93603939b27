"""Stage abstract base class and StageCategory enum."""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import ClassVar

from starlette.datastructures import MutableHeaders
from starlette.responses import Response

from homeswift_api.context import RequestContext


class StageCategory(Enum):
    """Pipeline stage categories, defining strict execution order."""

    CORS = "cors"
    SECURITY_HEADERS = "security_headers"
    THROTTLING = "throttling"
    COOKIES = "cookies"
    BODY = "body"
    SESSION = "session"
    LOGGING = "logging"
    AUTHENTICATION = "authentication"
    SESSION_RENEWAL = "session_renewal"
    USER_LOADING = "user_loading"
    PERMISSION = "permission"
    FILTERS = "filters"
    PAGINATION = "pagination"
    CUSTOM = "custom"

    @property
    def order(self) -> int:
        return _ORDER[self]

    @property
    def singleton(self) -> bool:
        return self in _SINGLETONS

    @property
    def route_level(self) -> bool:
        """Whether the category runs per route rather than per request."""
        return self.order >= _ORDER[StageCategory.PERMISSION]


_ORDER = {category: index for index, category in enumerate(StageCategory, start=1)}

_SINGLETONS = frozenset(
    {
        StageCategory.CORS,
        StageCategory.SECURITY_HEADERS,
        StageCategory.THROTTLING,
        StageCategory.COOKIES,
        StageCategory.BODY,
        StageCategory.SESSION,
        StageCategory.LOGGING,
    }
)


class Stage(ABC):
    """Base abstraction for all processing units in a pipeline.

    ``resolve`` runs on the way in. Returning a response short-circuits the
    pipeline; raising ``StageAbort`` hands the request to the error handler.
    ``on_response`` runs for every stage whose ``resolve`` completed, in
    reverse order, right before the response head is sent.
    """

    category: ClassVar[StageCategory]
    requires: ClassVar[tuple[StageCategory, ...]] = ()

    @abstractmethod
    async def resolve(self, ctx: RequestContext) -> Response | None: ...

    async def on_response(
        self, ctx: RequestContext, status: int, headers: MutableHeaders
    ) -> None:
        return None

    def applies_to(self, ctx: RequestContext) -> bool:
        return True

    @property
    def name(self) -> str:
        return type(self).__name__
