"""Built-in pipeline stages."""

from homeswift_api.stages.authentication import (
    RememberToken,
    TokenAuthentication,
    UserLoader,
)
from homeswift_api.stages.cors import CorsPolicy, OriginPolicy
from homeswift_api.stages.filters import QueryFilter
from homeswift_api.stages.pagination import LimitOffset, Page
from homeswift_api.stages.parsing import BodyParser, CookieParser
from homeswift_api.stages.permissions import Authenticated, HasRole
from homeswift_api.stages.request_log import RequestLogger
from homeswift_api.stages.security import SecurityHeaders
from homeswift_api.stages.sessions import (
    InMemorySessionStore,
    Session,
    SessionManager,
    SessionStore,
)
from homeswift_api.stages.throttling import (
    InMemoryThrottleBackend,
    RateLimit,
    ThrottleBackend,
)

__all__ = [
    "Authenticated",
    "BodyParser",
    "CookieParser",
    "CorsPolicy",
    "HasRole",
    "InMemorySessionStore",
    "InMemoryThrottleBackend",
    "LimitOffset",
    "OriginPolicy",
    "Page",
    "QueryFilter",
    "RateLimit",
    "RememberToken",
    "RequestLogger",
    "SecurityHeaders",
    "Session",
    "SessionManager",
    "SessionStore",
    "ThrottleBackend",
    "TokenAuthentication",
    "UserLoader",
]
