"""HomeSwift API — request pipeline server on FastAPI."""

from homeswift_api.app import build_pipeline, configure_logging, create_app
from homeswift_api.config import ServerConfig, Settings, resolve_config
from homeswift_api.context import RequestContext
from homeswift_api.dependency import get_context, route_guard
from homeswift_api.errors import ErrorHandler
from homeswift_api.exceptions import (
    AuthenticationFailed,
    CorsRejected,
    MalformedBody,
    PayloadTooLarge,
    PermissionDenied,
    PipelineConfigurationError,
    PipelineException,
    StageAbort,
    Throttled,
)
from homeswift_api.middleware import PipelineMiddleware
from homeswift_api.persistence import Database, InMemoryDatabase
from homeswift_api.pipeline import Pipeline, ResolvedPipeline
from homeswift_api.stage import Stage, StageCategory
from homeswift_api.stages import (
    Authenticated,
    BodyParser,
    CookieParser,
    CorsPolicy,
    HasRole,
    InMemorySessionStore,
    InMemoryThrottleBackend,
    LimitOffset,
    OriginPolicy,
    Page,
    QueryFilter,
    RateLimit,
    RememberToken,
    RequestLogger,
    SecurityHeaders,
    Session,
    SessionManager,
    SessionStore,
    ThrottleBackend,
    TokenAuthentication,
    UserLoader,
)
from homeswift_api.tokens import TokenService
from homeswift_api.trace import PipelineTrace, TraceEntry

__all__ = [
    "Authenticated",
    "AuthenticationFailed",
    "BodyParser",
    "CookieParser",
    "CorsPolicy",
    "CorsRejected",
    "Database",
    "ErrorHandler",
    "HasRole",
    "InMemoryDatabase",
    "InMemorySessionStore",
    "InMemoryThrottleBackend",
    "LimitOffset",
    "MalformedBody",
    "OriginPolicy",
    "Page",
    "PayloadTooLarge",
    "PermissionDenied",
    "Pipeline",
    "PipelineConfigurationError",
    "PipelineException",
    "PipelineMiddleware",
    "PipelineTrace",
    "QueryFilter",
    "RateLimit",
    "RememberToken",
    "RequestContext",
    "RequestLogger",
    "ResolvedPipeline",
    "SecurityHeaders",
    "ServerConfig",
    "Session",
    "SessionManager",
    "SessionStore",
    "Settings",
    "Stage",
    "StageAbort",
    "StageCategory",
    "ThrottleBackend",
    "Throttled",
    "TokenAuthentication",
    "TokenService",
    "TraceEntry",
    "UserLoader",
    "build_pipeline",
    "configure_logging",
    "create_app",
    "get_context",
    "resolve_config",
    "route_guard",
]
