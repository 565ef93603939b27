"""Application factory — builds the request pipeline and the FastAPI app."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator, Mapping
from typing import Any

from fastapi import APIRouter, FastAPI

from homeswift_api.config import (
    ALLOWED_HEADERS,
    ALLOWED_METHODS,
    EXPOSED_HEADERS,
    ServerConfig,
    resolve_config,
)
from homeswift_api.errors import ErrorHandler
from homeswift_api.middleware import PipelineMiddleware
from homeswift_api.persistence import Database, InMemoryDatabase
from homeswift_api.pipeline import Pipeline
from homeswift_api.routers import default_routers
from homeswift_api.routers.system import FIXED_PATHS, not_found
from homeswift_api.routers.system import router as system_router
from homeswift_api.stages.authentication import (
    RememberToken,
    TokenAuthentication,
    UserLoader,
)
from homeswift_api.stages.cors import CorsPolicy, OriginPolicy
from homeswift_api.stages.parsing import BodyParser, CookieParser
from homeswift_api.stages.request_log import RequestLogger
from homeswift_api.stages.security import SecurityHeaders
from homeswift_api.stages.sessions import (
    InMemorySessionStore,
    SessionManager,
    SessionStore,
    sweep_periodically,
)
from homeswift_api.stages.throttling import (
    InMemoryThrottleBackend,
    RateLimit,
    ThrottleBackend,
)
from homeswift_api.tokens import TokenService

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(config: ServerConfig) -> None:
    logging.basicConfig(level=config.log_level, format=LOG_FORMAT)


def build_pipeline(
    config: ServerConfig,
    *,
    session_store: SessionStore,
    throttle_backend: ThrottleBackend,
    tokens: TokenService,
    database: Database,
    error_handler: ErrorHandler,
) -> Pipeline:
    """Compose the per-request stages for ``config``.

    Stage order comes from each stage's category, so the registration order
    below is for reading only.
    """
    policy = OriginPolicy([*config.cors_origins, *config.cors_origin_patterns])

    async def load_user(user_id: str) -> Any:
        return await database.users.get(user_id)

    pipeline = Pipeline(
        CorsPolicy(
            policy,
            allow_methods=ALLOWED_METHODS,
            allow_headers=ALLOWED_HEADERS,
            expose_headers=EXPOSED_HEADERS,
        ),
        SecurityHeaders(),
        RateLimit(
            config.rate_limit_max_requests,
            config.rate_limit_window_seconds,
            trusted_hops=config.trusted_proxy_hops,
            backend=throttle_backend,
        ),
        CookieParser(),
        BodyParser(limit=config.body_limit_bytes),
        SessionManager(
            session_store,
            secret=config.session_secret,
            cookie_name=config.session_cookie_name,
            ttl=config.session_ttl_seconds,
            secure=config.session_cookie_secure,
            samesite=config.session_cookie_samesite,
            domain=config.session_cookie_domain,
            trusted_hops=config.trusted_proxy_hops,
        ),
        TokenAuthentication(tokens.verify_access, skip_paths=FIXED_PATHS),
        RememberToken(
            tokens.verify_remember,
            reissue=tokens.reissue_access,
            skip_paths=FIXED_PATHS,
        ),
        UserLoader(load_user, skip_paths=FIXED_PATHS),
        error_handler=error_handler,
        debug=config.request_logging,
    )
    if config.request_logging:
        pipeline.add(RequestLogger())
    return pipeline


def create_app(
    config: ServerConfig | None = None,
    *,
    database: Database | None = None,
    session_store: SessionStore | None = None,
    throttle_backend: ThrottleBackend | None = None,
    tokens: TokenService | None = None,
    routers: Mapping[str, APIRouter] | None = None,
) -> FastAPI:
    """Build the application. All mutable state is created here, per app."""
    if config is None:
        config = resolve_config()
    if database is None:
        database = InMemoryDatabase()
    if session_store is None:
        session_store = InMemorySessionStore()
    if throttle_backend is None:
        throttle_backend = InMemoryThrottleBackend()
    if tokens is None:
        tokens = TokenService(config.jwt_secret)

    @contextlib.asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info("Initializing database connection...")
        try:
            await database.connect()
        except Exception:
            logger.exception("Database connection failed")
            raise

        def sweep_counters() -> int:
            if isinstance(throttle_backend, InMemoryThrottleBackend):
                return throttle_backend.sweep(config.rate_limit_window_seconds)
            return 0

        sweeper = asyncio.create_task(
            sweep_periodically(
                session_store,
                config.session_sweep_interval_seconds,
                extra=sweep_counters,
            )
        )
        logger.info(
            "Server ready on port %d (%s mode, in-memory session store)",
            config.port,
            config.environment,
        )

        yield

        logger.info("Shutting down gracefully...")
        sweeper.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sweeper
        await database.close()

    app = FastAPI(
        title="HomeSwift API",
        version="1.0.0",
        lifespan=lifespan,
        docs_url=None if config.is_production else "/docs",
        redoc_url=None,
        openapi_url=None if config.is_production else "/openapi.json",
    )
    app.state.config = config
    app.state.database = database
    app.state.tokens = tokens
    app.state.session_store = session_store

    error_handler = ErrorHandler(
        expose_details=config.expose_error_details,
        expose_stack=config.expose_stack_traces,
    )
    pipeline = build_pipeline(
        config,
        session_store=session_store,
        throttle_backend=throttle_backend,
        tokens=tokens,
        database=database,
        error_handler=error_handler,
    )
    error_handler.install(app)
    app.add_middleware(PipelineMiddleware, pipeline=pipeline)

    app.include_router(system_router)
    for prefix, router in (routers if routers is not None else default_routers()).items():
        app.include_router(router, prefix=prefix)
    app.add_route("/{path:path}", not_found, include_in_schema=False)

    return app
