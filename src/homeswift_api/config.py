"""Application settings and the resolved, per-environment server configuration.

``Settings`` loads raw values from the environment (and a ``.env`` file)
with pydantic-settings. ``resolve_config`` turns them into a frozen
``ServerConfig`` once at startup; pipeline stages branch on its fields
instead of reading the environment themselves.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

SameSite = Literal["lax", "strict", "none"]

DEFAULT_ORIGINS = ["https://homeswift.ai", "https://www.homeswift.ai"]
DEFAULT_ORIGIN_PATTERNS = [r"^https?://localhost(:\d+)?$", r"\.vercel\.app$"]

ALLOWED_METHODS = ("GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS", "HEAD")
ALLOWED_HEADERS = (
    "Content-Type",
    "Authorization",
    "X-Requested-With",
    "Accept",
    "Origin",
    "X-Access-Token",
    "X-Refresh-Token",
    "X-XSRF-TOKEN",
)
EXPOSED_HEADERS = (
    "Content-Range",
    "X-Total-Count",
    "X-Access-Token",
    "X-Refresh-Token",
    "Set-Cookie",
)


class Settings(BaseSettings):
    """Raw settings loaded from environment variables and ``.env``."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    ENVIRONMENT: Literal["development", "test", "production"] = Field(
        default="development",
        description="Deployment mode",
    )

    HOST: str = Field(default="0.0.0.0", description="Interface to bind")

    PORT: int = Field(default=5000, ge=1, le=65535, description="Listening port")

    LOG_LEVEL: str | None = Field(
        default=None,
        description="Root log level; DEBUG in development, INFO otherwise",
    )

    SESSION_SECRET: str = Field(
        default="dev-secret-key",
        min_length=8,
        description="Secret used to sign session cookies",
    )

    JWT_SECRET: str = Field(
        default="dev-jwt-secret-change-me",
        min_length=8,
        description="Secret used to sign access, refresh and remember tokens",
    )

    RATE_LIMIT_WINDOW_MS: int = Field(
        default=15 * 60 * 1000,
        gt=0,
        description="Rate limit window in milliseconds",
    )

    RATE_LIMIT_MAX_REQUESTS: int = Field(
        default=100,
        gt=0,
        description="Requests allowed per client per window",
    )

    BODY_LIMIT_BYTES: int = Field(
        default=10 * 1024 * 1024,
        gt=0,
        description="Largest accepted request body",
    )

    CORS_ALLOWED_ORIGINS: list[str] = Field(
        default_factory=lambda: list(DEFAULT_ORIGINS),
        description="Origins allowed by exact match (JSON list)",
    )

    CORS_ALLOWED_ORIGIN_PATTERNS: list[str] = Field(
        default_factory=lambda: list(DEFAULT_ORIGIN_PATTERNS),
        description="Origins allowed by regular expression search (JSON list)",
    )

    SESSION_COOKIE_DOMAIN: str | None = Field(
        default=None,
        description="Overrides the per-environment session cookie domain",
    )

    PRODUCTION_COOKIE_DOMAIN: str = Field(
        default=".homeswift-ai.vercel.app",
        description="Session cookie domain in production",
    )


@dataclass(frozen=True)
class ServerConfig:
    """Resolved configuration; every environment branch is precomputed here."""

    environment: str = "development"
    host: str = "0.0.0.0"
    port: int = 5000
    log_level: int = logging.DEBUG
    session_secret: str = "dev-secret-key"
    jwt_secret: str = "dev-jwt-secret-change-me"
    cors_origins: tuple[str, ...] = tuple(DEFAULT_ORIGINS)
    cors_origin_patterns: tuple[re.Pattern[str], ...] = tuple(
        re.compile(p) for p in DEFAULT_ORIGIN_PATTERNS
    )
    rate_limit_window_seconds: float = 15 * 60
    rate_limit_max_requests: int = 100
    body_limit_bytes: int = 10 * 1024 * 1024
    session_cookie_name: str = "homeswift.sid"
    session_ttl_seconds: int = 2 * 60 * 60
    session_sweep_interval_seconds: float = 15 * 60
    # None means "auto": secure only when the request arrived over https
    session_cookie_secure: bool | None = None
    session_cookie_samesite: SameSite = "lax"
    session_cookie_domain: str | None = "localhost"
    trusted_proxy_hops: int = 0
    request_logging: bool = True
    expose_error_details: bool = True
    expose_stack_traces: bool = True

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def trust_proxy(self) -> bool:
        return self.trusted_proxy_hops > 0


def resolve_config(settings: Settings | None = None) -> ServerConfig:
    """Precompute every environment-dependent option from ``settings``."""
    settings = settings or Settings()
    production = settings.ENVIRONMENT == "production"
    development = settings.ENVIRONMENT == "development"

    if settings.LOG_LEVEL:
        log_level = logging.getLevelName(settings.LOG_LEVEL.upper())
        if not isinstance(log_level, int):
            raise ValueError(f"Unknown LOG_LEVEL: {settings.LOG_LEVEL}")
    else:
        log_level = logging.DEBUG if development else logging.INFO

    if settings.SESSION_COOKIE_DOMAIN is not None:
        cookie_domain: str | None = settings.SESSION_COOKIE_DOMAIN or None
    else:
        cookie_domain = settings.PRODUCTION_COOKIE_DOMAIN if production else "localhost"

    return ServerConfig(
        environment=settings.ENVIRONMENT,
        host=settings.HOST,
        port=settings.PORT,
        log_level=log_level,
        session_secret=settings.SESSION_SECRET,
        jwt_secret=settings.JWT_SECRET,
        cors_origins=tuple(settings.CORS_ALLOWED_ORIGINS),
        cors_origin_patterns=tuple(
            re.compile(p) for p in settings.CORS_ALLOWED_ORIGIN_PATTERNS
        ),
        rate_limit_window_seconds=settings.RATE_LIMIT_WINDOW_MS / 1000,
        rate_limit_max_requests=settings.RATE_LIMIT_MAX_REQUESTS,
        body_limit_bytes=settings.BODY_LIMIT_BYTES,
        session_cookie_secure=True if production else None,
        session_cookie_samesite="none" if production else "lax",
        session_cookie_domain=cookie_domain,
        trusted_proxy_hops=1 if production else 0,
        request_logging=not production,
        expose_error_details=not production,
        expose_stack_traces=development,
    )
