"""JWT issuing and verification for access, refresh and remember tokens."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Literal

import jwt

from homeswift_api.exceptions import AuthenticationFailed

logger = logging.getLogger(__name__)

TokenType = Literal["access", "refresh", "remember"]


class TokenService:
    """Signs and verifies HS256 tokens carrying a ``type`` claim."""

    def __init__(
        self,
        secret: str,
        *,
        algorithm: str = "HS256",
        access_ttl: timedelta = timedelta(minutes=15),
        refresh_ttl: timedelta = timedelta(days=7),
        remember_ttl: timedelta = timedelta(days=30),
    ) -> None:
        self._secret = secret
        self._algorithm = algorithm
        self._ttls: dict[str, timedelta] = {
            "access": access_ttl,
            "refresh": refresh_ttl,
            "remember": remember_ttl,
        }

    def ttl(self, token_type: TokenType) -> timedelta:
        return self._ttls[token_type]

    def issue(
        self,
        subject: str,
        token_type: TokenType = "access",
        *,
        claims: dict[str, Any] | None = None,
    ) -> str:
        now = datetime.now(timezone.utc)
        payload: dict[str, Any] = dict(claims or {})
        payload.update(
            {
                "sub": subject,
                "type": token_type,
                "iat": now,
                "exp": now + self._ttls[token_type],
            }
        )
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def verify(self, token: str, expected_type: TokenType = "access") -> dict[str, Any]:
        try:
            payload: dict[str, Any] = jwt.decode(
                token, self._secret, algorithms=[self._algorithm]
            )
        except jwt.ExpiredSignatureError as exc:
            raise AuthenticationFailed("Token has expired") from exc
        except jwt.InvalidTokenError as exc:
            raise AuthenticationFailed("Invalid token") from exc

        if payload.get("type") != expected_type:
            logger.warning(
                "Token type mismatch: expected %s, got %s",
                expected_type,
                payload.get("type"),
            )
            raise AuthenticationFailed("Invalid token")
        return payload

    async def verify_access(self, token: str) -> dict[str, Any]:
        return self.verify(token, "access")

    async def verify_remember(self, token: str) -> dict[str, Any]:
        return self.verify(token, "remember")

    async def reissue_access(self, identity: dict[str, Any]) -> str:
        return self.issue(str(identity["sub"]), "access")
