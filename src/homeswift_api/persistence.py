"""Persistence collaborators — Database protocol and an in-memory implementation.

The server only needs connectivity, shutdown and a handful of lookups from
its database. ``InMemoryDatabase`` satisfies that contract for development
and tests; a real deployment passes its own ``Database`` to ``create_app``.
"""

from __future__ import annotations

import hashlib
import hmac
import itertools
import logging
import secrets
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from starlette.concurrency import run_in_threadpool

logger = logging.getLogger(__name__)


@dataclass
class User:
    id: str
    email: str
    name: str
    password_hash: str = field(repr=False)
    roles: list[str] = field(default_factory=lambda: ["user"])

    def public(self) -> dict[str, Any]:
        return {"id": self.id, "email": self.email, "name": self.name, "roles": self.roles}


@dataclass
class Property:
    id: str
    title: str
    city: str
    price: int
    bedrooms: int
    owner_id: str | None = None

    def public(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "city": self.city,
            "price": self.price,
            "bedrooms": self.bedrooms,
            "ownerId": self.owner_id,
        }


@runtime_checkable
class UserRepository(Protocol):
    async def get(self, user_id: str) -> User | None: ...
    async def authenticate(self, email: str, password: str) -> User | None: ...


@runtime_checkable
class PropertyRepository(Protocol):
    async def get(self, property_id: str) -> Property | None: ...
    async def add(self, **fields: Any) -> Property: ...
    async def find(
        self,
        *,
        filters: dict[str, str] | None = None,
        text: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[Property], int]: ...


@runtime_checkable
class Database(Protocol):
    """What the server needs from its persistence layer."""

    users: UserRepository
    properties: PropertyRepository

    @property
    def connected(self) -> bool: ...
    async def connect(self) -> None: ...
    async def close(self) -> None: ...


def hash_password(password: str, *, salt: bytes | None = None) -> str:
    salt = salt or secrets.token_bytes(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, 120_000)
    return f"{salt.hex()}${digest.hex()}"


def verify_password(password: str, stored: str) -> bool:
    salt_hex, _, digest_hex = stored.partition("$")
    candidate = hash_password(password, salt=bytes.fromhex(salt_hex))
    return hmac.compare_digest(candidate.partition("$")[2], digest_hex)


class InMemoryUserRepository:
    def __init__(self) -> None:
        self._users: dict[str, User] = {}
        self._ids = itertools.count(1)

    async def get(self, user_id: str) -> User | None:
        return self._users.get(user_id)

    async def authenticate(self, email: str, password: str) -> User | None:
        for user in self._users.values():
            if user.email.lower() == email.lower():
                ok = await run_in_threadpool(
                    verify_password, password, user.password_hash
                )
                return user if ok else None
        return None

    def add(
        self, email: str, password: str, name: str, roles: list[str] | None = None
    ) -> User:
        user = User(
            id=str(next(self._ids)),
            email=email,
            name=name,
            password_hash=hash_password(password),
            roles=roles or ["user"],
        )
        self._users[user.id] = user
        return user


_NUMERIC_FILTERS = {
    "min_price": ("price", int.__ge__),
    "max_price": ("price", int.__le__),
    "bedrooms": ("bedrooms", int.__ge__),
}

NUMERIC_FILTERS = frozenset(_NUMERIC_FILTERS)
LISTING_FILTERS = ("city", *_NUMERIC_FILTERS)


class InMemoryPropertyRepository:
    def __init__(self) -> None:
        self._properties: dict[str, Property] = {}
        self._ids = itertools.count(1)

    async def get(self, property_id: str) -> Property | None:
        return self._properties.get(property_id)

    async def add(self, **fields: Any) -> Property:
        listing = Property(id=str(next(self._ids)), **fields)
        self._properties[listing.id] = listing
        return listing

    async def find(
        self,
        *,
        filters: dict[str, str] | None = None,
        text: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[Property], int]:
        matches = [p for p in self._properties.values() if _matches(p, filters or {}, text)]
        return matches[offset : offset + limit], len(matches)


def _matches(listing: Property, filters: dict[str, str], text: str | None) -> bool:
    if text:
        needle = text.lower()
        if needle not in listing.title.lower() and needle not in listing.city.lower():
            return False
    for key, raw in filters.items():
        if key == "city":
            if listing.city.lower() != raw.lower():
                return False
        elif key in _NUMERIC_FILTERS:
            attr, compare = _NUMERIC_FILTERS[key]
            try:
                bound = int(raw)
            except ValueError:
                return False
            if not compare(getattr(listing, attr), bound):
                return False
    return True


class InMemoryDatabase:
    """Reference Database: repositories in process memory."""

    def __init__(self) -> None:
        self.users = InMemoryUserRepository()
        self.properties = InMemoryPropertyRepository()
        self._connected = False

    @property
    def connected(self) -> bool:
        return self._connected

    async def connect(self) -> None:
        self._connected = True
        logger.info("Database connection established")

    async def close(self) -> None:
        self._connected = False
        logger.info("Database connection closed")
