"""Routers mounted by the application factory."""

from fastapi import APIRouter

from homeswift_api.routers import auth, diagnostics, properties, search, users


def default_routers() -> dict[str, APIRouter]:
    """Prefix → router table for the mounted sub-APIs."""
    return {
        "/api/auth": auth.router,
        "/api/users": users.router,
        "/api/search": search.router,
        "/api/test": diagnostics.router,
        "/api/properties": properties.router,
    }


__all__ = ["default_routers"]
