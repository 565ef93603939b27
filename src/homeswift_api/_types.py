"""Shared type aliases and protocols."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any

# Callback types used by authentication stages
DecodeCallback = Callable[[str], Awaitable[dict[str, Any]]]
ReissueCallback = Callable[[dict[str, Any]], Awaitable[str]]
LoadUserCallback = Callable[[str], Awaitable[Any]]
