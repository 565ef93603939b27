"""ErrorHandler — the terminal stage that renders every failure exactly once."""

from __future__ import annotations

import logging
import traceback
from typing import Any

from fastapi import FastAPI
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.requests import Request
from starlette.responses import JSONResponse

from homeswift_api.exceptions import StageAbort

logger = logging.getLogger(__name__)

GENERIC_MESSAGE = "Something went wrong!"


class ErrorHandler:
    """Maps any exception to a ``{"success": false, "error": ...}`` response.

    The status comes from the failure's declared ``status_code`` (or
    ``status``), defaulting to 500. When details are not exposed, messages of
    server errors are replaced with a generic phrase; declared client errors
    keep theirs.
    """

    def __init__(
        self,
        *,
        expose_details: bool = True,
        expose_stack: bool = False,
    ) -> None:
        self._expose_details = expose_details
        self._expose_stack = expose_stack

    def render(self, exc: Exception, request: Request | None = None) -> JSONResponse:
        status = _declared_status(exc)
        declared = status is not None
        status = status or 500

        where = f"{request.method} {request.url.path}" if request is not None else "-"
        if status >= 500:
            logger.error(
                "Unhandled error on %s: %s",
                where,
                exc,
                exc_info=(type(exc), exc, exc.__traceback__),
            )
        else:
            logger.info("Request failed on %s with %d: %s", where, status, _message(exc))

        if self._expose_details or (declared and status < 500):
            message = _message(exc) or GENERIC_MESSAGE
        else:
            message = GENERIC_MESSAGE

        content: dict[str, Any] = {"success": False, "error": message}
        if isinstance(exc, RequestValidationError):
            content["details"] = jsonable_encoder(exc.errors())
        if self._expose_stack and status >= 500:
            content["stack"] = traceback.format_exception(
                type(exc), exc, exc.__traceback__
            )

        return JSONResponse(content, status_code=status, headers=_headers(exc))

    def install(self, app: FastAPI) -> None:
        """Route FastAPI's own exception handling through this handler."""

        async def handle(request: Request, exc: Exception) -> JSONResponse:
            return self.render(exc, request)

        app.add_exception_handler(StarletteHTTPException, handle)
        app.add_exception_handler(RequestValidationError, handle)
        app.add_exception_handler(StageAbort, handle)


def _declared_status(exc: Exception) -> int | None:
    if isinstance(exc, RequestValidationError):
        return 422
    for attr in ("status_code", "status"):
        value = getattr(exc, attr, None)
        if isinstance(value, int) and 400 <= value <= 599:
            return value
    return None


def _message(exc: Exception) -> str:
    if isinstance(exc, RequestValidationError):
        return "Validation failed"
    detail = getattr(exc, "detail", None)
    if isinstance(detail, str):
        return detail
    return str(exc)


def _headers(exc: Exception) -> dict[str, str] | None:
    headers = getattr(exc, "headers", None)
    if isinstance(headers, dict) and headers:
        return dict(headers)
    return None
