"""PipelineException hierarchy for controlled request aborts."""

from __future__ import annotations


class PipelineException(Exception):
    """Base for all pipeline exceptions."""


class PipelineConfigurationError(PipelineException):
    """Pipeline cannot be resolved into a valid stage order."""


class StageAbort(PipelineException):
    """Controlled abort with HTTP status code and detail."""

    def __init__(
        self,
        detail: str,
        *,
        status_code: int = 400,
        headers: dict[str, str] | None = None,
    ) -> None:
        super().__init__(detail)
        self.status_code = status_code
        self.detail = detail
        self.headers = headers or {}


class CorsRejected(StageAbort):
    """Request origin is not in the allow-list (403)."""

    def __init__(self, origin: str) -> None:
        super().__init__(f"CORS policy: {origin} not allowed", status_code=403)
        self.origin = origin


class PayloadTooLarge(StageAbort):
    """Request body exceeds the configured limit (413)."""

    def __init__(self, detail: str = "Request entity too large") -> None:
        super().__init__(detail, status_code=413)


class MalformedBody(StageAbort):
    """Request body could not be parsed (400)."""

    def __init__(self, detail: str = "Malformed request body") -> None:
        super().__init__(detail, status_code=400)


class AuthenticationFailed(StageAbort):
    """Authentication required or credentials rejected (401)."""

    def __init__(self, detail: str = "Authentication failed") -> None:
        super().__init__(detail, status_code=401)


class PermissionDenied(StageAbort):
    """Role check failed (403)."""

    def __init__(self, detail: str = "Permission denied") -> None:
        super().__init__(detail, status_code=403)


class Throttled(StageAbort):
    """Rate limit exceeded (429)."""

    def __init__(
        self,
        detail: str = "Too many requests, please try again later.",
        *,
        retry_after: int | None = None,
    ) -> None:
        headers = {"Retry-After": str(retry_after)} if retry_after else None
        super().__init__(detail, status_code=429, headers=headers)
        self.retry_after = retry_after
