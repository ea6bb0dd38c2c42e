from __future__ import annotations

from enum import StrEnum


class ProviderErrorCause(StrEnum):
    TIMEOUT = "timeout"
    HTTP_STATUS = "http-status"
    MALFORMED_PAYLOAD = "malformed-payload"
    RATE_LIMITED = "rate-limited"
    UNEXPECTED = "unexpected"


class TracevistaError(Exception):
    """Base class for errors raised by the aggregation core."""


class SubjectValidationError(TracevistaError, ValueError):
    """Search input is unusable; raised before any provider is called."""


class ProviderCallError(TracevistaError):
    """A provider adapter failed in a way it could classify itself."""

    def __init__(
        self,
        provider: str,
        message: str,
        *,
        cause: ProviderErrorCause = ProviderErrorCause.UNEXPECTED,
        status_code: int | None = None,
    ):
        super().__init__(f"{provider}: {message}")
        self.provider = provider
        self.message = message
        self.cause = cause
        self.status_code = status_code
