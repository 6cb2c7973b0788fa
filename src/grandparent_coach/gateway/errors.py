from __future__ import annotations

from typing import Any

from fastapi import status
from fastapi.responses import JSONResponse

from grandparent_coach.gateway.schemas import ErrorResponse


class GatewayError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error = "server_error"

    def __init__(self, message: str, *, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details


class InvalidRequestError(GatewayError):
    status_code = status.HTTP_400_BAD_REQUEST
    error = "bad_request"


class RateLimitExceededError(GatewayError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    error = "rate_limit_exceeded"

    def __init__(self, message: str, *, retry_after: int, headers: dict[str, str]):
        super().__init__(message, details={"retry_after": retry_after})
        self.retry_after = retry_after
        self.headers = headers


class ProviderNotConfiguredError(GatewayError):
    error = "provider_not_configured"


class ProviderError(GatewayError):
    status_code = status.HTTP_502_BAD_GATEWAY
    error = "provider_error"


def error_response(exc: GatewayError) -> JSONResponse:
    payload = ErrorResponse(
        error=exc.error,
        message=exc.message,
        code=exc.status_code,
        details=exc.details,
    )
    headers: dict[str, str] = {}
    if isinstance(exc, RateLimitExceededError):
        headers = {**exc.headers, "Retry-After": str(exc.retry_after)}
    return JSONResponse(status_code=exc.status_code, content=payload.model_dump(), headers=headers)
