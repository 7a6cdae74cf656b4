"""Error taxonomy and the handlers that turn it into JSON responses.

Every failure leaves the service as ``{"error": <code>}`` (plus an optional
``error_description``) with a 4xx/5xx status.  OAuth failures use the short
RFC 6749 codes (invalid_client, invalid_grant, ...) so generic OAuth client
libraries can parse them; everything else uses a stable snake_case code.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class ServiceError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    error: str = "server_error"

    def __init__(
        self,
        error: str | None = None,
        description: str | None = None,
        *,
        status_code: int | None = None,
    ) -> None:
        if error is not None:
            self.error = error
        if status_code is not None:
            self.status_code = status_code
        self.description = description
        super().__init__(description or self.error)

    @property
    def headers(self) -> dict[str, str] | None:
        return None

    def to_body(self) -> dict[str, str]:
        body = {"error": self.error}
        if self.description:
            body["error_description"] = self.description
        return body


class ValidationError(ServiceError):
    """Missing or malformed request field."""

    status_code = status.HTTP_400_BAD_REQUEST
    error = "invalid_request"


class InvalidGrantError(ValidationError):
    """Authorization code unknown, expired, consumed, or issued elsewhere."""

    error = "invalid_grant"


class InvalidClientError(ValidationError):
    error = "invalid_client"


class UnsupportedOperationError(ServiceError):
    """Unrecognized grant_type / response_type."""

    status_code = status.HTTP_400_BAD_REQUEST
    error = "unsupported_operation"


class AuthenticationError(ServiceError):
    status_code = status.HTTP_401_UNAUTHORIZED
    error = "authentication_required"

    @property
    def headers(self) -> dict[str, str] | None:
        return {"WWW-Authenticate": f'Bearer error="{self.error}"'}


class NotFoundError(ServiceError):
    status_code = status.HTTP_404_NOT_FOUND
    error = "not_found"


class InternalError(ServiceError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error = "server_error"


class BackendUnavailableError(InternalError):
    """Upstream memory service refused the connection or answered garbage."""

    status_code = status.HTTP_502_BAD_GATEWAY
    error = "backend_unavailable"


class BackendTimeoutError(InternalError):
    """Upstream memory service did not answer within the configured timeout."""

    status_code = status.HTTP_504_GATEWAY_TIMEOUT
    error = "timeout"


async def _service_error_handler(request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, ServiceError)
    if exc.status_code >= 500:
        logger.error(
            "%s %s failed: %s", request.method, request.url.path, exc.to_body()
        )
    return JSONResponse(
        status_code=exc.status_code, content=exc.to_body(), headers=exc.headers
    )


async def _request_validation_handler(
    request: Request, exc: Exception
) -> JSONResponse:
    assert isinstance(exc, RequestValidationError)
    # Report field names only; the offending values may be credentials.
    fields = sorted(
        {".".join(str(p) for p in err["loc"] if p != "body") for err in exc.errors()}
    )
    logger.info(
        "Rejected malformed request  path=%s fields=%s", request.url.path, fields
    )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error": "invalid_request",
            "error_description": f"invalid or missing fields: {', '.join(fields)}",
        },
    )


_HTTP_ERROR_CODES = {
    status.HTTP_400_BAD_REQUEST: "invalid_request",
    status.HTTP_401_UNAUTHORIZED: "authentication_required",
    status.HTTP_403_FORBIDDEN: "forbidden",
    status.HTTP_404_NOT_FOUND: "not_found",
    status.HTTP_405_METHOD_NOT_ALLOWED: "method_not_allowed",
}


async def _http_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    # Routing misses (404/405) and framework-raised errors.
    assert isinstance(exc, StarletteHTTPException)
    error = _HTTP_ERROR_CODES.get(
        exc.status_code, "server_error" if exc.status_code >= 500 else "http_error"
    )
    body = {"error": error}
    if isinstance(exc.detail, str) and exc.detail:
        body["error_description"] = exc.detail
    return JSONResponse(
        status_code=exc.status_code, content=body, headers=exc.headers
    )


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "server_error"},
    )


def install_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ServiceError, _service_error_handler)
    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)
