import uuid
from datetime import UTC, datetime
from typing import Any

from fastapi import HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from api.config.logging import add_request_context, get_logger

logger = get_logger(__name__)


class StudioJobsException(Exception):
    """Base exception for the job orchestration service.

    ``log_level`` picks how the API handler reports it: client mistakes are
    warnings, failures on our side or the provider's are errors.
    """

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    log_level: str = "error"

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(StudioJobsException):
    """Bad input: malformed storyboard, empty or illegal progress update."""

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    log_level = "warning"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, details=details)


class NotFoundError(StudioJobsException):
    """Missing render job, schedule entry or content session."""

    status_code = status.HTTP_404_NOT_FOUND
    log_level = "warning"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, details=details)


class ProviderError(StudioJobsException):
    """The render provider is unreachable or rejected the job."""

    status_code = status.HTTP_502_BAD_GATEWAY

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, details=details)


class SideEffectError(StudioJobsException):
    """Failure of a best-effort write (audit event, metrics row, analysis).

    Logged by the caller and never raised past it.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, details=details)


class UnauthorizedError(StudioJobsException):
    """No usable credentials on the request."""

    status_code = status.HTTP_401_UNAUTHORIZED
    log_level = "warning"

    def __init__(
        self, message: str = "Unauthorized", details: dict[str, Any] | None = None
    ):
        super().__init__(message, details=details)


class ForbiddenError(StudioJobsException):
    """Credentials present but not accepted."""

    status_code = status.HTTP_403_FORBIDDEN
    log_level = "warning"

    def __init__(
        self, message: str = "Forbidden", details: dict[str, Any] | None = None
    ):
        super().__init__(message, details=details)


def create_error_response(
    status_code: int,
    message: str,
    details: dict[str, Any] | None = None,
    request_id: str | None = None,
) -> dict[str, Any]:
    """Create standardized error response envelope."""
    return {
        "ok": False,
        "error": {
            "message": message,
            "code": status_code,
            "details": details or {},
        },
        "request_id": request_id,
        "timestamp": datetime.now(UTC).isoformat(),
    }


def create_success_response(
    data: Any, message: str | None = None, request_id: str | None = None
) -> dict[str, Any]:
    """Create standardized success response envelope."""
    return {
        "ok": True,
        "data": data,
        "message": message,
        "request_id": request_id,
        "timestamp": datetime.now(UTC).isoformat(),
    }


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or str(uuid.uuid4())


def _error_response(
    request: Request,
    status_code: int,
    message: str,
    details: dict[str, Any] | None = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=create_error_response(
            status_code=status_code,
            message=message,
            details=details,
            request_id=_request_id(request),
        ),
    )


async def studio_jobs_exception_handler(
    request: Request, exc: StudioJobsException
) -> JSONResponse:
    log = getattr(logger, exc.log_level, logger.error)
    log(
        "Application exception",
        exception=exc.__class__.__name__,
        message=exc.message,
        status_code=exc.status_code,
        details=exc.details,
        path=request.url.path,
    )
    return _error_response(request, exc.status_code, exc.message, exc.details)


async def request_validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Malformed bodies get the same envelope as ValidationError."""
    errors = jsonable_encoder(exc.errors())
    logger.warning(
        "Request validation failed",
        path=request.url.path,
        error_count=len(errors),
    )
    return _error_response(
        request,
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "Request validation failed",
        {"errors": errors},
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    logger.warning("HTTP exception", status_code=exc.status_code, detail=exc.detail)
    return _error_response(request, exc.status_code, str(exc.detail))


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "Unhandled exception",
        exception=exc.__class__.__name__,
        message=str(exc),
        path=request.url.path,
        exc_info=True,
    )
    return _error_response(
        request, status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error"
    )


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Binds a correlation id to every log line emitted while serving a request."""

    async def dispatch(self, request: Request, call_next):
        # Upstream ids are honoured so provider webhooks trace end to end
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id

        add_request_context(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response
