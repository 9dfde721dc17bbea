"""
Error handling middleware.

Every error leaves the API as an ErrorResponse body. Domain exceptions
keep their code and details; storage failures on the availability path
come back as 503 with Retry-After, so callers treat the check as failed
rather than as "insufficient stock".
"""

import traceback
from collections.abc import Awaitable, Callable
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from stockledger.application.dto.responses import ErrorResponse
from stockledger.config import get_logger
from stockledger.core.exceptions import (
    CompanyNotFoundError,
    ConfigurationError,
    DataInconsistencyError,
    LedgerQueryError,
    StockLedgerError,
    StorageError,
    UnknownJobError,
    ValidationError,
)

logger = get_logger(__name__)

# First match wins, so subclasses go before their bases
EXCEPTION_STATUS_MAP: dict[type[Exception], int] = {
    ValidationError: status.HTTP_400_BAD_REQUEST,
    CompanyNotFoundError: status.HTTP_404_NOT_FOUND,
    UnknownJobError: status.HTTP_404_NOT_FOUND,
    DataInconsistencyError: status.HTTP_409_CONFLICT,
    LedgerQueryError: status.HTTP_503_SERVICE_UNAVAILABLE,
    StorageError: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ConfigurationError: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ValueError: status.HTTP_400_BAD_REQUEST,
}

HINT_MAP: dict[str, str] = {
    "COMPANY_NOT_FOUND": "Check the company ID; inactive companies are rejected.",
    "UNKNOWN_JOB": "Use GET /api/jobs/status to list available jobs.",
    "DATA_INCONSISTENCY": "Reference data is contradictory. Fix the beginning balances or item types, then re-enqueue.",
    "LEDGER_QUERY_ERROR": "A ledger read failed. Retry later; queued recalculations retry automatically.",
    "DATABASE_ERROR": "A database operation failed. Check server logs.",
    "VALIDATION_ERROR": "Check the request body against the API schema.",
    "ValueError": "A parameter value is invalid. Check the request.",
}

STATUS_HINTS: dict[int, str] = {
    400: "Check the request parameters and body.",
    404: "The requested resource was not found. Verify the ID.",
    409: "The request conflicts with stored data.",
    422: "The request could not be processed. Check the input format.",
    500: "An internal error occurred. Check server logs.",
    503: "The service is temporarily unavailable. Retry later.",
}

RETRY_AFTER_SECONDS = 30


def _get_hint(error_code: str, status_code: int) -> str:
    return HINT_MAP.get(error_code) or STATUS_HINTS.get(status_code, "")


def status_for(exc: Exception) -> int:
    """HTTP status for an exception."""
    for exc_type, code in EXCEPTION_STATUS_MAP.items():
        if isinstance(exc, exc_type):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def error_json(
    request: Request,
    status_code: int,
    error_code: str,
    message: str,
    details: dict[str, Any] | None = None,
    detail: str | None = None,
) -> JSONResponse:
    """Build the standard error body, plus Retry-After on 503."""
    body = ErrorResponse(
        error_code=error_code,
        message=message,
        hint=_get_hint(error_code, status_code),
        detail=detail,
        details=details or {},
        path=request.url.path,
        request_id=getattr(request.state, "request_id", None),
    )
    headers = (
        {"Retry-After": str(RETRY_AFTER_SECONDS)}
        if status_code == status.HTTP_503_SERVICE_UNAVAILABLE
        else None
    )
    return JSONResponse(
        status_code=status_code, content=body.model_dump(mode="json"), headers=headers
    )


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Turns exceptions escaping a route into ErrorResponse JSON."""

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        try:
            return await call_next(request)
        except Exception as e:
            return self._handle_exception(request, e)

    def _handle_exception(self, request: Request, exc: Exception) -> JSONResponse:
        status_code = status_for(exc)

        if isinstance(exc, StockLedgerError):
            error_code, message, details = exc.code, exc.message, exc.details
        else:
            error_code, message, details = exc.__class__.__name__, str(exc), {}

        log = logger.error if status_code >= 500 else logger.warning
        log(
            "request_error",
            request_id=getattr(request.state, "request_id", None),
            path=request.url.path,
            status=status_code,
            error_type=error_code,
            error=message,
            traceback=traceback.format_exc() if status_code >= 500 else None,
        )

        return error_json(request, status_code, error_code, message, details)


def setup_exception_handlers(app: FastAPI) -> None:
    """Register handlers for framework-raised errors."""

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        errors = [
            {"field": ".".join(str(part) for part in e["loc"]), "message": e["msg"]}
            for e in exc.errors()
        ]
        return error_json(
            request,
            422,
            "VALIDATION_ERROR",
            "Request validation failed",
            details={"errors": errors},
            detail="; ".join(f"{e['field']}: {e['message']}" for e in errors),
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        error_code = {404: "NOT_FOUND", 400: "BAD_REQUEST"}.get(exc.status_code, "HTTP_ERROR")
        return error_json(
            request, exc.status_code, error_code, exc.detail or "An error occurred"
        )
