"""Error taxonomy and FastAPI exception handlers.

Domain code raises the ``FxGuardError`` subclasses below; only the request
boundary turns them into HTTP responses. ``ValidationError`` and ``NoDataError``
reach the caller with their own status and message, everything else becomes a
generic 500 with the detail logged server-side.
"""

from __future__ import annotations

import logging

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette import status

logger = logging.getLogger("fxguard.errors")

INTERNAL_ERROR_MESSAGE = "Internal server error"


class FxGuardError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR


class ValidationError(FxGuardError):
    """Malformed or missing request input."""

    status_code = status.HTTP_400_BAD_REQUEST


class NoDataError(FxGuardError):
    """Requested rate data does not exist in the store yet."""

    status_code = status.HTTP_404_NOT_FOUND


class ProviderError(FxGuardError):
    """External rate provider unreachable or returned a hard failure."""


class ProviderUnavailableError(ProviderError):
    """Provider answered but cannot serve right now (quota / usage limit)."""


class MissingQuoteError(ProviderError):
    """Provider response lacks a currency leg needed for the rate."""


class AcquisitionTimeoutError(ProviderError):
    """Acquisition ran past its wall-clock budget and was abandoned."""


class PersistenceError(FxGuardError):
    """A store read or write failed."""


class ConflictError(PersistenceError):
    """A record with the same key already exists."""


def domain_error_handler(request: Request, exc: FxGuardError):  # type: ignore
    if isinstance(exc, (ValidationError, NoDataError)):
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc)})
    logger.error(
        "%s on %s %s",
        type(exc).__name__,
        request.method,
        request.url.path,
        exc_info=(type(exc), exc, exc.__traceback__),
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": INTERNAL_ERROR_MESSAGE},
    )


def http_error_handler(request: Request, exc):  # type: ignore
    if exc.status_code == status.HTTP_404_NOT_FOUND:
        message = f"No route for {request.method} {request.url.path}"
    else:
        message = str(exc.detail)
    return JSONResponse(status_code=exc.status_code, content={"error": message})


def validation_error_handler(request: Request, exc: RequestValidationError):  # type: ignore
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error": "Invalid request",
            "detail": jsonable_errors(exc),
        },
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    # ctx may hold exception instances that json cannot encode
    return [
        {k: v for k, v in err.items() if k in ("loc", "msg", "type")}
        for err in exc.errors()
    ]


def server_error_handler(request: Request, exc: Exception):  # type: ignore
    logger.exception("unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": INTERNAL_ERROR_MESSAGE},
        # Rendered outside the middleware stack, so CORS is set here
        headers={"Access-Control-Allow-Origin": "*"},
    )
