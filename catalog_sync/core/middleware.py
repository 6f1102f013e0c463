"""
Middleware — CORS and exception-to-HTTP mapping.

Middleware configuration for the FastAPI application.

Maps the exception taxonomy to client-facing status codes so routes
can raise domain errors directly.
Version: 1.0.0
"""
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from catalog_sync.core.exceptions import (
    AuthenticationFailed,
    InvalidOrExpiredState,
    NotLinked,
    RetryableError,
    TokenExchangeFailed,
    ValidationError,
)

logger = logging.getLogger("middleware")

# (status code, error code) per exception type; first match wins
_ERROR_MAP = (
    (AuthenticationFailed, 401, "AUTHENTICATION_FAILED"),
    (InvalidOrExpiredState, 400, "INVALID_OR_EXPIRED_STATE"),
    (ValidationError, 400, "VALIDATION_ERROR"),
    (TokenExchangeFailed, 502, "TOKEN_EXCHANGE_FAILED"),
    (NotLinked, 409, "NOT_LINKED"),
    (RetryableError, 503, "UPSTREAM_UNAVAILABLE"),
)


def apply_cors(app: FastAPI) -> None:
    """Apply CORS middleware with permissive defaults."""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


def _error_response(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"detail": {"code": code, "message": message}},
    )


async def domain_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Translate a domain exception into its HTTP response."""
    for exc_type, status_code, code in _ERROR_MAP:
        if isinstance(exc, exc_type):
            if exc_type is AuthenticationFailed:
                logger.warning(
                    "security: rejected unauthenticated request path=%s client=%s",
                    request.url.path,
                    request.client.host if request.client else None,
                )
                # Never reveal which check failed
                return _error_response(status_code, code, "Request authentication failed")
            return _error_response(status_code, code, str(exc))
    logger.error(f"Unhandled domain error on {request.url.path}: {exc}")
    return _error_response(500, "INTERNAL_ERROR", "An unexpected error occurred")


def apply_exception_handlers(app: FastAPI) -> None:
    """Register handlers for every mapped exception type."""
    for exc_type, _, _ in _ERROR_MAP:
        app.add_exception_handler(exc_type, domain_exception_handler)
