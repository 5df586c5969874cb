"""Global exception handlers for FastAPI.

The only place exceptions become HTTP responses.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import JSONResponse

from api.base import error_response, ErrorCodes
from auth.exceptions import AuthError, NotFoundError, RateLimitedError

logger = logging.getLogger(__name__)


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    # Drop the leading "body"/"query" segment
    loc = [str(part) for part in first.get("loc", ())[1:]]
    field = ".".join(loc)
    return f"{field}: {first.get('msg')}" if field else str(first.get("msg"))


def _auth_error_response(request: Request, exc: AuthError) -> JSONResponse:
    headers = None
    if isinstance(exc, RateLimitedError):
        headers = {"Retry-After": str(exc.retry_after_seconds)}

    if exc.status_code >= 500:
        logger.error(f"{exc.code} on {request.url.path}: {exc.message}")

    return JSONResponse(
        status_code=exc.status_code,
        headers=headers,
        content=error_response(exc.code, exc.message),
    )


def register_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the app."""

    @app.exception_handler(AuthError)
    async def auth_error_handler(request: Request, exc: AuthError):
        return _auth_error_response(request, exc)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content=error_response(ErrorCodes.VALIDATION_ERROR, _validation_message(exc)),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return _auth_error_response(request, NotFoundError("Route not found"))
        return JSONResponse(
            status_code=exc.status_code,
            headers=getattr(exc, "headers", None),
            content=error_response(ErrorCodes.INVALID_REQUEST, str(exc.detail)),
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception")
        return JSONResponse(
            status_code=500,
            content=error_response(
                ErrorCodes.INTERNAL_ERROR,
                "Internal Server Error",
            ),
        )
