"""Unified API response format."""

from pydantic import BaseModel, ConfigDict, Field


class APIResponse(BaseModel):
    """
    Unified response format for all API endpoints.

    Every body carries `success` and `message`. Success bodies add their
    payload fields at the top level (`user`, `accessToken`, ...); failure
    bodies add a machine-readable `code`.
    """

    model_config = ConfigDict(extra="allow")

    success: bool
    message: str = Field(..., description="Human-readable outcome")
    code: str | None = Field(None, description="Machine-readable error code")


def success_response(message: str, **data) -> dict:
    """Create a success body. Extra keyword arguments become top-level fields."""
    return APIResponse(success=True, message=message, **data).model_dump(
        mode="json", exclude_none=True
    )


def error_response(code: str, message: str) -> dict:
    """Create an error body."""
    return APIResponse(success=False, message=message, code=code).model_dump(mode="json")


class ErrorCodes:
    """Standard error codes for consistent error handling."""

    # Authentication & Authorization
    NOT_AUTHENTICATED = "NOT_AUTHENTICATED"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    INVALID_TOKEN = "INVALID_TOKEN"
    FORBIDDEN = "FORBIDDEN"
    RATE_LIMITED = "RATE_LIMITED"

    # Resource Errors
    NOT_FOUND = "NOT_FOUND"
    ALREADY_EXISTS = "ALREADY_EXISTS"

    # Validation Errors
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_REQUEST = "INVALID_REQUEST"

    # Infrastructure
    INTERNAL_ERROR = "INTERNAL_ERROR"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
