"""Typed exceptions for auth failures.

Every error carries the HTTP status and machine code it maps to, so the
boundary translator in api/errors.py never has to inspect messages.
"""


class AuthError(Exception):
    """Base class for authentication/authorization errors."""

    status_code = 500
    code = "INTERNAL_ERROR"
    default_message = "Internal Server Error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class BadRequestError(AuthError):
    """Malformed or conflicting input."""

    status_code = 400
    code = "INVALID_REQUEST"
    default_message = "Bad Request"


class DuplicateEmailError(BadRequestError):
    code = "ALREADY_EXISTS"
    default_message = "Email already registered"


class DuplicateUsernameError(BadRequestError):
    code = "ALREADY_EXISTS"
    default_message = "Username already taken"


class InvalidCredentialsError(BadRequestError):
    """
    Unknown email or wrong password.

    Both cases use this one error so responses never reveal which accounts exist.
    """

    code = "INVALID_CREDENTIALS"
    default_message = "Invalid credentials"


class InvalidVerificationTokenError(BadRequestError):
    code = "INVALID_TOKEN"
    default_message = "Invalid or expired verification token"


class UnauthorizedError(AuthError):
    """Missing, expired, or malformed credential."""

    status_code = 401
    code = "NOT_AUTHENTICATED"
    default_message = "Unauthorized"


class MissingTokenError(UnauthorizedError):
    default_message = "Missing refresh token"


class TokenExpiredError(UnauthorizedError):
    code = "TOKEN_EXPIRED"
    default_message = "Token has expired"


class TokenInvalidError(UnauthorizedError):
    code = "INVALID_TOKEN"
    default_message = "Invalid token"


class ForbiddenError(AuthError):
    """Authenticated but not allowed."""

    status_code = 403
    code = "FORBIDDEN"
    default_message = "Forbidden"


class NotVerifiedError(ForbiddenError):
    code = "EMAIL_NOT_VERIFIED"
    default_message = "Please verify your email before logging in"


class RefreshTokenReuseError(ForbiddenError):
    """
    Presented refresh token is not the one on record.

    Raised after the stored token has already been cleared, so the
    legitimate session is gone too.
    """

    code = "REFRESH_TOKEN_REUSED"
    default_message = "Invalid or expired refresh token"

    def __init__(self, message: str | None = None, user_id=None):
        self.user_id = user_id
        super().__init__(message)


class NotFoundError(AuthError):
    status_code = 404
    code = "NOT_FOUND"
    default_message = "Not Found"


class RateLimitedError(AuthError):
    """Too many attempts. Client should wait before retrying."""

    status_code = 429
    code = "RATE_LIMITED"

    def __init__(self, retry_after_seconds: int):
        self.retry_after_seconds = retry_after_seconds
        super().__init__(f"Rate limited. Retry after {retry_after_seconds} seconds.")


class InternalError(AuthError):
    """Unexpected persistence or signing failure."""
