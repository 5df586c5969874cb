"""Security middleware for FastAPI - access token validation and user context."""

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Match

from auth.exceptions import UnauthorizedError
from auth.session import SessionManager
from api.base import error_response, ErrorCodes
from utils.user_context import user_context


class AuthMiddleware(BaseHTTPMiddleware):
    """Middleware that validates the bearer access token and sets user context.

    For protected routes:
    1. Extracts the token from 'Authorization: Bearer <token>'
    2. Verifies it via SessionManager
    3. Sets the claims in request.state.user and the user context
    4. Clears context after request completes

    Public paths bypass authentication entirely. Paths no route matches are
    passed through so the router answers 404.
    """

    PUBLIC_PATHS = [
        "/auth/register",
        "/auth/login",
        "/auth/verify-email",
        "/auth/refresh",
        "/auth/logout",
        "/health",
        "/docs",
        "/openapi.json",
    ]

    # Matched exactly, never as a prefix
    PUBLIC_EXACT_PATHS = ["/"]

    def __init__(self, app, session_manager: SessionManager):
        super().__init__(app)
        self._session_manager = session_manager

    def _is_public_path(self, path: str) -> bool:
        """Check if path is in public paths list."""
        if path in self.PUBLIC_EXACT_PATHS:
            return True
        for public_path in self.PUBLIC_PATHS:
            if path == public_path or path.startswith(public_path + "/"):
                return True
        return False

    @staticmethod
    def _has_route(request: Request) -> bool:
        """True if any route matches the path, whatever the method."""
        for route in request.app.routes:
            match, _ = route.matches(request.scope)
            if match != Match.NONE:
                return True
        return False

    @staticmethod
    def _bearer_token(request: Request) -> str | None:
        header = request.headers.get("Authorization", "")
        scheme, _, token = header.partition(" ")
        if scheme.lower() != "bearer" or not token.strip():
            return None
        return token.strip()

    async def dispatch(self, request: Request, call_next):
        """Process request through middleware."""
        path = request.url.path

        # Skip auth for public paths and CORS preflight
        if request.method == "OPTIONS" or self._is_public_path(path):
            return await call_next(request)

        if not self._has_route(request):
            return await call_next(request)

        token = self._bearer_token(request)

        if not token:
            return JSONResponse(
                status_code=401,
                content=error_response(
                    ErrorCodes.NOT_AUTHENTICATED,
                    "Authentication required",
                ),
            )

        try:
            claims = self._session_manager.validate_access(token)
        except UnauthorizedError as e:
            return JSONResponse(
                status_code=e.status_code,
                content=error_response(e.code, e.message),
            )

        request.state.user = claims

        with user_context(claims):
            return await call_next(request)
