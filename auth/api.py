"""HTTP routes for authentication."""

import ipaddress

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request, Response

from api.base import success_response
from auth.config import AuthConfig
from auth.exceptions import ForbiddenError, RateLimitedError
from auth.rate_limiter import RateLimiter
from auth.security_logger import SecurityEvent, SecurityLogger
from auth.service import AuthService
from auth.types import LoginRequest, RegisterRequest, Role, TokenClaims

REFRESH_COOKIE = "refreshToken"


def _get_client_ip(request: Request) -> str | None:
    """Extract valid IP address from request, or None if invalid."""
    if not request.client:
        return None
    host = request.client.host
    try:
        ipaddress.ip_address(host)
        return host
    except ValueError:
        return None


def _cookie_attributes(config: AuthConfig) -> dict:
    return {
        "httponly": True,
        "secure": config.is_production,
        "samesite": "none" if config.is_production else "lax",
        "path": "/",
        "domain": config.cookie_domain,
    }


def _set_refresh_cookie(response: Response, token: str, config: AuthConfig) -> None:
    response.set_cookie(
        key=REFRESH_COOKIE,
        value=token,
        max_age=config.refresh_token_ttl_days * 24 * 60 * 60,
        **_cookie_attributes(config),
    )


def _clear_refresh_cookie(response: Response, config: AuthConfig) -> None:
    # Same attributes as when set, or browsers keep the original cookie
    response.delete_cookie(key=REFRESH_COOKIE, **_cookie_attributes(config))


def rate_limited(rate_limiter: RateLimiter, security_logger: SecurityLogger, scope: str):
    """Dependency counting the request against the caller's IP in `scope`.

    Over-limit requests are recorded as RATE_LIMITED before the 429 goes out.
    """

    def enforce(request: Request) -> None:
        ip_address = _get_client_ip(request)
        try:
            rate_limiter.check_rate_limit(scope, ip_address or "unknown")
        except RateLimitedError:
            security_logger.log(
                SecurityEvent.RATE_LIMITED,
                ip_address=ip_address,
                user_agent=request.headers.get("User-Agent"),
                details={"path": request.url.path, "scope": scope},
            )
            raise

    return Depends(enforce)


def create_auth_router(
    auth_service: AuthService,
    config: AuthConfig,
    rate_limiter: RateLimiter,
    security_logger: SecurityLogger,
) -> APIRouter:
    """Create auth router with injected service.

    Register and login are also counted in the stricter auth scope. The api
    scope is applied where the router is mounted.
    """
    router = APIRouter(prefix="/auth", tags=["auth"])
    auth_limited = rate_limited(rate_limiter, security_logger, RateLimiter.AUTH)

    @router.post(
        "/register",
        status_code=201,
        dependencies=[auth_limited],
    )
    def register(request: Request, body: RegisterRequest, background_tasks: BackgroundTasks):
        """Create an unverified account.

        The verification email is sent after the response goes out.
        """
        user = auth_service.register(
            name=body.name,
            email=body.email,
            username=body.username,
            password=body.password,
            ip_address=_get_client_ip(request),
            user_agent=request.headers.get("User-Agent"),
            dispatch=background_tasks.add_task,
        )
        return success_response(
            "Registration successful. Please check your email to verify your account.",
            user=user.model_dump(mode="json"),
        )

    @router.get("/verify-email")
    def verify_email(request: Request, token: str | None = Query(None)):
        result = auth_service.verify_email(
            raw_token=token,
            ip_address=_get_client_ip(request),
            user_agent=request.headers.get("User-Agent"),
        )
        if result.already_verified:
            return success_response("Email already verified")
        return success_response("Email verified successfully")

    @router.post("/login", dependencies=[auth_limited])
    def login(request: Request, response: Response, body: LoginRequest):
        """Check credentials. Sets the refreshToken cookie on success."""
        result = auth_service.login(
            email=body.email,
            password=body.password,
            ip_address=_get_client_ip(request),
            user_agent=request.headers.get("User-Agent"),
        )

        _set_refresh_cookie(response, result.refresh_token, config)

        return success_response(
            "Login successful",
            user=result.user.model_dump(mode="json"),
            accessToken=result.access_token,
        )

    @router.post("/refresh")
    def refresh(request: Request, response: Response):
        """Rotate the refresh cookie and mint a new access token."""
        result = auth_service.refresh(
            refresh_token=request.cookies.get(REFRESH_COOKIE),
            ip_address=_get_client_ip(request),
            user_agent=request.headers.get("User-Agent"),
        )

        _set_refresh_cookie(response, result.refresh_token, config)

        return success_response("Token refreshed", accessToken=result.access_token)

    @router.post("/logout")
    def logout(request: Request, response: Response):
        """Logout - revoke session and clear cookie. Never fails."""
        auth_service.logout(
            refresh_token=request.cookies.get(REFRESH_COOKIE),
            ip_address=_get_client_ip(request),
        )

        _clear_refresh_cookie(response, config)

        return success_response("Logged out successfully")

    @router.get("/me")
    async def me(request: Request):
        """Claims of the bearer token. Requires authentication (middleware sets it)."""
        claims: TokenClaims = request.state.user
        return success_response("Authenticated", user=claims.identity())

    @router.get("/security-events")
    def security_events(
        request: Request,
        email: str | None = Query(None),
        event_type: SecurityEvent | None = Query(None),
        limit: int = Query(100, ge=1, le=500),
    ):
        """Recent audit events. Admins only."""
        claims: TokenClaims = request.state.user
        if claims.role != Role.ADMIN:
            raise ForbiddenError("Admin role required")

        events = security_logger.get_recent_events(
            email=email.lower() if email else None,
            event_type=event_type,
            limit=limit,
        )
        return success_response("Security events", events=events)

    return router
