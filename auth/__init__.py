"""Authentication and session modules."""

from auth.exceptions import (
    AuthError,
    BadRequestError,
    DuplicateEmailError,
    DuplicateUsernameError,
    InvalidCredentialsError,
    InvalidVerificationTokenError,
    UnauthorizedError,
    MissingTokenError,
    TokenExpiredError,
    TokenInvalidError,
    ForbiddenError,
    NotVerifiedError,
    RefreshTokenReuseError,
    NotFoundError,
    RateLimitedError,
    InternalError,
)
from auth.types import (
    Role,
    User,
    PublicUser,
    TokenClaims,
    RegisterRequest,
    LoginRequest,
)
from auth.config import AuthConfig, TokenSecrets
from auth.tokens import TokenCodec
from auth.secure_token import SecureTokenGenerator, VerificationTokenPair
from auth.password import PasswordHasher
from auth.database import AuthDatabase
from auth.rate_limiter import RateLimiter
from auth.security_logger import SecurityLogger, SecurityEvent
from auth.session import SessionManager, TokenPair
from auth.service import AuthService, LoginResult, RefreshResult, VerifyResult
from auth.security_middleware import AuthMiddleware
from auth.api import create_auth_router
