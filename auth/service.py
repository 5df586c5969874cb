"""Authentication service - orchestrates the credential and session lifecycle."""

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable
from urllib.parse import quote
from uuid import UUID

from auth.config import AuthConfig
from auth.database import AuthDatabase
from auth.password import PasswordHasher
from auth.secure_token import SecureTokenGenerator
from auth.security_logger import SecurityLogger, SecurityEvent
from auth.session import SessionManager
from auth.types import PublicUser
from auth.exceptions import (
    BadRequestError,
    DuplicateEmailError,
    DuplicateUsernameError,
    InvalidCredentialsError,
    InvalidVerificationTokenError,
    MissingTokenError,
    NotVerifiedError,
    RefreshTokenReuseError,
)
from clients.email_client import EmailGatewayClient, EmailGatewayError
from utils.timezone import now_utc

logger = logging.getLogger(__name__)

# Runs a callable now or later. FastAPI's BackgroundTasks.add_task fits.
Dispatcher = Callable[..., None]


@dataclass
class LoginResult:
    user: PublicUser
    access_token: str
    refresh_token: str


@dataclass
class RefreshResult:
    access_token: str
    refresh_token: str


@dataclass
class VerifyResult:
    already_verified: bool


class AuthService:
    """Orchestrates password authentication with email verification.

    Handles:
    - Registration and verification email dispatch
    - Email verification (idempotent)
    - Login with single-session refresh tokens
    - Refresh-token rotation with reuse detection
    - Logout
    """

    def __init__(
        self,
        config: AuthConfig,
        auth_db: AuthDatabase,
        session_manager: SessionManager,
        password_hasher: PasswordHasher,
        token_generator: SecureTokenGenerator,
        email_client: EmailGatewayClient,
        security_logger: SecurityLogger,
    ):
        self._config = config
        self._auth_db = auth_db
        self._session_manager = session_manager
        self._password_hasher = password_hasher
        self._token_generator = token_generator
        self._email_client = email_client
        self._security_logger = security_logger

    def verification_url(self, raw_token: str) -> str:
        base = self._config.frontend_url.rstrip("/")
        return f"{base}/verify-email?token={quote(raw_token, safe='')}"

    def register(
        self,
        name: str,
        email: str,
        username: str,
        password: str,
        ip_address: str | None = None,
        user_agent: str | None = None,
        dispatch: Dispatcher | None = None,
    ) -> PublicUser:
        """Create an unverified account and send the verification link.

        The email goes through `dispatch` when given (fire-and-forget);
        otherwise it is sent inline. Either way a gateway failure is logged
        and never fails registration.

        Raises:
            DuplicateEmailError: If the email is already registered.
            DuplicateUsernameError: If the username is taken.
        """
        email = email.lower().strip()

        if self._auth_db.get_user_by_email(email) is not None:
            raise DuplicateEmailError()
        if self._auth_db.get_user_by_username(username) is not None:
            raise DuplicateUsernameError()

        password_hash = self._password_hasher.hash(password)
        token = self._token_generator.generate()
        expires_at = now_utc() + timedelta(minutes=self._config.verification_token_expiry_minutes)

        user = self._auth_db.create_user(
            name=name,
            email=email,
            username=username,
            password_hash=password_hash,
            verification_token_hash=token.hashed_token,
            verification_token_expires_at=expires_at,
        )

        self._security_logger.log(
            SecurityEvent.USER_REGISTERED,
            email=user.email,
            user_id=user.id,
            ip_address=ip_address,
            user_agent=user_agent,
        )

        url = self.verification_url(token.raw_token)
        if dispatch is not None:
            dispatch(self.send_verification_email, user.email, url, user.id)
        else:
            self.send_verification_email(user.email, url, user.id)

        logger.info(f"Registered user {user.id}")
        return PublicUser.from_user(user)

    def send_verification_email(self, email: str, verification_url: str, user_id: UUID) -> bool:
        """Send the verification link. Returns False instead of raising on gateway failure."""
        try:
            self._email_client.send_verification_email(
                email=email,
                verification_url=verification_url,
                app_name=self._config.app_name,
            )
        except EmailGatewayError as e:
            logger.error(f"Verification email to user {user_id} failed: {e}")
            self._security_logger.log(
                SecurityEvent.VERIFICATION_EMAIL_FAILED,
                email=email,
                user_id=user_id,
                details={"reason": str(e)},
            )
            return False

        self._security_logger.log(
            SecurityEvent.VERIFICATION_EMAIL_SENT,
            email=email,
            user_id=user_id,
        )
        return True

    def verify_email(
        self,
        raw_token: str | None,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> VerifyResult:
        """Consume a verification token.

        Repeat clicks on the same link succeed with already_verified=True.

        Raises:
            BadRequestError: If the token is missing.
            InvalidVerificationTokenError: If the token is unknown or expired.
        """
        if not raw_token:
            raise BadRequestError("Verification token missing")

        token_hash = self._token_generator.hash(raw_token)
        user = self._auth_db.get_user_by_verification_hash(token_hash)

        if user is None:
            raise InvalidVerificationTokenError()

        if user.is_verified:
            return VerifyResult(already_verified=True)

        # A concurrent click may have flipped it between read and write
        transitioned = self._auth_db.mark_verified(user.id)

        if transitioned:
            self._security_logger.log(
                SecurityEvent.EMAIL_VERIFIED,
                email=user.email,
                user_id=user.id,
                ip_address=ip_address,
                user_agent=user_agent,
            )

        return VerifyResult(already_verified=not transitioned)

    def login(
        self,
        email: str,
        password: str,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> LoginResult:
        """Check credentials and open the user's single session.

        The password is compared before the verification state is looked at,
        so NotVerifiedError is only reachable with a correct password.

        Raises:
            InvalidCredentialsError: Unknown email or wrong password.
            NotVerifiedError: Correct credentials, email not yet verified.
        """
        email = email.lower().strip()
        user = self._auth_db.get_user_by_email(email)

        if user is None:
            self._password_hasher.verify_dummy(password)
            self._log_login_failed(email, None, ip_address, user_agent, "user_not_found")
            raise InvalidCredentialsError()

        if not self._password_hasher.verify(password, user.password_hash):
            self._log_login_failed(email, user.id, ip_address, user_agent, "bad_password")
            raise InvalidCredentialsError()

        if not user.is_verified:
            self._log_login_failed(email, user.id, ip_address, user_agent, "not_verified")
            raise NotVerifiedError()

        pair = self._session_manager.create_session(user)

        self._security_logger.log(
            SecurityEvent.LOGIN_SUCCEEDED,
            email=user.email,
            user_id=user.id,
            ip_address=ip_address,
            user_agent=user_agent,
        )

        return LoginResult(
            user=PublicUser.from_user(user),
            access_token=pair.access_token,
            refresh_token=pair.refresh_token,
        )

    def _log_login_failed(
        self,
        email: str,
        user_id: UUID | None,
        ip_address: str | None,
        user_agent: str | None,
        reason: str,
    ) -> None:
        self._security_logger.log(
            SecurityEvent.LOGIN_FAILED,
            email=email,
            user_id=user_id,
            ip_address=ip_address,
            user_agent=user_agent,
            details={"reason": reason},
        )

    def refresh(
        self,
        refresh_token: str | None,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> RefreshResult:
        """Rotate the refresh token and mint a new access token.

        Raises:
            MissingTokenError: No refresh token presented.
            TokenExpiredError / TokenInvalidError: Token does not verify.
            RefreshTokenReuseError: Token is not the stored one; session cleared.
        """
        if not refresh_token:
            raise MissingTokenError()

        try:
            user, pair = self._session_manager.rotate_session(refresh_token)
        except RefreshTokenReuseError as e:
            self._security_logger.log(
                SecurityEvent.REFRESH_TOKEN_REUSE_DETECTED,
                user_id=e.user_id,
                ip_address=ip_address,
                user_agent=user_agent,
            )
            raise

        self._security_logger.log(
            SecurityEvent.TOKEN_REFRESHED,
            email=user.email,
            user_id=user.id,
            ip_address=ip_address,
            user_agent=user_agent,
        )

        return RefreshResult(access_token=pair.access_token, refresh_token=pair.refresh_token)

    def logout(self, refresh_token: str | None, ip_address: str | None = None) -> None:
        """Revoke the session holding this refresh token.

        Safe to call with a missing, stale, or unknown token.
        """
        if not refresh_token:
            return

        user_id = self._session_manager.revoke_session(refresh_token)

        if user_id is not None:
            self._security_logger.log(
                SecurityEvent.LOGOUT,
                user_id=user_id,
                ip_address=ip_address,
            )
