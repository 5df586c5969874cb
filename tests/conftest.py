"""Shared test fixtures for the auth test suite."""

from datetime import datetime
from pathlib import Path
from unittest.mock import Mock
from uuid import UUID, uuid4

import pytest
from dotenv import load_dotenv

# Load .env file BEFORE any other imports that might use env vars
load_dotenv(Path(__file__).parent.parent / ".env")

from app import Services, create_app
from auth.config import AuthConfig, TokenSecrets
from auth.database import AuthDatabase
from auth.exceptions import DuplicateEmailError, DuplicateUsernameError
from auth.password import PasswordHasher
from auth.rate_limiter import RateLimiter
from auth.secure_token import SecureTokenGenerator
from auth.security_logger import SecurityLogger
from auth.service import AuthService
from auth.session import SessionManager
from auth.tokens import TokenCodec
from auth.types import Role, User
from clients.email_client import EmailGatewayClient
from clients.postgres_client import PostgresClient
from habits.service import HabitService
from utils.timezone import now_utc
from utils.user_context import clear_current_user


# =============================================================================
# TEST CONSTANTS
# =============================================================================

ACCESS_SECRET = "access-secret-for-tests-0123456789abcdef"
REFRESH_SECRET = "refresh-secret-for-tests-0123456789abcdef"

TEST_PASSWORD = "correct-horse-battery"


# =============================================================================
# IN-MEMORY CREDENTIAL STORE
# =============================================================================


class FakeAuthDatabase(AuthDatabase):
    """AuthDatabase with the same contract, backed by a dict.

    Conditional updates check their guard the way the SQL WHERE clauses do.
    """

    def __init__(self):
        self.users: dict[UUID, User] = {}

    def _replace(self, user: User, **changes) -> User:
        updated = user.model_copy(update={**changes, "updated_at": now_utc()})
        self.users[user.id] = updated
        return updated

    def get_user_by_email(self, email: str) -> User | None:
        email = email.strip().lower()
        return next((u for u in self.users.values() if u.email == email), None)

    def get_user_by_username(self, username: str) -> User | None:
        return next((u for u in self.users.values() if u.username == username), None)

    def get_user_by_id(self, user_id: UUID) -> User | None:
        return self.users.get(user_id)

    def create_user(
        self,
        name: str,
        email: str,
        username: str,
        password_hash: str,
        verification_token_hash: str,
        verification_token_expires_at: datetime,
    ) -> User:
        if self.get_user_by_email(email):
            raise DuplicateEmailError()
        if self.get_user_by_username(username):
            raise DuplicateUsernameError()

        now = now_utc()
        user = User(
            id=uuid4(),
            name=name,
            email=email.strip().lower(),
            username=username,
            password_hash=password_hash,
            is_verified=False,
            verification_token_hash=verification_token_hash,
            verification_token_expires_at=verification_token_expires_at,
            created_at=now,
            updated_at=now,
        )
        self.users[user.id] = user
        return user

    def get_user_by_verification_hash(self, token_hash: str) -> User | None:
        now = now_utc()
        for user in self.users.values():
            outstanding = (
                user.verification_token_hash == token_hash
                and user.verification_token_expires_at is not None
                and user.verification_token_expires_at > now
            )
            if outstanding or user.consumed_verification_token_hash == token_hash:
                return user
        return None

    def mark_verified(self, user_id: UUID) -> bool:
        user = self.users.get(user_id)
        if user is None or user.is_verified:
            return False
        self._replace(
            user,
            is_verified=True,
            consumed_verification_token_hash=user.verification_token_hash,
            verification_token_hash=None,
            verification_token_expires_at=None,
        )
        return True

    def set_refresh_token(self, user_id: UUID, refresh_token: str) -> None:
        user = self.users.get(user_id)
        if user is not None:
            self._replace(user, refresh_token=refresh_token)

    def rotate_refresh_token(self, user_id: UUID, old_token: str, new_token: str) -> bool:
        user = self.users.get(user_id)
        if user is None or user.refresh_token != old_token:
            return False
        self._replace(user, refresh_token=new_token)
        return True

    def clear_refresh_token(self, user_id: UUID) -> None:
        user = self.users.get(user_id)
        if user is not None:
            self._replace(user, refresh_token=None)

    def clear_refresh_token_by_value(self, refresh_token: str) -> UUID | None:
        for user in list(self.users.values()):
            if user.refresh_token == refresh_token:
                self._replace(user, refresh_token=None)
                return user.id
        return None

    # Test helpers

    def promote(self, user_id: UUID, role: Role) -> None:
        self._replace(self.users[user_id], role=role)

    def outstanding_hash(self, email: str) -> str | None:
        return self.get_user_by_email(email).verification_token_hash


# =============================================================================
# USER CONTEXT FIXTURES
# =============================================================================


@pytest.fixture(autouse=True)
def reset_user_context():
    """Ensure clean user context before and after each test."""
    clear_current_user()
    yield
    clear_current_user()


# =============================================================================
# CONFIG FIXTURES
# =============================================================================


@pytest.fixture
def config():
    """Test config with the cheapest allowed bcrypt cost."""
    return AuthConfig(
        bcrypt_rounds=10,
        environment="test",
        frontend_url="https://app.example.com",
        app_name="Habits Test",
    )


@pytest.fixture
def token_secrets():
    return TokenSecrets(access_secret=ACCESS_SECRET, refresh_secret=REFRESH_SECRET)


# =============================================================================
# SERVICE FIXTURES
# =============================================================================


@pytest.fixture
def codec(token_secrets, config):
    return TokenCodec(token_secrets, config)


@pytest.fixture
def auth_db():
    """Fresh in-memory credential store per test."""
    return FakeAuthDatabase()


@pytest.fixture
def mock_security_logger():
    return Mock(spec=SecurityLogger)


@pytest.fixture
def mock_email_client():
    """Mock email client - no actual emails sent in tests."""
    mock = Mock(spec=EmailGatewayClient)
    mock.send_verification_email.return_value = None
    return mock


@pytest.fixture
def token_generator():
    return SecureTokenGenerator()


@pytest.fixture
def session_manager(codec, auth_db):
    return SessionManager(codec, auth_db)


@pytest.fixture
def auth_service(
    config,
    auth_db,
    session_manager,
    token_generator,
    mock_email_client,
    mock_security_logger,
):
    return AuthService(
        config=config,
        auth_db=auth_db,
        session_manager=session_manager,
        password_hasher=PasswordHasher(config),
        token_generator=token_generator,
        email_client=mock_email_client,
        security_logger=mock_security_logger,
    )


@pytest.fixture
def sent_verification_token(mock_email_client):
    """Pull the raw token out of the last verification email sent."""

    def _token() -> str:
        url = mock_email_client.send_verification_email.call_args.kwargs["verification_url"]
        return url.split("token=", 1)[1]

    return _token


@pytest.fixture
def verified_user(auth_service, sent_verification_token):
    """A registered and verified user. Returns its PublicUser view."""
    user = auth_service.register(
        name="Ada Lovelace",
        email="ada@example.com",
        username="ada",
        password=TEST_PASSWORD,
    )
    auth_service.verify_email(sent_verification_token())
    return user


# =============================================================================
# HTTP FIXTURES
# =============================================================================


@pytest.fixture
def mock_rate_limiter():
    """Never limits unless a test configures side_effect."""
    return Mock(spec=RateLimiter)


@pytest.fixture
def mock_postgres():
    mock = Mock(spec=PostgresClient)
    mock.ping.return_value = True
    return mock


@pytest.fixture
def habit_service(mock_postgres):
    return HabitService(mock_postgres)


@pytest.fixture
def app(
    config,
    mock_postgres,
    auth_service,
    session_manager,
    mock_rate_limiter,
    mock_security_logger,
    habit_service,
):
    return create_app(
        Services(
            config=config,
            postgres=mock_postgres,
            auth_service=auth_service,
            session_manager=session_manager,
            rate_limiter=mock_rate_limiter,
            security_logger=mock_security_logger,
            habit_service=habit_service,
        )
    )


@pytest.fixture
def client(app):
    from fastapi.testclient import TestClient

    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client
