"""Application factory and entrypoint."""

import logging
import os
from dataclasses import dataclass

import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.errors import register_error_handlers
from api.health import create_health_router
from api.middleware import RequestIDMiddleware
from auth.api import create_auth_router, rate_limited
from auth.config import AuthConfig, TokenSecrets
from auth.database import AuthDatabase
from auth.password import PasswordHasher
from auth.rate_limiter import RateLimiter
from auth.secure_token import SecureTokenGenerator
from auth.security_logger import SecurityLogger
from auth.security_middleware import AuthMiddleware
from auth.service import AuthService
from auth.session import SessionManager
from auth.tokens import TokenCodec
from clients.email_client import EmailGatewayClient
from clients.postgres_client import PostgresClient
from clients.valkey_client import ValkeyClient
from clients.vault_client import (
    get_database_url,
    get_email_config,
    get_token_secrets,
    get_valkey_url,
)
from habits.api import create_habits_router
from habits.service import HabitService

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Everything the HTTP layer needs, built once per process."""

    config: AuthConfig
    postgres: PostgresClient
    auth_service: AuthService
    session_manager: SessionManager
    rate_limiter: RateLimiter
    security_logger: SecurityLogger
    habit_service: HabitService


def build_services(config: AuthConfig) -> Services:
    """Build services from Vault secrets.

    Raises:
        VaultError: If a secret can't be read.
        pydantic.ValidationError: If the token secrets are too short or equal.
    """
    secrets = TokenSecrets(**get_token_secrets())

    postgres = PostgresClient(get_database_url())
    valkey = ValkeyClient(get_valkey_url())
    email_client = EmailGatewayClient(**get_email_config())

    auth_db = AuthDatabase(postgres)
    security_logger = SecurityLogger(postgres)
    session_manager = SessionManager(TokenCodec(secrets, config), auth_db)

    auth_service = AuthService(
        config=config,
        auth_db=auth_db,
        session_manager=session_manager,
        password_hasher=PasswordHasher(config),
        token_generator=SecureTokenGenerator(),
        email_client=email_client,
        security_logger=security_logger,
    )

    return Services(
        config=config,
        postgres=postgres,
        auth_service=auth_service,
        session_manager=session_manager,
        rate_limiter=RateLimiter(valkey, config),
        security_logger=security_logger,
        habit_service=HabitService(postgres),
    )


def create_app(services: Services) -> FastAPI:
    """Wire routers, middleware and error handlers around built services."""
    config = services.config
    app = FastAPI(title=config.app_name)

    register_error_handlers(app)

    # Added innermost first: RequestID wraps CORS wraps Auth
    app.add_middleware(AuthMiddleware, session_manager=services.session_manager)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[config.frontend_url],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestIDMiddleware)

    # Every router counts against the per-IP api limit
    api_limited = rate_limited(services.rate_limiter, services.security_logger, RateLimiter.API)

    app.include_router(
        create_auth_router(
            auth_service=services.auth_service,
            config=config,
            rate_limiter=services.rate_limiter,
            security_logger=services.security_logger,
        ),
        dependencies=[api_limited],
    )
    app.include_router(create_habits_router(services.habit_service), dependencies=[api_limited])
    app.include_router(create_health_router(services.postgres), dependencies=[api_limited])

    @app.get("/")
    async def root():
        return {"success": True, "message": f"{config.app_name} API"}

    return app


def main() -> None:
    load_dotenv()
    logging.basicConfig(
        level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = AuthConfig.from_env()
    services = build_services(config)
    logger.info(f"Starting {config.app_name} ({config.environment})")

    uvicorn.run(
        create_app(services),
        host=os.environ.get("HOST", "0.0.0.0"),
        port=int(os.environ.get("PORT", "8000")),
    )


if __name__ == "__main__":
    main()
