"""Authentication configuration."""

import os
from typing import Literal

from pydantic import BaseModel, Field, SecretStr, model_validator

MIN_SECRET_BYTES = 32


class AuthConfig(BaseModel):
    """
    Authentication configuration.

    All durations are in their natural units (minutes for short-lived tokens,
    days for refresh tokens) to make configuration intuitive.
    """

    # Token lifetimes
    access_token_ttl_minutes: int = Field(
        default=15,
        description="Access token lifetime",
        ge=1,
        le=60,
    )
    refresh_token_ttl_days: int = Field(
        default=7,
        description="Refresh token and refresh cookie lifetime",
        ge=1,
        le=30,
    )
    verification_token_expiry_minutes: int = Field(
        default=60,
        description="How long email verification links remain valid",
        ge=5,
        le=1440,
    )

    # Password hashing
    bcrypt_rounds: int = Field(
        default=12,
        description="bcrypt cost factor",
        ge=10,
        le=20,
    )

    # Rate limiting
    auth_rate_limit_attempts: int = Field(
        default=5,
        description="Max register/login attempts per IP per window",
        ge=1,
        le=50,
    )
    auth_rate_limit_window_minutes: int = Field(
        default=10,
        description="Auth rate limit window duration",
        ge=1,
        le=60,
    )
    api_rate_limit_requests: int = Field(
        default=100,
        description="Max API requests per IP per window",
        ge=1,
    )
    api_rate_limit_window_minutes: int = Field(
        default=15,
        description="API rate limit window duration",
        ge=1,
        le=60,
    )

    # Application
    environment: Literal["development", "staging", "production", "test"] = "development"
    cookie_domain: str | None = Field(
        default=None,
        description="Domain attribute for the refresh token cookie",
    )
    frontend_url: str = Field(
        default="http://localhost:3000",
        description="Base URL for verification link generation",
    )
    app_name: str = Field(
        default="Habits",
        description="Application name for emails",
    )

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @classmethod
    def from_env(cls) -> "AuthConfig":
        """Build config from environment variables, falling back to defaults."""
        mapping = {
            "environment": "APP_ENV",
            "cookie_domain": "COOKIE_DOMAIN",
            "frontend_url": "FRONTEND_URL",
            "app_name": "APP_NAME",
            "bcrypt_rounds": "BCRYPT_ROUNDS",
            "access_token_ttl_minutes": "ACCESS_TOKEN_TTL_MINUTES",
            "refresh_token_ttl_days": "REFRESH_TOKEN_TTL_DAYS",
        }
        values = {
            field: os.environ[var]
            for field, var in mapping.items()
            if os.environ.get(var)
        }
        return cls(**values)


class TokenSecrets(BaseModel):
    """
    Signing keys for access and refresh tokens.

    Loaded once at startup and immutable for the life of the process.
    Construction fails on short or shared secrets, which stops the app
    from booting.
    """

    access_secret: SecretStr
    refresh_secret: SecretStr

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _check_strength(self) -> "TokenSecrets":
        access = self.access_secret.get_secret_value().encode("utf-8")
        refresh = self.refresh_secret.get_secret_value().encode("utf-8")

        if len(access) < MIN_SECRET_BYTES:
            raise ValueError(f"access_secret must be at least {MIN_SECRET_BYTES} bytes")
        if len(refresh) < MIN_SECRET_BYTES:
            raise ValueError(f"refresh_secret must be at least {MIN_SECRET_BYTES} bytes")
        if access == refresh:
            raise ValueError("access_secret and refresh_secret must differ")
        return self
