"""Pydantic models for auth domain."""

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_validator


class Role(str, Enum):
    """Capability tag on a user. Not an RBAC engine."""

    USER = "user"
    ADMIN = "admin"


class User(BaseModel):
    """A user record as stored. Never serialize this outward."""

    id: UUID
    name: str
    email: EmailStr
    username: str
    password_hash: str
    role: Role = Role.USER
    is_verified: bool  # Required - fail closed, no default
    verification_token_hash: str | None = None
    verification_token_expires_at: datetime | None = None
    consumed_verification_token_hash: str | None = None
    refresh_token: str | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class PublicUser(BaseModel):
    """The user view returned by the API."""

    id: UUID
    name: str
    email: EmailStr
    role: Role

    @classmethod
    def from_user(cls, user: User) -> "PublicUser":
        return cls(id=user.id, name=user.name, email=user.email, role=user.role)


class TokenClaims(BaseModel):
    """Claims carried by access and refresh tokens."""

    id: str
    email: str
    username: str
    role: Role
    sub: str = Field(..., description="Subject - the user id")
    iat: int
    exp: int
    jti: str

    def identity(self) -> dict:
        """The embedded claims without registered JWT fields."""
        return {
            "id": self.id,
            "email": self.email,
            "username": self.username,
            "role": self.role.value,
        }


class RegisterRequest(BaseModel):
    """Request payload for registration."""

    name: str = Field(..., min_length=2)
    username: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=6)

    @field_validator("name", "username", mode="before")
    @classmethod
    def _strip(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("email", mode="before")
    @classmethod
    def _normalize_email(cls, value):
        return value.strip().lower() if isinstance(value, str) else value

    @field_validator("password")
    @classmethod
    def _bcrypt_limit(cls, value: str) -> str:
        # bcrypt only looks at the first 72 bytes
        if len(value.encode("utf-8")) > 72:
            raise ValueError("Password must be at most 72 bytes")
        return value


class LoginRequest(BaseModel):
    """Request payload for login."""

    email: EmailStr
    password: str = Field(..., min_length=1)

    @field_validator("email", mode="before")
    @classmethod
    def _normalize_email(cls, value):
        return value.strip().lower() if isinstance(value, str) else value
