"""Signed, time-boxed access and refresh tokens (HS256 JWTs).

Access and refresh tokens share one claim shape but are signed with
different secrets, so neither can stand in for the other.
"""

from datetime import timedelta
from typing import Any
from uuid import uuid4

import jwt
from pydantic import ValidationError

from auth.config import AuthConfig, TokenSecrets
from auth.exceptions import TokenExpiredError, TokenInvalidError
from auth.types import TokenClaims
from utils.timezone import now_utc

ALGORITHM = "HS256"
REQUIRED_CLAIMS = ["sub", "iat", "exp", "jti"]


class TokenCodec:
    """Signs and verifies access/refresh tokens without server-side storage."""

    def __init__(self, secrets: TokenSecrets, config: AuthConfig):
        self._access_key = secrets.access_secret.get_secret_value()
        self._refresh_key = secrets.refresh_secret.get_secret_value()
        self._access_ttl = timedelta(minutes=config.access_token_ttl_minutes)
        self._refresh_ttl = timedelta(days=config.refresh_token_ttl_days)

    def _sign(self, claims: dict[str, Any], subject_id: str, key: str, ttl: timedelta) -> str:
        now = now_utc()
        payload = {
            "id": claims["id"],
            "email": claims["email"],
            "username": claims["username"],
            "role": claims["role"],
            "sub": str(subject_id),
            "iat": int(now.timestamp()),
            "exp": int((now + ttl).timestamp()),
            # Unique per token: two tokens minted in the same second must differ.
            "jti": uuid4().hex,
        }
        return jwt.encode(payload, key, algorithm=ALGORITHM)

    def _verify(self, token: str, key: str) -> TokenClaims:
        try:
            payload = jwt.decode(
                token,
                key,
                algorithms=[ALGORITHM],
                options={"require": REQUIRED_CLAIMS},
            )
        except jwt.ExpiredSignatureError:
            raise TokenExpiredError("Token has expired")
        except jwt.InvalidTokenError:
            raise TokenInvalidError("Invalid token")

        try:
            return TokenClaims(**payload)
        except ValidationError:
            raise TokenInvalidError("Invalid token payload")

    def sign_access(self, claims: dict[str, Any], subject_id: str) -> str:
        return self._sign(claims, subject_id, self._access_key, self._access_ttl)

    def sign_refresh(self, claims: dict[str, Any], subject_id: str) -> str:
        return self._sign(claims, subject_id, self._refresh_key, self._refresh_ttl)

    def verify_access(self, token: str) -> TokenClaims:
        """
        Raises:
            TokenExpiredError: If the token is past its expiry.
            TokenInvalidError: If signature, structure, or claims are wrong.
        """
        return self._verify(token, self._access_key)

    def verify_refresh(self, token: str) -> TokenClaims:
        """Same contract as verify_access, against the refresh secret."""
        return self._verify(token, self._refresh_key)
