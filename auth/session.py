"""Refresh-token session lifecycle.

A user has at most one session: the refresh token stored on the user row.
Issuing a new pair overwrites it, refreshing rotates it, and any refresh
with a token that is not the stored one clears it (reuse detection).
"""

import logging
from dataclasses import dataclass
from uuid import UUID

from auth.database import AuthDatabase
from auth.exceptions import RefreshTokenReuseError, TokenInvalidError
from auth.tokens import TokenCodec
from auth.types import TokenClaims, User

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str


class SessionManager:
    """Issues, rotates, and revokes the single per-user refresh session."""

    def __init__(self, codec: TokenCodec, auth_db: AuthDatabase):
        self._codec = codec
        self._auth_db = auth_db

    @staticmethod
    def claims_for(user: User) -> dict:
        return {
            "id": str(user.id),
            "email": user.email,
            "username": user.username,
            "role": user.role.value,
        }

    def _issue(self, user: User) -> TokenPair:
        claims = self.claims_for(user)
        return TokenPair(
            access_token=self._codec.sign_access(claims, str(user.id)),
            refresh_token=self._codec.sign_refresh(claims, str(user.id)),
        )

    def create_session(self, user: User) -> TokenPair:
        """Issue a fresh pair and make its refresh token the only valid one."""
        pair = self._issue(user)
        self._auth_db.set_refresh_token(user.id, pair.refresh_token)
        return pair

    def rotate_session(self, refresh_token: str) -> tuple[User, TokenPair]:
        """Exchange a refresh token for a new pair.

        Raises:
            TokenExpiredError / TokenInvalidError: If the token doesn't verify.
            RefreshTokenReuseError: If the token is not the stored one. The
                stored session is cleared before raising.
        """
        claims = self._codec.verify_refresh(refresh_token)

        try:
            user_id = UUID(claims.sub)
        except ValueError:
            raise TokenInvalidError("Invalid token subject")

        user = self._auth_db.get_user_by_id(user_id)
        if user is None:
            raise RefreshTokenReuseError(user_id=user_id)

        if user.refresh_token != refresh_token:
            self._revoke_on_reuse(user)

        pair = self._issue(user)
        # Conditional write: a concurrent refresh that rotated first wins,
        # and this one is treated as a replay.
        if not self._auth_db.rotate_refresh_token(user.id, refresh_token, pair.refresh_token):
            self._revoke_on_reuse(user)

        return user, pair

    def _revoke_on_reuse(self, user: User) -> None:
        logger.warning(f"Refresh token mismatch for user {user.id}; session cleared")
        self._auth_db.clear_refresh_token(user.id)
        raise RefreshTokenReuseError(user_id=user.id)

    def revoke_session(self, refresh_token: str) -> UUID | None:
        """Clear whichever session holds this token.

        Safe to call with a stale or unknown token.
        """
        return self._auth_db.clear_refresh_token_by_value(refresh_token)

    def validate_access(self, token: str) -> TokenClaims:
        """
        Raises:
            TokenExpiredError / TokenInvalidError: If the access token is bad.
        """
        claims = self._codec.verify_access(token)
        if not claims.id:
            raise TokenInvalidError("Invalid access token payload")
        return claims
