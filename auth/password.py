"""
Password hashing and verification.

Uses bcrypt for password hashing with automatic
salting and configurable work factor.
"""

import bcrypt

from auth.config import AuthConfig


class PasswordHasher:
    """bcrypt hashing with the configured cost factor."""

    def __init__(self, config: AuthConfig):
        self._rounds = config.bcrypt_rounds
        # Compared against when the email is unknown, so a miss costs the
        # same as a wrong password.
        self._dummy_hash = self.hash("dummy-password-for-timing")

    def hash(self, password: str) -> str:
        return bcrypt.hashpw(
            password.encode("utf-8"), bcrypt.gensalt(rounds=self._rounds)
        ).decode("utf-8")

    def verify(self, password: str, password_hash: str) -> bool:
        """Constant-time comparison against a bcrypt hash."""
        try:
            return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
        except (ValueError, TypeError):
            return False

    def verify_dummy(self, password: str) -> bool:
        """Burn one comparison's worth of time. Always False."""
        self.verify(password, self._dummy_hash)
        return False
