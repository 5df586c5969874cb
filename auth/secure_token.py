"""One-time verification tokens.

Only the SHA-256 hash is ever persisted. The raw token travels once, inside
the verification link, and is re-hashed on the way back in.
"""

import hashlib
import secrets
from dataclasses import dataclass


@dataclass(frozen=True)
class VerificationTokenPair:
    """Raw token for the link, hashed token for the database."""

    raw_token: str
    hashed_token: str


class SecureTokenGenerator:
    """Generates opaque random tokens and their one-way hashes."""

    TOKEN_BYTES = 32  # 256 bits

    def generate(self) -> VerificationTokenPair:
        raw_token = secrets.token_hex(self.TOKEN_BYTES)
        return VerificationTokenPair(raw_token=raw_token, hashed_token=self.hash(raw_token))

    def hash(self, token: str) -> str:
        """Deterministic SHA-256 hex digest of a client-supplied token."""
        return hashlib.sha256(token.encode("utf-8")).hexdigest()
