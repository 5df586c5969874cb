"""Rate limiting for auth and API requests.

Uses Valkey fixed windows: the TTL is set on the first hit of a window and
the counter resets when it expires.
"""

from dataclasses import dataclass

from clients.valkey_client import ValkeyClient
from auth.config import AuthConfig
from auth.exceptions import RateLimitedError


@dataclass(frozen=True)
class RateLimit:
    attempts: int
    window_seconds: int


class RateLimiter:
    """Per-scope request counters in Valkey."""

    KEY_PREFIX = "ratelimit:"

    AUTH = "auth"
    API = "api"

    def __init__(self, valkey: ValkeyClient, config: AuthConfig):
        self._valkey = valkey
        self._limits = {
            self.AUTH: RateLimit(
                attempts=config.auth_rate_limit_attempts,
                window_seconds=config.auth_rate_limit_window_minutes * 60,
            ),
            self.API: RateLimit(
                attempts=config.api_rate_limit_requests,
                window_seconds=config.api_rate_limit_window_minutes * 60,
            ),
        }

    def _key(self, scope: str, identifier: str) -> str:
        return f"{self.KEY_PREFIX}{scope}:{identifier.lower()}"

    def check_rate_limit(self, scope: str, identifier: str) -> None:
        """Count an attempt and enforce the scope's limit.

        Raises:
            RateLimitedError: If rate limit exceeded.
            KeyError: If scope is unknown.
        """
        limit = self._limits[scope]
        key = self._key(scope, identifier)

        count = self._valkey.incr(key)
        if count == 1:
            # First attempt, open the window
            self._valkey.expire(key, limit.window_seconds)

        if count > limit.attempts:
            ttl = self._valkey.ttl(key)
            if ttl < 0:
                # Lost the expiry somehow; reopen the window rather than lock forever
                self._valkey.expire(key, limit.window_seconds)
                ttl = limit.window_seconds
            raise RateLimitedError(retry_after_seconds=max(ttl, 1))
