"""
Valkey (Redis-compatible) client for rate limiting counters.

Simple wrapper around redis-py. Connection URL from Vault.
Fail-fast: raises on connection failure, never returns fallback values.
"""

import logging

import redis

logger = logging.getLogger(__name__)


class ValkeyClient:
    """
    Redis-compatible client for Valkey.

    Usage:
        client = ValkeyClient("redis://localhost:6379/0")
        count = client.incr("ratelimit:auth:10.0.0.1")
        client.expire("ratelimit:auth:10.0.0.1", 600)
    """

    def __init__(self, url: str):
        """
        Initialize Valkey connection.

        Raises:
            redis.ConnectionError: If connection fails
        """
        self._client = redis.from_url(url, decode_responses=True)
        # Verify connectivity immediately (fail-fast)
        self._client.ping()
        logger.info("ValkeyClient connected")

    def ping(self) -> bool:
        """Raises redis.ConnectionError if unreachable."""
        self._client.ping()
        return True

    def incr(self, key: str) -> int:
        """
        Increment key by 1.

        Creates key with value 1 if it doesn't exist.
        Returns the new value.
        """
        return self._client.incr(key)

    def expire(self, key: str, seconds: int) -> bool:
        """Set TTL on an existing key. Returns False if key doesn't exist."""
        return bool(self._client.expire(key, seconds))

    def ttl(self, key: str) -> int:
        """
        Get remaining TTL in seconds.

        Returns:
            -2 if key doesn't exist
            -1 if key has no expiration
            Positive int: remaining seconds
        """
        return self._client.ttl(key)

    def close(self) -> None:
        """Close the connection."""
        self._client.close()
        logger.info("ValkeyClient closed")
