"""
Token blacklist backed by Redis.
Entries expire together with the token they revoke, so the blacklist never
outgrows the set of tokens that are still alive.
"""

import math

from datetime import timedelta

from redis import Redis
from redis.exceptions import RedisError

from utils.errors import StoreUnavailableError


class RedisTokenBlacklist:
    """Revocation store keyed by token id."""

    def __init__(self, redis_client: Redis, key_prefix: str = "token_blacklist:"):
        self.redis = redis_client
        self.key_prefix = key_prefix

    def _key(self, token_id: str) -> str:
        return f"{self.key_prefix}{token_id}"

    def add(self, token_id: str, ttl: timedelta) -> bool:
        """Blacklist a token id for `ttl`.

        The write only succeeds if the id is not blacklisted yet, which lets callers
        detect that another request revoked the same token first.

        Args:
            token_id (str): The `jti` of the token.
            ttl (timedelta): Remaining lifetime of the token. Rounded up, at least one second.

        Raises:
            StoreUnavailableError: If Redis cannot be reached.

        Returns:
            bool: True if this call blacklisted the id, False if it was already present.
        """
        seconds = max(1, math.ceil(ttl.total_seconds()))
        try:
            return bool(self.redis.set(self._key(token_id), "1", ex=seconds, nx=True))
        except RedisError as e:
            raise StoreUnavailableError(f"Failed to blacklist token: {e}") from e

    def contains(self, token_id: str) -> bool:
        """Check if a token id has been blacklisted."""
        try:
            return self.redis.exists(self._key(token_id)) > 0
        except RedisError as e:
            raise StoreUnavailableError(f"Failed to check token blacklist: {e}") from e
