"""Single use nonces stored in Redis."""

import math
import secrets

from abc import ABC, abstractmethod
from datetime import timedelta

from redis import Redis
from redis.exceptions import RedisError

from utils.errors import StoreUnavailableError


class NonceStore(ABC):
    """Issues nonces and consumes each of them at most once."""

    @abstractmethod
    def issue(self) -> str:
        """Create and store a fresh nonce."""

    @abstractmethod
    def consume(self, nonce: str) -> bool:
        """Atomically check and delete `nonce`. True only for the first consumer."""


class RedisNonceStore(NonceStore):
    """Nonce store backed by Redis keys with a TTL."""

    def __init__(
        self,
        redis_client: Redis,
        expires_in: timedelta = timedelta(minutes=2),
        key_prefix: str = "nonce:",
        nonce_bytes: int = 24,
    ):
        self.redis = redis_client
        self.expires_in = expires_in
        self.key_prefix = key_prefix
        self.nonce_bytes = nonce_bytes

    @property
    def ttl_seconds(self) -> int:
        """Nonce lifetime rounded up to whole seconds, at least one."""
        return max(1, math.ceil(self.expires_in.total_seconds()))

    def _key(self, nonce: str) -> str:
        return f"{self.key_prefix}{nonce}"

    def issue(self) -> str:
        """Generate a random nonce and store it for `expires_in`.

        Raises:
            StoreUnavailableError: If Redis cannot be reached.

        Returns:
            str: The new nonce.
        """
        nonce = secrets.token_urlsafe(self.nonce_bytes)
        try:
            self.redis.set(self._key(nonce), "1", ex=self.ttl_seconds)
        except RedisError as e:
            raise StoreUnavailableError(f"Failed to store nonce: {e}") from e
        return nonce

    def consume(self, nonce: str) -> bool:
        """Consume `nonce` with a single GETDEL so two concurrent callers cannot both win.

        Args:
            nonce (str): The nonce presented by the client.

        Raises:
            StoreUnavailableError: If Redis cannot be reached.

        Returns:
            bool: True if the nonce existed and was consumed by this call, False otherwise.
        """
        if not nonce:
            return False
        try:
            return self.redis.getdel(self._key(nonce)) is not None
        except RedisError as e:
            raise StoreUnavailableError(f"Failed to check nonce: {e}") from e
