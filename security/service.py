"""Replay protection: timestamp window, single use nonce and request signature."""

import logfire

from abc import ABC, abstractmethod
from datetime import timedelta
from typing import Callable, Mapping, Optional

from .errors import NonceInvalidError
from .nonce import NonceStore
from .signature import generate_signature, validate_signature
from .timestamp import current_millis, validate_timestamp


class SecurityService(ABC):
    """Capability set used by the request security middleware."""

    @abstractmethod
    def generate_nonce(self) -> str: ...

    @abstractmethod
    def validate_timestamp(self, timestamp: str, window: Optional[timedelta] = None) -> None: ...

    @abstractmethod
    def validate_nonce(self, nonce: str) -> None: ...

    @abstractmethod
    def validate_signature(self, params: Mapping[str, str], signature: str) -> None: ...

    @abstractmethod
    def sign(self, params: Mapping[str, str]) -> str: ...


class DefaultSecurityService(SecurityService):
    """Delegates to the nonce store and the timestamp/signature validators.

    Holds the shared signing secret and the default timestamp window; it keeps no
    other state.
    """

    def __init__(
        self,
        signature_secret: str,
        nonce_store: NonceStore,
        timestamp_window: timedelta = timedelta(seconds=60),
        clock: Callable[[], int] = current_millis,
        logger: Optional[logfire.Logfire] = None,
    ):
        self.signature_secret = signature_secret
        self.nonce_store = nonce_store
        self.timestamp_window = timestamp_window
        self.clock = clock
        self.logger = logger or logfire.with_settings(tags=["security"])

    def generate_nonce(self) -> str:
        nonce = self.nonce_store.issue()
        self.logger.debug("Issued request nonce")
        return nonce

    def validate_timestamp(self, timestamp: str, window: Optional[timedelta] = None) -> None:
        """Validate `timestamp`; a missing or zero `window` means the configured default."""
        if not window:
            window = self.timestamp_window
        validate_timestamp(timestamp, window, now_ms=self.clock())

    def validate_nonce(self, nonce: str) -> None:
        if not self.nonce_store.consume(nonce):
            raise NonceInvalidError()

    def validate_signature(self, params: Mapping[str, str], signature: str) -> None:
        validate_signature(params, signature, self.signature_secret)

    def sign(self, params: Mapping[str, str]) -> str:
        return generate_signature(params, self.signature_secret)
