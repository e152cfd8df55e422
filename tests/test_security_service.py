from datetime import timedelta

import pytest

from security.errors import (
    InvalidSignatureError,
    NonceInvalidError,
    TimestampOutOfWindowError,
)
from security.nonce import RedisNonceStore
from security.service import DefaultSecurityService

NOW = 1_700_000_000_000


@pytest.fixture
def service(redis_client):
    return DefaultSecurityService(
        signature_secret="secret",
        nonce_store=RedisNonceStore(redis_client),
        timestamp_window=timedelta(seconds=60),
        clock=lambda: NOW,
    )


def test_zero_window_falls_back_to_default(service):
    service.validate_timestamp(str(NOW - 60_000), timedelta(0))
    with pytest.raises(TimestampOutOfWindowError):
        service.validate_timestamp(str(NOW - 60_001), timedelta(0))


def test_explicit_window_overrides_default(service):
    service.validate_timestamp(str(NOW - 120_000), timedelta(minutes=5))
    with pytest.raises(TimestampOutOfWindowError):
        service.validate_timestamp(str(NOW - 1_001), timedelta(seconds=1))


def test_nonce_round_trip(service):
    nonce = service.generate_nonce()
    service.validate_nonce(nonce)

    with pytest.raises(NonceInvalidError):
        service.validate_nonce(nonce)


def test_sign_and_validate(service):
    params = {"timestamp": str(NOW), "nonce": "n", "email": "u1@example.com"}
    signature = service.sign(params)

    service.validate_signature(params, signature)
    with pytest.raises(InvalidSignatureError):
        service.validate_signature({**params, "email": "u2@example.com"}, signature)
