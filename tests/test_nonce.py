import threading

from datetime import timedelta
from unittest.mock import MagicMock

import fakeredis
import pytest

from redis.exceptions import ConnectionError as RedisConnectionError

from security.nonce import RedisNonceStore
from utils.errors import StoreUnavailableError


@pytest.fixture
def store(redis_client):
    return RedisNonceStore(redis_client, expires_in=timedelta(seconds=120))


def test_issued_nonce_is_stored_with_ttl(store, redis_client):
    nonce = store.issue()

    assert len(nonce) >= 32
    assert 0 < redis_client.ttl(f"nonce:{nonce}") <= 120


def test_sub_second_ttl_is_rounded_up(redis_client):
    store = RedisNonceStore(redis_client, expires_in=timedelta(milliseconds=200))
    nonce = store.issue()

    assert redis_client.ttl(f"nonce:{nonce}") == 1
    assert store.consume(nonce) is True


def test_nonces_are_unique(store):
    assert len({store.issue() for _ in range(50)}) == 50


def test_nonce_is_single_use(store):
    nonce = store.issue()

    assert store.consume(nonce) is True
    assert store.consume(nonce) is False


def test_unknown_and_empty_nonces_are_rejected(store):
    assert store.consume("never-issued") is False
    assert store.consume("") is False


def test_expired_nonce_is_rejected(store, redis_client):
    nonce = store.issue()
    redis_client.delete(f"nonce:{nonce}")

    assert store.consume(nonce) is False


def test_concurrent_consumers_only_one_wins():
    server = fakeredis.FakeServer()
    nonce = RedisNonceStore(fakeredis.FakeRedis(server=server, decode_responses=True)).issue()

    workers = 8
    barrier = threading.Barrier(workers)
    results = []
    lock = threading.Lock()

    def consume():
        store = RedisNonceStore(fakeredis.FakeRedis(server=server, decode_responses=True))
        barrier.wait()
        outcome = store.consume(nonce)
        with lock:
            results.append(outcome)

    threads = [threading.Thread(target=consume) for _ in range(workers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert results.count(True) == 1
    assert results.count(False) == workers - 1


def test_store_failure_is_reported():
    client = MagicMock()
    client.set.side_effect = RedisConnectionError("down")
    client.getdel.side_effect = RedisConnectionError("down")
    store = RedisNonceStore(client)

    with pytest.raises(StoreUnavailableError):
        store.issue()
    with pytest.raises(StoreUnavailableError):
        store.consume("abc")
