import hashlib
import hmac

import pytest

from security.errors import InvalidSignatureError
from security.signature import canonicalize, generate_signature, validate_signature

SECRET = "secret"


def test_canonical_form_sorts_keys_and_drops_sign():
    assert canonicalize({"b": "2", "a": "1", "sign": "zzz"}) == "a=1&b=2"


def test_canonical_form_sorts_bytewise():
    assert canonicalize({"a": "2", "B": "1"}) == "B=1&a=2"


def test_values_are_not_encoded():
    assert canonicalize({"q": "a b&c"}) == "q=a b&c"


def test_signature_is_hex_hmac_sha256():
    expected = hmac.new(SECRET.encode(), b"a=1&b=2&nonce=x", hashlib.sha256).hexdigest()
    assert generate_signature({"nonce": "x", "b": "2", "a": "1"}, SECRET) == expected


def test_signature_ignores_insertion_order():
    first = generate_signature({"a": "1", "b": "2"}, SECRET)
    second = generate_signature({"b": "2", "a": "1"}, SECRET)
    assert first == second


def test_signature_depends_on_values_and_secret():
    base = generate_signature({"a": "1"}, SECRET)
    assert generate_signature({"a": "2"}, SECRET) != base
    assert generate_signature({"a": "1"}, "other") != base


def test_validate_signature():
    params = {"a": "1", "timestamp": "10", "nonce": "n"}
    validate_signature(params, generate_signature(params, SECRET), SECRET)

    with pytest.raises(InvalidSignatureError):
        validate_signature(params, generate_signature(params, "other"), SECRET)
    with pytest.raises(InvalidSignatureError):
        validate_signature({**params, "a": "2"}, generate_signature(params, SECRET), SECRET)


def test_empty_signature_is_rejected():
    with pytest.raises(InvalidSignatureError):
        validate_signature({"a": "1"}, "", SECRET)
