"""HMAC-SHA256 request signatures over canonicalized parameters.

Clients sign the same canonical string the server rebuilds:

    keys sorted byte-wise, `sign` excluded, joined as `k1=v1&k2=v2`

The values are not URL-encoded.
"""

import hashlib
import hmac

from typing import Mapping

from .errors import InvalidSignatureError

SIGNATURE_FIELD = "sign"


def canonicalize(params: Mapping[str, str]) -> str:
    """Build the canonical string that gets signed."""
    keys = sorted(
        (key for key in params if key != SIGNATURE_FIELD),
        key=lambda key: key.encode("utf-8"),
    )
    return "&".join(f"{key}={params[key]}" for key in keys)


def generate_signature(params: Mapping[str, str], secret: str) -> str:
    """Compute the lowercase hex HMAC-SHA256 signature of `params`.

    Args:
        params (Mapping[str, str]): Request parameters. A `sign` entry is ignored.
        secret (str): Shared signing secret.

    Returns:
        str: Hex encoded digest.
    """
    digest = hmac.new(
        secret.encode("utf-8"), canonicalize(params).encode("utf-8"), hashlib.sha256
    )
    return digest.hexdigest()


def validate_signature(params: Mapping[str, str], signature: str, secret: str) -> None:
    """Verify `signature` against the parameters using a constant time comparison.

    Raises:
        InvalidSignatureError: If the signature is empty or does not match.
    """
    if not signature:
        raise InvalidSignatureError()

    expected = generate_signature(params, secret)
    if not hmac.compare_digest(expected.encode("utf-8"), signature.encode("utf-8")):
        raise InvalidSignatureError()
