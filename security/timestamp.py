"""Validation of request timestamps against a symmetric tolerance window."""

import re
import time

from datetime import timedelta

from .errors import InvalidTimestampFormatError, TimestampOutOfWindowError

# At most 19 digits, the width of a signed 64-bit integer
_TIMESTAMP_PATTERN = re.compile(r"[+-]?[0-9]{1,19}")


def current_millis() -> int:
    """Current time in milliseconds since epoch."""
    return time.time_ns() // 1_000_000


def parse_timestamp(timestamp: str) -> int:
    """Parse a millisecond epoch timestamp.

    Args:
        timestamp (str): Timestamp as sent by the client.

    Raises:
        InvalidTimestampFormatError: If `timestamp` is not a base 10 integer of at most 19 digits.

    Returns:
        int: Milliseconds since epoch.
    """
    if timestamp is None or not _TIMESTAMP_PATTERN.fullmatch(timestamp):
        raise InvalidTimestampFormatError()
    return int(timestamp)


def validate_timestamp(timestamp: str, window: timedelta, now_ms: int | None = None) -> None:
    """Check that `timestamp` lies within `window` of the current time.

    The window is symmetric so that client clocks running ahead are tolerated
    as much as clocks running behind. Both bounds are inclusive.

    Args:
        timestamp (str): Milliseconds since epoch.
        window (timedelta): Allowed distance from the current time.
        now_ms (int | None, optional): Current time in milliseconds. Defaults to the wall clock.

    Raises:
        InvalidTimestampFormatError: If the timestamp cannot be parsed.
        TimestampOutOfWindowError: If the timestamp is too old or too far in the future.
    """
    request_ms = parse_timestamp(timestamp)
    if now_ms is None:
        now_ms = current_millis()

    window_ms = int(window.total_seconds() * 1000)
    diff = now_ms - request_ms
    if diff < -window_ms or diff > window_ms:
        raise TimestampOutOfWindowError()
