from datetime import timedelta

import pytest

from security.errors import InvalidTimestampFormatError, TimestampOutOfWindowError
from security.timestamp import parse_timestamp, validate_timestamp

NOW = 1_700_000_000_000
WINDOW = timedelta(seconds=60)


@pytest.mark.parametrize("offset", [0, -60_000, 60_000, -1, 1])
def test_timestamp_inside_window_is_accepted(offset):
    validate_timestamp(str(NOW + offset), WINDOW, now_ms=NOW)


@pytest.mark.parametrize("offset", [-60_001, 60_001, -3_600_000])
def test_timestamp_outside_window_is_rejected(offset):
    with pytest.raises(TimestampOutOfWindowError):
        validate_timestamp(str(NOW + offset), WINDOW, now_ms=NOW)


@pytest.mark.parametrize("value", ["", "abc", "12.5", "1_000", "0x10", " 12"])
def test_malformed_timestamp(value):
    with pytest.raises(InvalidTimestampFormatError):
        validate_timestamp(value, WINDOW, now_ms=NOW)


def test_parse_timestamp_accepts_sign():
    assert parse_timestamp("-5") == -5
    assert parse_timestamp("+5") == 5


def test_seconds_are_not_milliseconds():
    with pytest.raises(TimestampOutOfWindowError):
        validate_timestamp(str(NOW // 1000), WINDOW, now_ms=NOW)


@pytest.mark.parametrize("value", ["9" * 20, "9" * 5000, "-" + "1" * 5000])
def test_oversized_timestamp_is_a_format_error(value):
    with pytest.raises(InvalidTimestampFormatError):
        validate_timestamp(value, WINDOW, now_ms=NOW)


def test_largest_accepted_width():
    assert parse_timestamp("9" * 19) == int("9" * 19)
