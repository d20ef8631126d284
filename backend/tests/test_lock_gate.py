"""Tests for day keys and the lock gate."""

from datetime import datetime, timezone

import pytest

from utils.lock_gate import (
    date_key_for,
    is_locked,
    is_valid_date_key,
    lock_timestamp,
    retention_cutoff,
)


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


def test_lock_timestamp():
    assert lock_timestamp("20250911", 8) == utc(2025, 9, 11, 8, 0, 0)


def test_lock_boundary():
    assert is_locked("20250911", 8, utc(2025, 9, 11, 7, 59, 59)) is False
    assert is_locked("20250911", 8, utc(2025, 9, 11, 8, 0, 0)) is True


def test_naive_now_is_treated_as_utc():
    assert is_locked("20250911", 8, datetime(2025, 9, 11, 8, 0, 0)) is True


@pytest.mark.parametrize("key", ["2025091", "2025-09-11", "20251301", "20250230", 20250911, None])
def test_invalid_date_keys(key):
    assert is_valid_date_key(key) is False


def test_bad_lock_hour():
    with pytest.raises(ValueError):
        lock_timestamp("20250911", 24)


def test_date_key_for_timestamp_and_datetime():
    assert date_key_for(1757548800) == "20250911"
    assert date_key_for(utc(2025, 9, 11, 23, 59, 59)) == "20250911"


def test_retention_cutoff_orders_like_dates():
    cutoff = retention_cutoff(2, utc(2025, 9, 11, 3, 0, 0))
    assert cutoff == "20250909"
    assert "20250908" < cutoff <= "20250909" < "20250910"
