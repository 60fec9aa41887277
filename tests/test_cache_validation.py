"""Unit tests for cache validation module."""

from datetime import datetime, timedelta, timezone

import pytest

from storecache.cache.validation import (
    ensure_utc,
    format_timestamp,
    get_ttl_remaining,
    is_server_update_newer,
    is_ttl_valid,
    parse_timestamp,
)

NOW = datetime(2024, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


class TestTTLValidation:
    """Test TTL validation functions."""

    def test_ttl_valid_within_window(self):
        """Test that cache is valid within TTL window."""
        last_written = NOW - timedelta(minutes=10)
        assert is_ttl_valid(last_written, 1800, NOW) is True

    def test_ttl_expired_after_window(self):
        """Test that cache expires after TTL window."""
        last_written = NOW - timedelta(hours=2)
        assert is_ttl_valid(last_written, 1800, NOW) is False

    def test_ttl_exact_boundary_is_valid(self):
        """Test that an entry exactly max age old is still valid."""
        last_written = NOW - timedelta(seconds=1800)
        assert is_ttl_valid(last_written, 1800, NOW) is True

    def test_zero_ttl_expires_after_any_elapsed_time(self):
        """Test that a zero TTL expires as soon as time passes."""
        assert is_ttl_valid(NOW, 0, NOW) is True
        assert is_ttl_valid(NOW - timedelta(seconds=1), 0, NOW) is False

    def test_ttl_none_never_expires(self):
        """Test that TTL=None means never expire."""
        ancient_past = NOW - timedelta(days=365)
        assert is_ttl_valid(ancient_past, None, NOW) is True

    def test_ttl_remaining_within_window(self):
        """Test TTL remaining calculation."""
        last_written = NOW - timedelta(seconds=600)
        assert get_ttl_remaining(last_written, 1800, NOW) == 1200

    def test_ttl_remaining_expired(self):
        """Test TTL remaining when expired."""
        last_written = NOW - timedelta(hours=2)
        assert get_ttl_remaining(last_written, 1800, NOW) == 0

    def test_ttl_remaining_none(self):
        """Test TTL remaining when TTL is None."""
        assert get_ttl_remaining(NOW, None, NOW) is None

    def test_ttl_timezone_naive(self):
        """Test that naive timestamps are treated as UTC."""
        naive = datetime(2024, 1, 15, 11, 50, 0)
        assert is_ttl_valid(naive, 1800, NOW) is True


class TestServerUpdateComparison:
    """Test comparison against the server update marker."""

    def test_newer_update_detected(self):
        assert is_server_update_newer(NOW, NOW - timedelta(hours=1), 1.0) is True

    def test_older_update_ignored(self):
        assert is_server_update_newer(NOW - timedelta(hours=1), NOW, 1.0) is False

    def test_difference_within_epsilon_ignored(self):
        """Test that sub-epsilon differences do not force a refetch."""
        last_written = NOW - timedelta(milliseconds=500)
        assert is_server_update_newer(NOW, last_written, 1.0) is False


class TestTimestampParsing:
    """Test timestamp serialization helpers."""

    def test_format_and_parse(self):
        assert parse_timestamp(format_timestamp(NOW)) == NOW

    def test_parse_unix_timestamp(self):
        assert parse_timestamp(NOW.timestamp()) == NOW

    @pytest.mark.parametrize(
        "value", ["2024-01-15T12:00:00Z", "2024-01-15T12:00:00z", "2024-01-15T12:00:00.000Z"]
    )
    def test_parse_zulu_suffix(self, value):
        assert parse_timestamp(value) == NOW

    def test_parse_invalid_values(self):
        """Test that unusable values yield None instead of raising."""
        assert parse_timestamp(None) is None
        assert parse_timestamp("not a date") is None
        assert parse_timestamp(True) is None
        assert parse_timestamp(["2024-01-15"]) is None

    def test_format_converts_to_utc(self):
        eastern = timezone(timedelta(hours=-5))
        local = datetime(2024, 1, 15, 7, 0, 0, tzinfo=eastern)
        assert format_timestamp(local) == "2024-01-15T12:00:00+00:00"

    def test_ensure_utc_naive(self):
        assert ensure_utc(datetime(2024, 1, 15, 12, 0, 0)) == NOW
