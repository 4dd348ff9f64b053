"""Tests for datetime utilities."""

from datetime import UTC, datetime, timedelta

from common.utils.datetime_utils import elapsed_seconds, utc_now


def test_utc_now_is_timezone_aware():
    assert utc_now().tzinfo is UTC


def test_elapsed_seconds_between_two_times():
    start = datetime(2024, 1, 1, tzinfo=UTC)
    assert elapsed_seconds(start, start + timedelta(seconds=90)) == 90.0


def test_elapsed_seconds_treats_naive_as_utc():
    start = datetime(2024, 1, 1)
    end = datetime(2024, 1, 1, 0, 1, tzinfo=UTC)
    assert elapsed_seconds(start, end) == 60.0


def test_elapsed_seconds_never_negative():
    start = utc_now() + timedelta(hours=1)
    assert elapsed_seconds(start) == 0.0
