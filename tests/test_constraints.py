"""Tests for span invariants."""

from datetime import date, datetime, timedelta

import pytest

from dispatch.errors import InvariantRejection
from dispatch.services.constraints import MIN_DURATION, check_span, day_bounds, is_valid_span


def test_day_bounds():
    start, end = day_bounds(date(2025, 3, 10))
    assert start == datetime(2025, 3, 10)
    assert end == datetime(2025, 3, 11)


def test_valid_span():
    check_span(datetime(2025, 3, 10, 10), datetime(2025, 3, 10, 10, 15), date(2025, 3, 10))


def test_end_before_start_rejected():
    with pytest.raises(InvariantRejection, match="not after"):
        check_span(datetime(2025, 3, 10, 10), datetime(2025, 3, 10, 10))


def test_below_minimum_duration_rejected():
    with pytest.raises(InvariantRejection, match="10 minutes"):
        check_span(datetime(2025, 3, 10, 10), datetime(2025, 3, 10, 10, 10))


def test_custom_minimum_duration():
    start = datetime(2025, 3, 10, 10)
    assert is_valid_span(start, start + timedelta(minutes=20))
    assert not is_valid_span(start, start + timedelta(minutes=20), min_duration=timedelta(minutes=30))


def test_span_leaving_day_rejected():
    day = date(2025, 3, 10)
    with pytest.raises(InvariantRejection, match="leaves"):
        check_span(datetime(2025, 3, 10, 23), datetime(2025, 3, 11, 1), day)


def test_span_ending_at_midnight_allowed():
    day = date(2025, 3, 10)
    assert is_valid_span(datetime(2025, 3, 10, 23), datetime(2025, 3, 11, 0), day)


def test_day_check_skipped_without_day():
    assert is_valid_span(datetime(2025, 3, 10, 23), datetime(2025, 3, 11, 1))


def test_min_duration_constant():
    assert MIN_DURATION == timedelta(minutes=15)
