from datetime import datetime

import pytest

from cashdesk.time_utils import parse_iso_datetime, parse_range_bound, to_utc_z


def test_blank_input_is_none():
    assert parse_iso_datetime(None) is None
    assert parse_iso_datetime("  ") is None
    assert parse_range_bound("", end=True) is None


def test_offsets_normalized_to_naive_utc():
    assert parse_iso_datetime("2026-03-01T12:00:00+02:00") == datetime(2026, 3, 1, 10, 0)
    assert parse_iso_datetime("2026-03-01T12:00:00Z") == datetime(2026, 3, 1, 12, 0)


def test_bare_date_end_bound_covers_whole_day():
    assert parse_range_bound("2026-01-31", end=True) == datetime(2026, 1, 31, 23, 59, 59, 999999)
    assert parse_range_bound("2026-01-31") == datetime(2026, 1, 31)


def test_explicit_end_time_kept():
    assert parse_range_bound("2026-01-31T00:00:00", end=True) == datetime(2026, 1, 31)


def test_invalid_input_raises():
    with pytest.raises(ValueError):
        parse_iso_datetime("yesterday")


def test_to_utc_z():
    assert to_utc_z(None) is None
    assert to_utc_z(datetime(2026, 1, 2, 3, 4, 5, 678)) == "2026-01-02T03:04:05Z"
