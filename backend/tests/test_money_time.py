from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from backspace.money import MoneyError, format_minor_units, percent_of, prorate, to_minor_units
from backspace.time_utils import (
    elapsed_minutes,
    parse_iso_datetime,
    previous_month_start,
    start_of_month,
    start_of_week,
    to_utc_z,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("12.5", 1250),
        (12, 1200),
        (Decimal("0.005"), 1),
        ("0.004", 0),
        (0.285, 29),
        ("-1.005", -101),
    ],
)
def test_to_minor_units_rounds_half_up(raw, expected):
    assert to_minor_units(raw) == expected


@pytest.mark.parametrize("raw", ["abc", None, True, "NaN"])
def test_to_minor_units_rejects_garbage(raw):
    with pytest.raises(MoneyError):
        to_minor_units(raw)


def test_format_minor_units():
    assert format_minor_units(1250) == "12.50"
    assert format_minor_units(5) == "0.05"
    assert format_minor_units(-1205) == "-12.05"


def test_percent_of_floors():
    assert percent_of(999, 10) == 99
    assert percent_of(0, 50) == 0
    assert percent_of(1000, 0) == 0


def test_prorate_floors_fractional_piasters():
    assert prorate(59, 100) == 98
    assert prorate(30, 6000) == 3000
    assert prorate(0, 6000) == 0


def test_elapsed_minutes_floors_and_clamps():
    start = datetime(2024, 5, 15, 10, 0, 0)
    assert elapsed_minutes(start, start + timedelta(minutes=59, seconds=59)) == 59
    assert elapsed_minutes(start, start - timedelta(minutes=5)) == 0


def test_elapsed_minutes_mixes_aware_and_naive():
    start = datetime(2024, 5, 15, 10, 0, 0)
    now = datetime(2024, 5, 15, 13, 30, tzinfo=timezone(timedelta(hours=3)))
    assert elapsed_minutes(start, now) == 30


def test_parse_and_serialize_round_trip_to_utc():
    parsed = parse_iso_datetime("2024-05-15T12:00:00+02:00")
    assert parsed == datetime(2024, 5, 15, 10, 0, 0)
    assert to_utc_z(parsed) == "2024-05-15T10:00:00Z"
    assert parse_iso_datetime("") is None


def test_calendar_windows():
    wednesday = datetime(2024, 5, 15, 12, 0)
    assert start_of_week(wednesday) == datetime(2024, 5, 13)
    # Saturday-start week
    assert start_of_week(wednesday, week_start=5) == datetime(2024, 5, 11)
    assert start_of_month(wednesday) == datetime(2024, 5, 1)
    assert previous_month_start(datetime(2024, 1, 10)) == datetime(2023, 12, 1)
