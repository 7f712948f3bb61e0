"""Value parsers: locale-flexible numbers, dates, durations, set types, RIR -> RPE."""

import math
from datetime import date, datetime, timedelta, timezone

import pytest

from liftlog.parsers import (
    normalize_set_type,
    parse_duration,
    parse_flexible_date,
    parse_flexible_number,
    rir_to_rpe,
)


def test_number_eu_and_us_thousands() -> None:
    """EU 1.234,56 and US 1,234.56 both read as 1234.56."""
    assert parse_flexible_number("1.234,56") == 1234.56
    assert parse_flexible_number("1,234.56") == 1234.56


def test_number_decimal_comma_and_units() -> None:
    assert parse_flexible_number("62,5 kg") == 62.5
    assert parse_flexible_number("80kg") == 80.0
    assert parse_flexible_number("135 lbs") == 135.0
    assert parse_flexible_number("12 reps") == 12.0
    assert parse_flexible_number(42) == 42.0


def test_number_fallbacks() -> None:
    """Empty tokens and junk never raise."""
    for value in ("", "null", "undefined", "-", None, "abc", True):
        assert math.isnan(parse_flexible_number(value))
    assert parse_flexible_number("abc", 0) == 0
    assert parse_flexible_number(float("inf"), -1.0) == -1.0


def test_number_too_large_for_float() -> None:
    assert math.isnan(parse_flexible_number(10**400))
    assert parse_flexible_number(10**400, 0.0) == 0.0
    assert parse_flexible_number("9" * 400, 0.0) == 0.0


def test_date_common_formats() -> None:
    assert parse_flexible_date("2024-01-05") == datetime(2024, 1, 5)
    assert parse_flexible_date("2024-01-05 18:30:00") == datetime(2024, 1, 5, 18, 30)
    assert parse_flexible_date("5 Jan 2024, 18:00") == datetime(2024, 1, 5, 18, 0)
    assert parse_flexible_date("05/01/2024") == datetime(2024, 1, 5)
    assert parse_flexible_date("12/25/2023") == datetime(2023, 12, 25)
    assert parse_flexible_date("05.01.2024") == datetime(2024, 1, 5)


def test_date_offset_is_converted_to_naive_utc() -> None:
    assert parse_flexible_date("2024-01-05T10:00:00+02:00") == datetime(2024, 1, 5, 8, 0)


def test_date_two_digit_year() -> None:
    assert parse_flexible_date("05/01/24") == datetime(2024, 1, 5)


def test_date_rejects_out_of_range_years() -> None:
    """Anything before 1971 or from 2100 on is rejected."""
    assert parse_flexible_date("1960-01-01") is None
    assert parse_flexible_date("1970-12-31") is None
    assert parse_flexible_date("2100-01-01") is None
    assert parse_flexible_date(datetime(1950, 1, 1)) is None
    assert parse_flexible_date(date(2024, 3, 1)) == datetime(2024, 3, 1)


def test_date_garbage() -> None:
    for value in ("", None, "not a date", "32/13/2024"):
        assert parse_flexible_date(value) is None


def test_date_offset_past_datetime_range() -> None:
    assert parse_flexible_date("0001-01-01T00:00:00+01:00") is None
    assert parse_flexible_date(datetime(1, 1, 1, tzinfo=timezone(timedelta(hours=1)))) is None


@pytest.mark.parametrize(
    "value,expected",
    [
        (90, 90),
        ("90", 90),
        (75.4, 75),
        ("45:30", 2730),
        ("1:30:00", 5400),
        ("1h 30m", 5400),
        ("1h 30m 45s", 5445),
        ("2 min", 120),
        ("", 0),
        ("abc", 0),
        (None, 0),
        ("9" * 400, 0),
        ("9" * 400 + "h", 0),
        (10**400, 0),
        (float("nan"), 0),
    ],
)
def test_duration(value, expected) -> None:
    assert parse_duration(value) == expected


def test_set_type_warmup_vocabulary() -> None:
    """W, warm-up and WarmupSet all collapse to warmup."""
    for value in ("W", "warm-up", "WarmupSet", "WARMUP_SET"):
        assert normalize_set_type(value) == "warmup"


@pytest.mark.parametrize(
    "value,expected",
    [
        ("normal", "normal"),
        ("NORMAL_SET", "normal"),
        ("Working", "normal"),
        ("", "normal"),
        (None, "normal"),
        ("something odd", "normal"),
        ("drop set", "dropset"),
        ("D", "dropset"),
        ("Failure", "failure"),
        ("LEFT_SET", "left"),
        ("right set", "right"),
        ("rest-pause", "restpause"),
        ("Myo Reps", "myoreps"),
        ("superset", "superset"),
        ("back-off", "backoff"),
        ("Top Set", "topset"),
        ("AMRAP", "amrap"),
    ],
)
def test_set_type_vocabulary(value, expected) -> None:
    assert normalize_set_type(value) == expected


def test_rir_to_rpe_clamps() -> None:
    assert rir_to_rpe(2) == 8
    assert rir_to_rpe(0) == 10
    assert rir_to_rpe(12) == 1
    assert rir_to_rpe(-3) == 10
