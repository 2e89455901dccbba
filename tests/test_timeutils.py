from datetime import datetime, timedelta, timezone

import pytest

from enlightkit.timeutils import (
    TimestampConversionError,
    _to_time,
    assert_milliseconds,
    assert_seconds,
    get_periods_start_and_end_utc,
    milliseconds_now,
    milliseconds_time,
    milliseconds_unix,
)

MILLISECONDS_FOR_20180306 = 1528030261000
MILLISECONDS_FOR_22861120 = 9999999999999


def test_milliseconds_within_realistic_interval():
    assert milliseconds_now() > MILLISECONDS_FOR_20180306
    assert milliseconds_now() < MILLISECONDS_FOR_22861120


def test_milliseconds_unix():
    now = datetime.now(timezone.utc)
    assert milliseconds_unix(now + timedelta(seconds=1)) == milliseconds_unix(now) + 1000


def test_milliseconds_conversion():
    ms = milliseconds_now()
    assert milliseconds_unix(milliseconds_time(ms)) == ms


def test_assert_milliseconds():
    ms = 1550837382666
    assert assert_milliseconds(ms) == ms


def test_seconds_converted_into_milliseconds():
    seconds = 1550837382
    with pytest.raises(TimestampConversionError) as excinfo:
        assert_milliseconds(seconds)
    assert excinfo.value.timestamp == seconds * 1000


def test_microseconds_converted_into_milliseconds():
    microseconds = 1550837382666000
    with pytest.raises(TimestampConversionError) as excinfo:
        assert_milliseconds(microseconds)
    assert excinfo.value.timestamp == microseconds // 1000


def test_nanoseconds_converted_into_milliseconds():
    nanoseconds = 1550837382666000456
    with pytest.raises(TimestampConversionError) as excinfo:
        assert_milliseconds(nanoseconds)
    assert excinfo.value.timestamp == nanoseconds // 1_000_000


def test_zero_milliseconds_rejected():
    with pytest.raises(TimestampConversionError) as excinfo:
        assert_milliseconds(0)
    assert excinfo.value.timestamp == 0


def test_assert_seconds():
    seconds = 1550837382
    assert assert_seconds(seconds) == seconds


def test_milliseconds_converted_to_seconds():
    ms = 1550837382666
    with pytest.raises(TimestampConversionError) as excinfo:
        assert_seconds(ms)
    assert excinfo.value.timestamp == ms // 1000


def test_microseconds_converted_to_seconds():
    microseconds = 1550837382666000
    with pytest.raises(TimestampConversionError) as excinfo:
        assert_seconds(microseconds)
    assert excinfo.value.timestamp == microseconds // 1_000_000


def test_nanoseconds_converted_to_seconds():
    nanoseconds = 1550837382666000123
    with pytest.raises(TimestampConversionError) as excinfo:
        assert_seconds(nanoseconds)
    assert excinfo.value.timestamp == nanoseconds // 1_000_000_000


def test_negative_seconds_rejected():
    with pytest.raises(TimestampConversionError) as excinfo:
        assert_seconds(-1)
    assert excinfo.value.timestamp == -1


def test_month_start_and_end():
    assert get_periods_start_and_end_utc("201805", "201805") == (1525132800000, 1527811199999)


def test_not_numeric_start():
    with pytest.raises(ValueError):
        get_periods_start_and_end_utc("abcdef", "201805")


def test_not_numeric_end():
    with pytest.raises(ValueError):
        get_periods_start_and_end_utc("201805", "abcdef")


@pytest.mark.parametrize("first", ["987613", "299913", "201813", "201800"])
def test_out_of_range(first):
    with pytest.raises(ValueError):
        get_periods_start_and_end_utc(first, "201805")


@pytest.mark.parametrize("first", [" ", "2018", "20181", "2018 12"])
def test_wrong_length(first):
    with pytest.raises(ValueError):
        get_periods_start_and_end_utc(first, "201805")


def test_get_periods_start_and_end_utc():
    assert get_periods_start_and_end_utc("201801", "201809") == (1514764800000, 1538351999999)


def test_period_same_month():
    assert get_periods_start_and_end_utc("201809", "201809") == (1535760000000, 1538351999999)


def test_period_wrong_order():
    with pytest.raises(ValueError):
        get_periods_start_and_end_utc("201812", "201809")


def test_to_time():
    assert _to_time("201411") == datetime(2014, 11, 1, tzinfo=timezone.utc)


def test_to_time_invalid_input():
    with pytest.raises(ValueError):
        _to_time("20141x")