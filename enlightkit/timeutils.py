"""Conversions between timestamps in seconds, milliseconds and datetimes."""

from __future__ import annotations

import calendar
import re
import time
from datetime import datetime, timedelta, timezone

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_NANOS_PER_MILLI = 1_000_000
_MILLIS_PER_DAY = 86_400_000
_YEAR_3000_SECONDS = 32_503_680_000
_YEAR_3000_MILLISECONDS = 32_503_680_000_000
_YYYYMM = re.compile(r"([0-9]{4})([0-9]{2})")


class TimestampConversionError(ValueError):
    """A timestamp was not in the expected unit; ``timestamp`` holds the converted value."""

    def __init__(self, message: str, timestamp: int) -> None:
        super().__init__(message)
        self.timestamp = timestamp


def _trunc_div(numerator: int, denominator: int) -> int:
    """Integer division rounding toward zero."""
    quotient = abs(numerator) // denominator
    return quotient if numerator >= 0 else -quotient


def milliseconds_now() -> int:
    return time.time_ns() // _NANOS_PER_MILLI


def milliseconds_unix(t: datetime) -> int:
    """Return milliseconds since the Unix epoch for ``t``; naive values are local time."""
    if t.tzinfo is None:
        t = t.astimezone()
    micros = (t - _EPOCH) // timedelta(microseconds=1)
    return _trunc_div(micros, 1000)


def milliseconds_time(ms: int) -> datetime:
    """Return the UTC datetime for a millisecond timestamp."""
    return _EPOCH + timedelta(milliseconds=ms)


def assert_milliseconds(ms: int) -> int:
    """Return ``ms`` if it is in milliseconds, else raise with the converted value."""
    if ms == 0:
        raise TimestampConversionError("got a timestamp that's before 1970, this is probably bad", ms)

    if ms < _YEAR_3000_SECONDS:
        raise TimestampConversionError(
            "got timestamp was in seconds (not milliseconds), had to convert", ms * 1000
        )

    converted = False
    while ms > _YEAR_3000_MILLISECONDS:
        ms //= 1000
        converted = True

    if converted:
        raise TimestampConversionError("got timestamp that was not milliseconds, had to convert", ms)
    return ms


def assert_seconds(timestamp: int) -> int:
    """Return ``timestamp`` if it is in seconds, else raise with the converted value."""
    if timestamp < 0:
        raise TimestampConversionError(
            "got a timestamp that's before 1970, this is probably bad", timestamp
        )

    converted = False
    while timestamp > _YEAR_3000_SECONDS:
        timestamp //= 1000
        converted = True

    if converted:
        raise TimestampConversionError(
            "got timestamp that was not in seconds, had to convert", timestamp
        )
    return timestamp


def _to_time(text: str) -> datetime:
    match = _YYYYMM.fullmatch(text)
    if match is None:
        raise ValueError(f"cannot parse {text!r} as a yyyymm month")
    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12:
        raise ValueError(f"month out of range in {text!r}")
    if year < 1:
        raise ValueError(f"year out of range in {text!r}")
    return datetime(year, month, 1, tzinfo=timezone.utc)


def _next_month_milliseconds(month_start: datetime) -> int:
    days = calendar.monthrange(month_start.year, month_start.month)[1]
    return milliseconds_unix(month_start) + days * _MILLIS_PER_DAY


def get_periods_start_and_end_utc(first_yyyymm: str, last_yyyymm: str) -> tuple[int, int]:
    """Return the first and last millisecond (UTC) covered by two yyyymm months."""
    start = milliseconds_unix(_to_time(first_yyyymm))
    after_end = _next_month_milliseconds(_to_time(last_yyyymm))

    if start >= after_end:
        raise ValueError(f"start {first_yyyymm} may not be after end {last_yyyymm}")

    end = _trunc_div(after_end * _NANOS_PER_MILLI - 1, _NANOS_PER_MILLI)
    return start, end