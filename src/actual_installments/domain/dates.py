"""Calendar-date helpers for month and day strings.

Every parsed value is anchored at 12:00 local time. A daylight-saving shift
never moves a clock by twelve hours, so arithmetic on noon timestamps can
not roll into the previous or next calendar day the way midnight can.
"""
from datetime import date, datetime
from typing import Literal, Union

from dateutil.relativedelta import relativedelta

DateLike = Union[str, int, date, datetime]
Precision = Literal["day", "month", "year"]

ANCHOR_HOUR = 12

_FORMATS: dict[str, str] = {
    "day": "%Y-%m-%d",
    "month": "%Y-%m",
    "year": "%Y",
}


class DateParseError(ValueError):
    """Raised when a value cannot be read as a calendar date."""


def parse_date(value: DateLike) -> datetime:
    """Read ``YYYY-MM-DD``, ``YYYY-MM``, ``YYYY``, a millisecond timestamp or a date."""
    if isinstance(value, datetime):
        return value.replace(hour=ANCHOR_HOUR, minute=0, second=0, microsecond=0)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, ANCHOR_HOUR)
    if isinstance(value, bool):
        raise DateParseError(f"parse_date not passed a date-like value: {value!r}")
    if isinstance(value, int):
        stamp = datetime.fromtimestamp(value / 1000)
        return stamp.replace(hour=ANCHOR_HOUR, minute=0, second=0, microsecond=0)
    if isinstance(value, str):
        parts = value.strip().split("-")
        if not 1 <= len(parts) <= 3:
            raise DateParseError(f"Unrecognised date string: {value!r}")
        try:
            year = int(parts[0])
            month = int(parts[1]) if len(parts) > 1 else 1
            day = int(parts[2]) if len(parts) > 2 else 1
            return datetime(year, month, day, ANCHOR_HOUR)
        except ValueError as exc:
            raise DateParseError(f"Unrecognised date string: {value!r}") from exc
    raise DateParseError(f"parse_date not passed a date-like value: {value!r}")


def add_months(value: DateLike, months: int) -> datetime:
    """Shift by whole months, clamping to the last day of a shorter month."""
    return parse_date(value) + relativedelta(months=months)


def format_date(value: DateLike, precision: Precision = "day") -> str:
    try:
        pattern = _FORMATS[precision]
    except KeyError:
        raise ValueError(f"Unknown precision: {precision!r}") from None
    return parse_date(value).strftime(pattern)


def today() -> str:
    return format_date(datetime.now(), "day")
