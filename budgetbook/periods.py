import calendar
from datetime import date, datetime, time
from functools import lru_cache
from typing import Union

MONTH_NAMES = tuple(calendar.month_name)[1:]

SECONDS_PER_DAY = 24 * 60 * 60


@lru_cache(maxsize=256)
def month_bounds(year: int, month: int) -> tuple[date, date]:
    """First and last calendar day of a budget month, both inclusive."""
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def year_bounds(year: int) -> tuple[date, date]:
    return date(year, 1, 1), date(year, 12, 31)


def period_label(month: int, year: int) -> str:
    return f"{MONTH_NAMES[month - 1]} {year}"


def as_date(value: Union[date, datetime]) -> date:
    return value.date() if isinstance(value, datetime) else value


def as_datetime(value: Union[date, datetime]) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.combine(value, time.min)


def days_between(start: Union[date, datetime], end: Union[date, datetime]) -> float:
    """Fractional days from ``start`` to ``end``; negative when end is earlier."""
    start_dt, end_dt = as_datetime(start), as_datetime(end)
    if (start_dt.tzinfo is None) != (end_dt.tzinfo is None):
        start_dt, end_dt = start_dt.replace(tzinfo=None), end_dt.replace(tzinfo=None)
    return (end_dt - start_dt).total_seconds() / SECONDS_PER_DAY
