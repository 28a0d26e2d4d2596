from datetime import date, datetime
from typing import Iterator, Optional, Union

from dateutil.relativedelta import relativedelta

from budgetbook.domain import FREQUENCIES
from budgetbook.errors import ValidationError

# relativedelta clamps to the end of a shorter target month:
# Jan 31 + 1 month -> Feb 28 (29 in leap years), Feb 29 + 1 year -> Feb 28.
OFFSETS = {
    "daily": relativedelta(days=1),
    "weekly": relativedelta(weeks=1),
    "bi-weekly": relativedelta(weeks=2),
    "monthly": relativedelta(months=1),
    "quarterly": relativedelta(months=3),
    "semi-annually": relativedelta(months=6),
    "annually": relativedelta(years=1),
}

DateLike = Union[date, datetime]


def next_occurrence(anchor: DateLike, frequency: str) -> Optional[DateLike]:
    """Return the naive next date after ``anchor`` for ``frequency``.

    ``one-time`` has no further occurrence and yields None. End dates are
    not considered here; see ``within_end_date``.
    """
    if frequency not in FREQUENCIES:
        raise ValidationError(
            f"Unknown frequency: {frequency}",
            {"error": "invalid_frequency", "frequency": frequency},
        )
    if frequency == "one-time":
        return None
    return anchor + OFFSETS[frequency]


def within_end_date(candidate: Optional[date], end_date: Optional[date]) -> bool:
    if candidate is None:
        return False
    if end_date is None:
        return True
    return _as_date(candidate) <= _as_date(end_date)


def occurrences(anchor: date, frequency: str, until: date) -> Iterator[date]:
    """Yield the schedule from ``anchor`` (inclusive) up to ``until`` (inclusive).

    Each step offsets from the anchor rather than the previous date, so a
    monthly series anchored on the 31st returns to the 31st whenever the
    month allows it.
    """
    if frequency not in FREQUENCIES:
        raise ValidationError(
            f"Unknown frequency: {frequency}",
            {"error": "invalid_frequency", "frequency": frequency},
        )
    if anchor > until:
        return
    yield anchor
    if frequency == "one-time":
        return
    step = 1
    while True:
        current = anchor + OFFSETS[frequency] * step
        if current > until:
            return
        yield current
        step += 1


def _as_date(value: DateLike) -> date:
    return value.date() if isinstance(value, datetime) else value
