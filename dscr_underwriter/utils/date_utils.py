"""Date manipulation utilities"""

import calendar
from datetime import date, datetime, timezone
from typing import Union


def utcnow() -> datetime:
    """Timezone-aware current time in UTC"""
    return datetime.now(timezone.utc)


def month_key(occurred_on: Union[date, datetime]) -> str:
    """
    UTC calendar month of a sample as "YYYY-MM".

    Aware datetimes are converted to UTC first; naive datetimes and plain
    dates are taken as already being in UTC.
    """
    if isinstance(occurred_on, datetime) and occurred_on.tzinfo is not None:
        occurred_on = occurred_on.astimezone(timezone.utc)
    return f"{occurred_on.year:04d}-{occurred_on.month:02d}"


def parse_month_key(key: str) -> tuple[int, int]:
    """Split a "YYYY-MM" key into (year, month)"""
    year, month = key.split("-")
    return int(year), int(month)


def months_between(earlier: str, later: str) -> int:
    """Whole calendar months from one "YYYY-MM" key to another"""
    y1, m1 = parse_month_key(earlier)
    y2, m2 = parse_month_key(later)
    return (y2 - y1) * 12 + (m2 - m1)


def subtract_months(from_date: date, months: int) -> date:
    """Same day `months` calendar months earlier, clamped to the month's last day"""
    total = from_date.year * 12 + (from_date.month - 1) - months
    year, month = divmod(total, 12)
    month += 1
    day = min(from_date.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)
