"""Helpers for "YYYY-MM" period strings."""
import re
from datetime import datetime
from typing import List

from dateutil.relativedelta import relativedelta

from payout_engine.core.exceptions import InvalidMonthError

MONTH_PATTERN = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")


def is_valid_month(value: str) -> bool:
    return bool(value) and bool(MONTH_PATTERN.match(value))


def validate_month(value: str) -> str:
    if not is_valid_month(value):
        raise InvalidMonthError(value)
    return value


def _to_date(month: str) -> datetime:
    year, mon = map(int, validate_month(month).split("-"))
    return datetime(year, mon, 1)


def shift_month(month: str, months: int) -> str:
    """Move a period forward (or back, with a negative count)."""
    return (_to_date(month) + relativedelta(months=months)).strftime("%Y-%m")


def next_month(month: str) -> str:
    return shift_month(month, 1)


def month_range(start: str, end: str) -> List[str]:
    """Every month from start through end, inclusive. Empty if end < start."""
    months = []
    current = validate_month(start)
    validate_month(end)
    while current <= end:
        months.append(current)
        current = next_month(current)
    return months


def months_of_year(year: int) -> List[str]:
    return [f"{year:04d}-{m:02d}" for m in range(1, 13)]


def display_month(month: str) -> str:
    """"2025-01" -> "January 2025"."""
    return _to_date(month).strftime("%B %Y")
