"""
Calendar-day arithmetic for funnel analysis.

All funnel data is bucketed by calendar day, so the detector and the cause
analyzer only ever need whole-day differences. Dates travel through the
system as ``datetime.date`` objects; ISO ``YYYY-MM-DD`` strings are only
accepted at the ingestion boundary.

The clock used to stamp diagnoses is ``utc_now``. Services accept a clock
callable instead of reading the time directly so that tests can pin it.
"""

import re
from datetime import date, datetime, timedelta, timezone
from typing import Callable

# Strict ISO day shape. Anything else (timestamps, slashes, 2-digit years)
# is rejected before calendar validation.
ISO_DATE_PATTERN = re.compile(r'^\d{4}-\d{2}-\d{2}$')

Clock = Callable[[], datetime]


def days_diff(from_date: date, to_date: date) -> int:
    """
    Signed number of whole days from ``from_date`` to ``to_date``.

    Positive when ``to_date`` is later.

    Example:
        >>> days_diff(date(2025, 1, 1), date(2025, 1, 4))
        3
        >>> days_diff(date(2025, 1, 4), date(2025, 1, 1))
        -3
    """
    return (to_date - from_date).days


def days_between(date_a: date, date_b: date) -> int:
    """Absolute number of whole days between two dates."""
    return abs(days_diff(date_a, date_b))


def is_valid_date(value: str) -> bool:
    """
    Check that ``value`` is a ``YYYY-MM-DD`` string naming a real calendar day.

    ``2025-02-30`` has the right shape but is rejected.
    """
    if not isinstance(value, str) or not ISO_DATE_PATTERN.match(value):
        return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


def parse_date(value: str) -> date:
    """
    Parse an ISO ``YYYY-MM-DD`` string into a ``date``.

    Raises:
        ValueError: If the string is malformed or not a real calendar day.
    """
    if not is_valid_date(value):
        raise ValueError(f"Invalid date format: {value}")
    return date.fromisoformat(value)


def add_days(day: date, days: int) -> date:
    """Shift ``day`` by ``days`` (negative values move backwards)."""
    return day + timedelta(days=days)


def utc_now() -> datetime:
    """Default clock: current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)
