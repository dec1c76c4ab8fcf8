"""Small shared helpers used by the analytical services."""

from funnel_guard.utils.dates import (
    add_days,
    days_between,
    days_diff,
    is_valid_date,
    parse_date,
    utc_now,
)

__all__ = [
    'add_days',
    'days_between',
    'days_diff',
    'is_valid_date',
    'parse_date',
    'utc_now',
]
