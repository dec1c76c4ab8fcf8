"""
Tests for calendar-day helpers.
"""

from datetime import date, timezone

import pytest

from funnel_guard.utils.dates import (
    add_days,
    days_between,
    days_diff,
    is_valid_date,
    parse_date,
    utc_now,
)


class TestDayArithmetic:

    def test_days_diff_is_signed(self) -> None:
        assert days_diff(date(2025, 1, 1), date(2025, 1, 4)) == 3
        assert days_diff(date(2025, 1, 4), date(2025, 1, 1)) == -3

    def test_days_diff_across_month_and_leap_day(self) -> None:
        assert days_diff(date(2024, 2, 28), date(2024, 3, 1)) == 2

    def test_days_between_is_absolute(self) -> None:
        assert days_between(date(2025, 1, 10), date(2025, 1, 3)) == 7
        assert days_between(date(2025, 1, 3), date(2025, 1, 3)) == 0

    def test_add_days(self) -> None:
        assert add_days(date(2025, 1, 31), 1) == date(2025, 2, 1)
        assert add_days(date(2025, 1, 1), -1) == date(2024, 12, 31)


class TestParsing:

    @pytest.mark.parametrize("value", ['2025-01-01', '2024-02-29'])
    def test_valid(self, value) -> None:
        assert is_valid_date(value)

    @pytest.mark.parametrize("value", [
        '2025-02-30', '2025-13-01', '2025/01/01', '25-01-01',
        '2025-01-01T00:00:00', '', ' 2025-01-01',
    ])
    def test_invalid(self, value) -> None:
        assert not is_valid_date(value)

    def test_parse_date(self) -> None:
        assert parse_date('2025-01-21') == date(2025, 1, 21)

    def test_parse_date_raises(self) -> None:
        with pytest.raises(ValueError, match="Invalid date format: 2025-02-30"):
            parse_date('2025-02-30')


def test_utc_now_is_aware() -> None:
    assert utc_now().tzinfo == timezone.utc
