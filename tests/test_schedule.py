from datetime import date

import pytest

from pharos.core.models import Frequency
from pharos.ledger.schedule import add_months, advance, clamp_day_to_month


def test_daily_and_weekly():
    assert advance(date(2026, 12, 31), Frequency.daily) == date(2027, 1, 1)
    assert advance(date(2026, 2, 25), Frequency.weekly) == date(2026, 3, 4)


def test_monthly_from_jan_31_lands_on_end_of_february():
    assert advance(date(2026, 1, 31), Frequency.monthly) == date(2026, 2, 28)
    assert advance(date(2028, 1, 31), Frequency.monthly) == date(2028, 2, 29)


def test_monthly_keeps_anchor_day_after_short_month():
    feb = advance(date(2026, 1, 31), Frequency.monthly, anchor_day=31)
    assert advance(feb, Frequency.monthly, anchor_day=31) == date(2026, 3, 31)
    assert advance(date(2026, 3, 31), Frequency.monthly, anchor_day=31) == date(2026, 4, 30)


def test_monthly_rolls_year():
    assert advance(date(2026, 12, 15), Frequency.monthly) == date(2027, 1, 15)


def test_yearly_leap_day():
    assert advance(date(2028, 2, 29), Frequency.yearly) == date(2029, 2, 28)
    assert add_months(date(2031, 2, 28), 12, anchor_day=29) == date(2032, 2, 29)


def test_accepts_plain_string_frequency():
    assert advance(date(2026, 1, 1), "weekly") == date(2026, 1, 8)


def test_unknown_frequency():
    with pytest.raises(ValueError):
        advance(date(2026, 1, 1), "hourly")


def test_clamp_day_to_month():
    assert clamp_day_to_month(2026, 4, 31) == 30
    assert clamp_day_to_month(2026, 5, 31) == 31
