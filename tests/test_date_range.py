from __future__ import annotations

from datetime import date

from indicators.moving_average import MovingAverageSpec, PeriodType
from reports.date_range import plan_date_range

DAILY = [MovingAverageSpec(period=200), MovingAverageSpec(period=50)]
MIXED = [MovingAverageSpec(period=200), MovingAverageSpec(period=10, period_type=PeriodType.MONTH)]


def test_daily_only_range_ends_yesterday():
    planned = plan_date_range(DAILY, today=date(2024, 6, 15))

    assert planned.end == date(2024, 6, 14)
    assert planned.start == date(2020, 6, 14)
    assert planned.needs_month_alignment is False


def test_monthly_mid_month_backs_up_to_previous_month_end():
    planned = plan_date_range(MIXED, today=date(2024, 6, 15))

    assert planned.end == date(2024, 5, 31)
    assert planned.start == date(2020, 5, 31)
    assert planned.needs_month_alignment is True


def test_monthly_on_first_of_month_uses_previous_month_end():
    planned = plan_date_range(MIXED, today=date(2024, 7, 1))

    assert planned.end == date(2024, 6, 30)


def test_monthly_on_last_day_of_month_ends_yesterday():
    planned = plan_date_range(MIXED, today=date(2024, 6, 30))

    assert planned.end == date(2024, 6, 29)
    assert planned.start == date(2020, 6, 29)


def test_march_start_crosses_february_end():
    planned = plan_date_range(MIXED, today=date(2023, 3, 10))

    assert planned.end == date(2023, 2, 28)
    assert planned.start == date(2019, 2, 28)


def test_empty_configuration_is_not_month_aligned():
    planned = plan_date_range([], today=date(2024, 1, 1))

    assert planned.end == date(2023, 12, 31)
    assert planned.needs_month_alignment is False
