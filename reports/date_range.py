"""Historical date range needed to fill the configured moving averages."""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Iterable, Optional

from indicators.moving_average import MovingAverageSpec, PeriodType

LOOKBACK_YEARS = 4


@dataclass(frozen=True)
class DateRange:
    start: date
    end: date
    needs_month_alignment: bool


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def _subtract_years(value: date, years: int) -> date:
    try:
        return value.replace(year=value.year - years)
    except ValueError:
        # Feb 29 in a year without one.
        return value.replace(year=value.year - years, day=28)


def plan_date_range(
    moving_averages: Iterable[MovingAverageSpec],
    today: Optional[date] = None,
) -> DateRange:
    """Return the price window that covers every configured average.

    When a monthly average is configured and the current month is not yet
    over, the window ends on the last day of the previous month so the
    newest monthly sample is always a complete month.
    """

    today = today or utc_today()
    monthly = any(spec.period_type is PeriodType.MONTH for spec in moving_averages)

    days_in_month = calendar.monthrange(today.year, today.month)[1]
    if monthly and today.day < days_in_month:
        end = today - timedelta(days=today.day)
    else:
        end = today - timedelta(days=1)

    start = _subtract_years(end, LOOKBACK_YEARS)
    return DateRange(start=start, end=end, needs_month_alignment=monthly)


__all__ = ["DateRange", "LOOKBACK_YEARS", "plan_date_range", "utc_today"]
