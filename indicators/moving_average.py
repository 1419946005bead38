"""Simple moving averages over daily and month-end sampled prices."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence

import pandas as pd

from data_providers.base import StockSeries


class MovingAverageAlgorithm(str, Enum):
    SIMPLE = "Simple"


class PeriodType(str, Enum):
    DAY = "Day"
    MONTH = "Month"


@dataclass(frozen=True)
class MovingAverageSpec:
    """One configured signal, e.g. a 200-day or a 10-month SMA."""

    period: int
    period_type: PeriodType = PeriodType.DAY
    algorithm: MovingAverageAlgorithm = MovingAverageAlgorithm.SIMPLE
    title: Optional[str] = None

    def __post_init__(self) -> None:
        if self.period <= 0:
            raise ValueError("Moving average period must be positive")

    @property
    def display_title(self) -> str:
        if self.title:
            return self.title
        return f"{self.period}-{self.period_type.value} SMA"


def _check_period(period: int) -> None:
    if period <= 0:
        raise ValueError("Moving average period must be positive")


def compute_daily(series: StockSeries, period: int) -> pd.Series:
    """Return the trailing ``period``-row SMA of the adjusted close.

    The result is keyed by ascending row position. Rows without ``period``
    rows of history behind them are absent rather than NaN or zero.
    """

    _check_period(period)
    closes = series.adjusted_close
    averages = closes.rolling(window=period, min_periods=period).mean()
    return averages.dropna()


def end_of_month_anchors(series: StockSeries) -> list[int]:
    """Return the ascending row positions that sample each calendar month.

    The series is scanned newest first and the first row met for each
    (year, month) becomes the anchor, i.e. the month's last trading day.
    """

    anchors: list[int] = []
    previous: Optional[tuple[int, int]] = None
    for position in range(len(series.frame.index) - 1, -1, -1):
        stamp = series.frame.index[position]
        key = (stamp.year, stamp.month)
        if key != previous:
            anchors.append(position)
            previous = key
    anchors.reverse()
    return anchors


def compute_monthly(series: StockSeries, anchors: Sequence[int], period: int) -> pd.Series:
    """Return the SMA over ``period`` consecutive month anchors.

    Each anchor averages itself and the ``period - 1`` anchors before it.
    The result is keyed by the anchor's row position.
    """

    _check_period(period)
    if not anchors:
        return pd.Series(dtype="float64")
    closes = series.adjusted_close
    sampled = pd.Series(closes.iloc[list(anchors)].to_numpy(), index=list(anchors), dtype="float64")
    averages = sampled.rolling(window=period, min_periods=period).mean()
    return averages.dropna()


def compute_moving_average(
    series: StockSeries,
    spec: MovingAverageSpec,
    anchors: Optional[Sequence[int]] = None,
) -> pd.Series:
    if spec.algorithm is not MovingAverageAlgorithm.SIMPLE:
        raise ValueError(f"Unsupported moving average algorithm: {spec.algorithm}")
    if spec.period_type is PeriodType.MONTH:
        if anchors is None:
            anchors = end_of_month_anchors(series)
        return compute_monthly(series, anchors, spec.period)
    return compute_daily(series, spec.period)


__all__ = [
    "MovingAverageAlgorithm",
    "MovingAverageSpec",
    "PeriodType",
    "compute_daily",
    "compute_monthly",
    "compute_moving_average",
    "end_of_month_anchors",
]
