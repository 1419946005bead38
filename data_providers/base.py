"""Abstract interfaces and shared data types for market data providers."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, Iterator, Mapping, Optional, Protocol, Sequence

import pandas as pd

LOGGER = logging.getLogger(__name__)

ADJUSTED_CLOSE = "Adj Close"
PRICE_COLUMNS = (ADJUSTED_CLOSE, "Open", "High", "Low", "Close", "Volume")


class DataProviderError(RuntimeError):
    """Raised when a provider cannot supply data for a symbol."""


class PriceDataError(DataProviderError):
    """Raised when price history could not be retrieved after retrying."""


class EmptyPriceDataError(DataProviderError):
    """Raised when the provider answered but had no rows for the symbol."""


@dataclass(frozen=True)
class PriceRequest:
    """Parameters for fetching price history for a single ticker."""

    symbol: str
    start: date
    end: date
    interval: str = "1d"


@dataclass(frozen=True)
class PriceObservation:
    """One trading day of prices; the first field is the adjusted close."""

    date: date
    fields: Mapping[str, Optional[float]] = field(default_factory=dict)

    @property
    def adjusted_close(self) -> Optional[float]:
        for value in self.fields.values():
            return value
        return None

    def is_complete(self) -> bool:
        return all(value is not None for value in self.fields.values())


class StockSeries:
    """Ascending, date-unique daily price history for one symbol.

    Incomplete observations (any null price field) are dropped on
    construction, so every row in ``frame`` can feed a moving-average
    window and be rendered.
    """

    def __init__(self, symbol: str, frame: pd.DataFrame) -> None:
        self.symbol = symbol
        self.frame = self._normalise(frame)

    @classmethod
    def from_observations(
        cls,
        symbol: str,
        observations: Iterable[PriceObservation],
        columns: Optional[Sequence[str]] = None,
    ) -> "StockSeries":
        records = list(observations)
        if columns is None:
            columns = list(records[0].fields.keys()) if records else [ADJUSTED_CLOSE]
        index = pd.DatetimeIndex([pd.Timestamp(obs.date) for obs in records], name="date")
        data = {
            column: [obs.fields.get(column) for obs in records]
            for column in columns
        }
        frame = pd.DataFrame(data, index=index, columns=list(columns), dtype="float64")
        return cls(symbol, frame)

    @staticmethod
    def _normalise(frame: pd.DataFrame) -> pd.DataFrame:
        if frame.empty:
            result = frame.copy()
            result.index = pd.DatetimeIndex(result.index, name="date")
            return result

        result = frame.copy()
        index = pd.DatetimeIndex(result.index)
        if index.tz is not None:
            index = index.tz_localize(None)
        result.index = index.normalize()
        result.index.name = "date"
        result = result.apply(pd.to_numeric, errors="coerce")

        incomplete = result.isna().any(axis=1)
        if incomplete.any():
            LOGGER.debug("Dropping %d incomplete rows", int(incomplete.sum()))
            result = result.loc[~incomplete]

        result = result.sort_index(kind="mergesort")
        duplicated = result.index.duplicated(keep="first")
        if duplicated.any():
            LOGGER.debug("Dropping %d duplicate dates", int(duplicated.sum()))
            result = result.loc[~duplicated]
        return result

    # ------------------------------------------------------------------
    def __len__(self) -> int:
        return len(self.frame)

    def __iter__(self) -> Iterator[PriceObservation]:
        return iter(self.observations())

    @property
    def empty(self) -> bool:
        return self.frame.empty

    @property
    def columns(self) -> list[str]:
        return [str(column) for column in self.frame.columns]

    @property
    def dates(self) -> list[date]:
        return [stamp.date() for stamp in self.frame.index]

    @property
    def adjusted_close(self) -> pd.Series:
        """First price column, positionally indexed in ascending date order."""
        if self.frame.shape[1] == 0:
            return pd.Series(dtype="float64")
        return self.frame.iloc[:, 0].reset_index(drop=True)

    def observations(self) -> list[PriceObservation]:
        columns = self.columns
        return [
            PriceObservation(
                date=stamp.date(),
                fields={column: float(value) for column, value in zip(columns, values)},
            )
            for stamp, values in zip(self.frame.index, self.frame.itertuples(index=False, name=None))
        ]


class FinancialDataClient(Protocol):
    """Protocol describing the data a report needs for each symbol."""

    def get_description(self, symbol: str) -> str:
        """Return a human-readable name for the symbol, or an empty string."""

    def get_price_history(self, symbol: str, start: date, end: date) -> StockSeries:
        """Return daily prices between ``start`` and ``end`` inclusive."""


__all__ = [
    "ADJUSTED_CLOSE",
    "PRICE_COLUMNS",
    "DataProviderError",
    "EmptyPriceDataError",
    "FinancialDataClient",
    "PriceDataError",
    "PriceObservation",
    "PriceRequest",
    "StockSeries",
]
