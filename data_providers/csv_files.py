"""Price provider backed by Yahoo-style CSV downloads on disk."""

from __future__ import annotations

import csv
import io
import logging
from datetime import date, datetime
from pathlib import Path
from typing import Mapping, Optional

from .base import (
    ADJUSTED_CLOSE,
    EmptyPriceDataError,
    PriceDataError,
    PriceObservation,
    StockSeries,
)

LOGGER = logging.getLogger(__name__)

NULL_TOKEN = "null"


def _column_name(header: str) -> str:
    key = header.strip().lower().replace("_", " ")
    if key in {"adj close", "adjclose"}:
        return ADJUSTED_CLOSE
    return key.title()


def _order_columns(headers: list[str], symbol: str) -> list[tuple[str, int]]:
    """Map price fields to ``(column name, token index)`` with the adjusted close first.

    Header names are normalised to the provider column names. A file without
    an adjusted close column falls back to its close column.
    """
    fields = [(_column_name(name), index) for index, name in enumerate(headers) if index > 0]
    adjusted = [pair for pair in fields if pair[0] == ADJUSTED_CLOSE]
    if not adjusted:
        close = [pair for pair in fields if pair[0] == "Close"]
        if not close:
            raise PriceDataError(f"{symbol}: price file has neither an adjusted close nor a close column")
        LOGGER.debug("%s: no adjusted close column, using close", symbol)
        adjusted = [(ADJUSTED_CLOSE, close[0][1])]
    return adjusted[:1] + [pair for pair in fields if pair[0] != ADJUSTED_CLOSE]


def parse_price_csv(text: str, symbol: str) -> StockSeries:
    """Parse a ``Date,Open,High,Low,Close,Adj Close,Volume`` CSV payload.

    ``null`` tokens become null fields; rows carrying one are later dropped by
    :class:`StockSeries`. Rows with the wrong number of fields, an unparseable
    date or an unparseable number are skipped with a warning.
    """
    reader = csv.reader(io.StringIO(text))
    try:
        headers = [name.strip() for name in next(reader)]
    except StopIteration:
        return StockSeries.from_observations(symbol, [], columns=[ADJUSTED_CLOSE])

    columns = _order_columns(headers, symbol)

    observations: list[PriceObservation] = []
    for line_number, tokens in enumerate(reader, start=2):
        if not tokens:
            continue
        if len(tokens) != len(headers):
            LOGGER.warning(
                "%s line %d: inconsistent number of columns: %d vs %d",
                symbol,
                line_number,
                len(tokens),
                len(headers),
            )
            continue

        raw_date = tokens[0].strip()
        if raw_date == NULL_TOKEN:
            continue
        try:
            day = datetime.strptime(raw_date, "%Y-%m-%d").date()
        except ValueError:
            LOGGER.warning("%s line %d: failed to parse date %r", symbol, line_number, raw_date)
            continue

        fields: dict[str, Optional[float]] = {}
        malformed = False
        for name, position in columns:
            token = tokens[position].strip()
            if token == NULL_TOKEN or token == "":
                fields[name] = None
                continue
            try:
                fields[name] = float(token)
            except ValueError:
                LOGGER.warning("%s line %d: failed to parse value %r", symbol, line_number, token)
                malformed = True
                break
        if malformed:
            continue

        observations.append(PriceObservation(date=day, fields=fields))

    return StockSeries.from_observations(symbol, observations, columns=[name for name, _ in columns])


class CsvPriceProvider:
    """Serve price history from ``{SYMBOL}.csv`` files in a directory."""

    def __init__(self, directory: Path, descriptions: Optional[Mapping[str, str]] = None) -> None:
        self.directory = Path(directory)
        self.descriptions = dict(descriptions or {})

    def get_description(self, symbol: str) -> str:
        return self.descriptions.get(symbol, "")

    def get_price_history(self, symbol: str, start: date, end: date) -> StockSeries:
        path = self.directory / f"{symbol.upper()}.csv"
        if not path.exists():
            raise PriceDataError(f"Price file not found: {path}")

        series = parse_price_csv(path.read_text(encoding="utf-8"), symbol)
        frame = series.frame
        if not frame.empty:
            mask = (frame.index.date >= start) & (frame.index.date <= end)
            frame = frame.loc[mask]
        if frame.empty:
            raise EmptyPriceDataError(f"No price data for {symbol} between {start} and {end}")
        return StockSeries(symbol, frame)


__all__ = ["CsvPriceProvider", "parse_price_csv", "NULL_TOKEN"]
