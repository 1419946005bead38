"""Per-symbol data sheet: prices newest-first plus one column per moving average."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Optional, Sequence

from data_providers.base import StockSeries
from indicators.moving_average import (
    MovingAverageSpec,
    PeriodType,
    compute_moving_average,
    end_of_month_anchors,
)
from reports.grid import SheetGrid
from reports.layout import DataColumnMap

LOGGER = logging.getLogger(__name__)

DATE_FORMAT = "%Y-%m-%d"
COLUMN_WIDTH = 12


@dataclass
class SymbolSheetSummary:
    """Newest values written to the sheet, used for logging the signal."""

    symbol: str
    rows: int
    latest_close: Optional[float] = None
    latest_averages: Dict[int, float] = field(default_factory=dict)


def sheet_row(position: int, row_count: int) -> int:
    """Map an ascending series position to its 0-based sheet row (row 0 holds titles)."""
    return 1 + (row_count - 1 - position)


def render_symbol_sheet(
    sheet: SheetGrid,
    series: StockSeries,
    columns: DataColumnMap,
    moving_averages: Sequence[MovingAverageSpec],
) -> SymbolSheetSummary:
    sheet.default_column_width = COLUMN_WIDTH
    for column, title in columns.headers.items():
        sheet.set(0, column, title, style="data_header")

    available = [name for name in columns.price_fields if name in series.columns]
    ignored = [name for name in series.columns if name not in columns.price_fields]
    if ignored:
        LOGGER.debug("%s: ignoring unmapped price columns %s", series.symbol, ignored)

    frame = series.frame
    row_count = len(frame)
    for position, (stamp, record) in enumerate(zip(frame.index, frame[available].to_numpy())):
        row = sheet_row(position, row_count)
        sheet.set(row, columns.date, stamp.strftime(DATE_FORMAT), style="data")
        for name, value in zip(available, record):
            sheet.set(row, columns.price_field(name), float(value), style="data")

    summary = SymbolSheetSummary(symbol=series.symbol, rows=row_count)
    if row_count:
        summary.latest_close = float(series.adjusted_close.iloc[-1])

    anchors = None
    if any(spec.period_type is PeriodType.MONTH for spec in moving_averages):
        anchors = end_of_month_anchors(series)

    for index, spec in enumerate(moving_averages):
        averages = compute_moving_average(series, spec, anchors)
        column = columns.moving_average(index)
        for position, value in averages.items():
            sheet.set(sheet_row(int(position), row_count), column, float(value), style="data")
        if row_count and (row_count - 1) in averages.index:
            summary.latest_averages[index] = float(averages.loc[row_count - 1])

    return summary


__all__ = ["SymbolSheetSummary", "render_symbol_sheet", "sheet_row"]
