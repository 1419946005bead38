"""Row and column planning for the dashboard and the per-symbol sheets.

Everything here is computed up front from the document configuration and
then read by the renderers; nothing is advanced as a side effect of
rendering.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Dict, List, Sequence

from data_providers.base import PRICE_COLUMNS
from indicators.moving_average import MovingAverageSpec

HEADER_ROWS = 2
FOOTER_ROWS = 2  # blank separator + caption


class TableColumn(IntEnum):
    FUND = 0
    POSITION = 1
    VARIANCE = 2


class LegendColumn(IntEnum):
    FUND = 0
    NAME = 1


@dataclass(frozen=True)
class DashboardRowRegion:
    """Rows owned by one signal table; ``body_end_row`` is exclusive."""

    moving_average_index: int
    header_row: int
    body_start_row: int
    body_end_row: int
    footer_row: int

    @property
    def subheader_row(self) -> int:
        return self.header_row + 1

    @property
    def height(self) -> int:
        return self.footer_row - self.header_row + 1

    def body_row(self, offset: int) -> int:
        row = self.body_start_row + offset
        if not self.body_start_row <= row < self.body_end_row:
            raise IndexError(f"Body offset {offset} outside table {self.moving_average_index}")
        return row


@dataclass(frozen=True)
class LegendRegion:
    header_row: int
    body_start_row: int
    body_end_row: int


def region_height(symbol_count: int) -> int:
    return HEADER_ROWS + symbol_count + FOOTER_ROWS


def plan_dashboard(symbol_count: int, moving_averages: Sequence[MovingAverageSpec]) -> List[DashboardRowRegion]:
    """Stack one table per moving average, top to bottom in configuration order."""

    if symbol_count < 0:
        raise ValueError("symbol_count must be non-negative")

    height = region_height(symbol_count)
    regions: List[DashboardRowRegion] = []
    for index, _spec in enumerate(moving_averages):
        header_row = index * height
        body_start = header_row + HEADER_ROWS
        body_end = body_start + symbol_count
        regions.append(
            DashboardRowRegion(
                moving_average_index=index,
                header_row=header_row,
                body_start_row=body_start,
                body_end_row=body_end,
                footer_row=body_end + 1,
            )
        )
    return regions


def plan_legend(symbol_count: int, regions: Sequence[DashboardRowRegion]) -> LegendRegion:
    """Place the fund legend one blank row beneath the last table."""

    header_row = regions[-1].footer_row + 2 if regions else 0
    body_start = header_row + HEADER_ROWS
    return LegendRegion(header_row=header_row, body_start_row=body_start, body_end_row=body_start + symbol_count)


@dataclass(frozen=True)
class DataColumnMap:
    """Logical column roles on a symbol sheet mapped to 0-based indices.

    Column 0 holds the date, the price fields follow with the adjusted close
    first, then one column per configured moving average.
    """

    price_fields: tuple[str, ...]
    moving_average_titles: tuple[str, ...]

    @classmethod
    def for_moving_averages(
        cls,
        moving_averages: Sequence[MovingAverageSpec],
        price_fields: Sequence[str] = PRICE_COLUMNS,
    ) -> "DataColumnMap":
        if not price_fields:
            raise ValueError("At least one price field is required")
        return cls(
            price_fields=tuple(price_fields),
            moving_average_titles=tuple(spec.display_title for spec in moving_averages),
        )

    @property
    def date(self) -> int:
        return 0

    @property
    def adjusted_close(self) -> int:
        return 1

    def price_field(self, name: str) -> int:
        return 1 + self.price_fields.index(name)

    def moving_average(self, index: int) -> int:
        if not 0 <= index < len(self.moving_average_titles):
            raise IndexError(f"No moving average column {index}")
        return 1 + len(self.price_fields) + index

    @property
    def headers(self) -> Dict[int, str]:
        titles = {self.date: "Date"}
        for name in self.price_fields:
            titles[self.price_field(name)] = name
        for index, title in enumerate(self.moving_average_titles):
            titles[self.moving_average(index)] = title
        return titles

    @property
    def width(self) -> int:
        return 1 + len(self.price_fields) + len(self.moving_average_titles)


__all__ = [
    "DashboardRowRegion",
    "DataColumnMap",
    "LegendColumn",
    "LegendRegion",
    "TableColumn",
    "plan_dashboard",
    "plan_legend",
    "region_height",
]
