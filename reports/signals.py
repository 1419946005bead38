"""Dashboard signal tables: header, per-fund rows, footer, legend and formatting.

Position and Variance cells are written as formulas that point at the most
recent row of each fund's data sheet, so the spreadsheet application
recalculates them; every other dashboard cell is a literal.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional, Sequence

from reports.grid import CellRange, ConditionalRule, SheetGrid, cell_ref, column_letter, sheet_ref
from reports.layout import DashboardRowRegion, LegendColumn, LegendRegion, TableColumn

INVESTED = "Invested"
CASH = "Cash"

BUY_THRESHOLD = 2
SELL_THRESHOLD = -2

# Row of the newest observation on every symbol sheet (1-based, below the titles).
LATEST_DATA_ROW = 2

SUBHEADER_LABELS = ("Fund", "Position", "Variance*")

GREEN = "FF00B050"
RED = "FFC00000"
WHITE = "FFFFFFFF"
LIGHT_GREEN = "FFC6EFCE"
LIGHT_YELLOW = "FFFFEB9C"
LIGHT_RED = "FFFFC7CE"


@dataclass(frozen=True)
class SignalRow:
    position_expression: str
    variance_expression: str


@dataclass(frozen=True)
class SignalEvaluation:
    variance: float
    position: str


def table_title(title: str) -> str:
    return f"Ivy Portfolio {title} Signals"


def footer_caption(title: str) -> str:
    return f"* Percent above/below the {title}"


def evaluate_signal(adjusted_close: float, moving_average: float) -> SignalEvaluation:
    """Python rendition of the Position/Variance formulas."""
    if moving_average == 0:
        raise ValueError("Moving average must be non-zero")
    variance = round((adjusted_close - moving_average) / moving_average * 100, 2)
    return SignalEvaluation(variance=variance, position=INVESTED if variance > 0 else CASH)


def _merge_across_table(sheet: SheetGrid, row: int) -> None:
    sheet.merge(row, row, TableColumn.FUND, TableColumn.VARIANCE)


def render_table(
    sheet: SheetGrid,
    region: DashboardRowRegion,
    title: str,
    symbols: Sequence[str] = (),
    moving_average_column: Optional[int] = None,
    adjusted_close_column: int = 1,
) -> list[SignalRow]:
    """Render a table frame and, when a data column is given, its body rows."""

    sheet.set(region.header_row, TableColumn.FUND, table_title(title), style="table_title")
    sheet.set(region.header_row, TableColumn.POSITION, style="table_title")
    sheet.set(region.header_row, TableColumn.VARIANCE, style="table_title")
    _merge_across_table(sheet, region.header_row)

    for column, label in zip(TableColumn, SUBHEADER_LABELS):
        sheet.set(region.subheader_row, column, label, style="table_subheader")

    sheet.set(region.footer_row, TableColumn.FUND, footer_caption(title), style="table_footer")
    sheet.set(region.footer_row, TableColumn.POSITION, style="table_footer")
    sheet.set(region.footer_row, TableColumn.VARIANCE, style="table_footer")
    _merge_across_table(sheet, region.footer_row)

    if moving_average_column is None:
        return []
    return [
        render_row(sheet, region, offset, symbol, moving_average_column, adjusted_close_column)
        for offset, symbol in enumerate(symbols)
    ]


def render_row(
    sheet: SheetGrid,
    region: DashboardRowRegion,
    row_offset: int,
    symbol: str,
    moving_average_column: int,
    adjusted_close_column: int = 1,
) -> SignalRow:
    row = region.body_row(row_offset)
    variance_cell = cell_ref(row, TableColumn.VARIANCE)

    position = f'IF({variance_cell} > 0, "{INVESTED}", "{CASH}")'

    source = sheet_ref(symbol)
    close_ref = f"{source}!{column_letter(adjusted_close_column)}{LATEST_DATA_ROW}"
    average_ref = f"{source}!{column_letter(moving_average_column)}{LATEST_DATA_ROW}"
    variance = f"ROUND(({close_ref} - {average_ref}) / {average_ref} * 100, 2)"

    sheet.set(row, TableColumn.FUND, symbol, style="table_fund")
    sheet.set(row, TableColumn.POSITION, formula=position, style="table_position")
    sheet.set(row, TableColumn.VARIANCE, formula=variance, style="table_variance")
    return SignalRow(position_expression=position, variance_expression=variance)


def render_legend(
    sheet: SheetGrid,
    region: LegendRegion,
    symbols: Sequence[str],
    descriptions: Mapping[str, str],
    title: str = "Funds",
) -> None:
    name_end = LegendColumn.NAME + 1

    sheet.set(region.header_row, LegendColumn.FUND, title, style="legend_title")
    sheet.set(region.header_row, LegendColumn.NAME, style="legend_title")
    sheet.set(region.header_row, name_end, style="legend_title")
    sheet.merge(region.header_row, region.header_row, LegendColumn.FUND, name_end)

    subheader = region.header_row + 1
    sheet.set(subheader, LegendColumn.FUND, "Fund", style="legend_subheader")
    sheet.set(subheader, LegendColumn.NAME, "Name", style="legend_subheader")
    sheet.set(subheader, name_end, style="legend_subheader")
    sheet.merge(subheader, subheader, LegendColumn.NAME, name_end)

    for offset, symbol in enumerate(symbols):
        row = region.body_start_row + offset
        sheet.set(row, LegendColumn.FUND, symbol, style="legend_fund")
        sheet.set(row, LegendColumn.NAME, descriptions.get(symbol) or "", style="legend_name")
        sheet.set(row, name_end, style="legend_name")
        sheet.merge(row, row, LegendColumn.NAME, name_end)


def _column_ranges(regions: Sequence[DashboardRowRegion], column: int) -> list[CellRange]:
    return [
        CellRange(region.body_start_row, region.body_end_row - 1, column, column)
        for region in regions
        if region.body_end_row > region.body_start_row
    ]


def position_rules() -> list[ConditionalRule]:
    return [
        ConditionalRule(operator="equal", formula=(f'"{INVESTED}"',), fill=GREEN),
        ConditionalRule(operator="equal", formula=(f'"{CASH}"',), fill=RED, font_color=WHITE),
    ]


def variance_rules() -> list[ConditionalRule]:
    return [
        ConditionalRule(operator="greaterThan", formula=(str(BUY_THRESHOLD),), fill=LIGHT_GREEN),
        ConditionalRule(
            operator="between",
            formula=(str(SELL_THRESHOLD), str(BUY_THRESHOLD)),
            fill=LIGHT_YELLOW,
        ),
        ConditionalRule(operator="lessThan", formula=(str(SELL_THRESHOLD),), fill=LIGHT_RED),
    ]


def apply_conditional_formatting(sheet: SheetGrid, regions: Sequence[DashboardRowRegion]) -> None:
    position_ranges = _column_ranges(regions, TableColumn.POSITION)
    variance_ranges = _column_ranges(regions, TableColumn.VARIANCE)
    if position_ranges:
        sheet.add_conditional_format(position_ranges, position_rules())
    if variance_ranges:
        sheet.add_conditional_format(variance_ranges, variance_rules())


__all__ = [
    "BUY_THRESHOLD",
    "CASH",
    "INVESTED",
    "SELL_THRESHOLD",
    "SignalEvaluation",
    "SignalRow",
    "apply_conditional_formatting",
    "evaluate_signal",
    "footer_caption",
    "position_rules",
    "render_legend",
    "render_row",
    "render_table",
    "table_title",
    "variance_rules",
]
