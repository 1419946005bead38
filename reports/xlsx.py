"""Serialise :class:`reports.grid.WorkbookGrid` objects to ``.xlsx`` with openpyxl."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict

from openpyxl import Workbook
from openpyxl.formatting.rule import CellIsRule
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side

from reports.grid import ConditionalRule, SheetGrid, WorkbookGrid

LOGGER = logging.getLogger(__name__)

FONT_NAME = "Arial"
LIGHT_BLUE = "FFBDD7EE"
LIGHT_GREY = "FFD9D9D9"

_thin = Side(style="thin")
_border = Border(left=_thin, right=_thin, top=_thin, bottom=_thin)
_center = Alignment(horizontal="center")
_left = Alignment(horizontal="left")


def _fill(color: str) -> PatternFill:
    return PatternFill(start_color=color, end_color=color, fill_type="solid")


STYLES: Dict[str, dict] = {
    "table_title": {"font": Font(name=FONT_NAME, size=11, bold=True), "fill": _fill(LIGHT_BLUE), "alignment": _center, "border": _border},
    "table_subheader": {"font": Font(name=FONT_NAME, size=11), "fill": _fill(LIGHT_GREY), "alignment": _center, "border": _border},
    "table_fund": {"font": Font(name=FONT_NAME, size=11), "alignment": _center, "border": _border},
    "table_position": {"font": Font(name=FONT_NAME, size=11, bold=True), "alignment": _center, "border": _border},
    "table_variance": {"font": Font(name=FONT_NAME, size=11), "alignment": _center, "border": _border, "number_format": "0.00"},
    "table_footer": {"font": Font(name=FONT_NAME, size=8, italic=True), "alignment": _left, "border": _border},
    "legend_title": {"font": Font(name=FONT_NAME, size=11, bold=True), "fill": _fill(LIGHT_BLUE), "alignment": _center, "border": _border},
    "legend_subheader": {"font": Font(name=FONT_NAME, size=11, bold=True), "fill": _fill(LIGHT_GREY), "alignment": _center, "border": _border},
    "legend_fund": {"font": Font(name=FONT_NAME, size=11), "fill": _fill(LIGHT_GREY), "alignment": _center, "border": _border},
    "legend_name": {"font": Font(name=FONT_NAME, size=11), "alignment": _left, "border": _border},
    "data_header": {"font": Font(name=FONT_NAME, size=11), "fill": _fill(LIGHT_GREY), "alignment": _center},
    "data": {"font": Font(name=FONT_NAME, size=11), "alignment": _center},
}


def _cell_is_rule(rule: ConditionalRule) -> CellIsRule:
    kwargs = {"operator": rule.operator, "formula": list(rule.formula), "fill": _fill(rule.fill)}
    if rule.font_color:
        kwargs["font"] = Font(color=rule.font_color)
    return CellIsRule(**kwargs)


def _write_sheet(workbook: Workbook, grid: SheetGrid) -> None:
    worksheet = workbook.create_sheet(title=grid.name)
    if grid.default_column_width:
        worksheet.sheet_format.defaultColWidth = grid.default_column_width

    for (row, column), cell_value in sorted(grid.cells.items()):
        cell = worksheet.cell(row=row + 1, column=column + 1)
        if cell_value.is_formula:
            cell.value = f"={cell_value.formula}"
        elif cell_value.value is not None:
            cell.value = cell_value.value

        style = STYLES.get(cell_value.style or "")
        if style is None:
            if cell_value.style:
                LOGGER.debug("Unknown cell style %r on %s", cell_value.style, grid.name)
            continue
        for attribute, setting in style.items():
            setattr(cell, attribute, setting)

    for region in grid.merged:
        worksheet.merge_cells(
            start_row=region.first_row + 1,
            end_row=region.last_row + 1,
            start_column=region.first_column + 1,
            end_column=region.last_column + 1,
        )

    for conditional in grid.conditional_formats:
        sqref = " ".join(cell_range.ref for cell_range in conditional.ranges)
        for rule in conditional.rules:
            worksheet.conditional_formatting.add(sqref, _cell_is_rule(rule))


def to_openpyxl(grid: WorkbookGrid) -> Workbook:
    workbook = Workbook()
    workbook.remove(workbook.active)
    for sheet in grid:
        _write_sheet(workbook, sheet)
    return workbook


def write_workbook(grid: WorkbookGrid, path: Path) -> Path:
    """Write ``grid`` to ``path`` and return the path."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    workbook = to_openpyxl(grid)
    workbook.save(path)
    LOGGER.info("Wrote %s (%d sheets)", path, len(grid))
    return path


__all__ = ["STYLES", "to_openpyxl", "write_workbook"]
