"""In-memory, cell-addressable workbook model.

Report builders write into these grids; :mod:`reports.xlsx` turns them into
a file and :mod:`automation.remote_sync` reads their literal values. Row and
column indices are 0-based throughout.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from openpyxl.utils import get_column_letter
from openpyxl.workbook.child import INVALID_TITLE_REGEX

MAX_SHEET_NAME_LENGTH = 31


def column_letter(column: int) -> str:
    return get_column_letter(column + 1)


def cell_ref(row: int, column: int) -> str:
    """Return the A1-style reference of a 0-based cell."""
    return f"{column_letter(column)}{row + 1}"


def sheet_ref(sheet_name: str) -> str:
    """Quote a sheet name for use in a cross-sheet formula."""
    return "'" + sheet_name.replace("'", "''") + "'"


def validate_sheet_name(name: str) -> str:
    """Return ``name`` if Excel accepts it as a sheet title, else raise ``ValueError``."""
    if not name or not name.strip():
        raise ValueError("Sheet name must not be empty")
    if len(name) > MAX_SHEET_NAME_LENGTH:
        raise ValueError(f"Sheet name {name!r} is longer than {MAX_SHEET_NAME_LENGTH} characters")
    match = INVALID_TITLE_REGEX.search(name)
    if match:
        raise ValueError(f"Sheet name {name!r} contains the invalid character {match.group(0)!r}")
    if name.startswith("'") or name.endswith("'"):
        raise ValueError(f"Sheet name {name!r} must not start or end with an apostrophe")
    return name


@dataclass
class CellValue:
    value: Any = None
    formula: Optional[str] = None
    style: Optional[str] = None

    @property
    def is_formula(self) -> bool:
        return self.formula is not None


@dataclass(frozen=True)
class CellRange:
    first_row: int
    last_row: int
    first_column: int
    last_column: int

    @property
    def ref(self) -> str:
        return f"{cell_ref(self.first_row, self.first_column)}:{cell_ref(self.last_row, self.last_column)}"


@dataclass(frozen=True)
class ConditionalRule:
    operator: str
    formula: Tuple[str, ...]
    fill: str
    font_color: Optional[str] = None


@dataclass
class ConditionalFormat:
    ranges: List[CellRange]
    rules: List[ConditionalRule]


@dataclass
class SheetGrid:
    name: str
    default_column_width: Optional[float] = None
    cells: Dict[Tuple[int, int], CellValue] = field(default_factory=dict)
    merged: List[CellRange] = field(default_factory=list)
    conditional_formats: List[ConditionalFormat] = field(default_factory=list)

    def set(
        self,
        row: int,
        column: int,
        value: Any = None,
        *,
        formula: Optional[str] = None,
        style: Optional[str] = None,
    ) -> CellValue:
        if row < 0 or column < 0:
            raise ValueError(f"Cell index out of range: ({row}, {column})")
        cell = CellValue(value=value, formula=formula, style=style)
        self.cells[(int(row), int(column))] = cell
        return cell

    def get(self, row: int, column: int) -> Optional[CellValue]:
        return self.cells.get((row, column))

    def value(self, row: int, column: int) -> Any:
        cell = self.cells.get((row, column))
        return None if cell is None else cell.value

    def merge(self, first_row: int, last_row: int, first_column: int, last_column: int) -> CellRange:
        region = CellRange(int(first_row), int(last_row), int(first_column), int(last_column))
        self.merged.append(region)
        return region

    def add_conditional_format(self, ranges: Sequence[CellRange], rules: Sequence[ConditionalRule]) -> None:
        self.conditional_formats.append(ConditionalFormat(list(ranges), list(rules)))

    @property
    def last_row(self) -> int:
        return max((row for row, _ in self.cells), default=-1)

    @property
    def last_column(self) -> int:
        return max((column for _, column in self.cells), default=-1)

    def used_range(self) -> Optional[str]:
        if not self.cells:
            return None
        return f"A1:{cell_ref(self.last_row, self.last_column)}"

    def value_grid(self) -> List[List[Any]]:
        """Literal values as a dense row-major grid; formula cells become blank."""
        grid: List[List[Any]] = []
        for row in range(self.last_row + 1):
            values: List[Any] = []
            for column in range(self.last_column + 1):
                cell = self.cells.get((row, column))
                if cell is None or cell.is_formula or cell.value is None:
                    values.append("")
                else:
                    values.append(cell.value)
            grid.append(values)
        return grid


@dataclass
class WorkbookGrid:
    sheets: List[SheetGrid] = field(default_factory=list)

    def add_sheet(self, name: str, default_column_width: Optional[float] = None) -> SheetGrid:
        validate_sheet_name(name)
        if any(sheet.name.lower() == name.lower() for sheet in self.sheets):
            raise ValueError(f"Duplicate sheet name: {name}")
        sheet = SheetGrid(name=name, default_column_width=default_column_width)
        self.sheets.append(sheet)
        return sheet

    def sheet(self, name: str) -> SheetGrid:
        for sheet in self.sheets:
            if sheet.name == name:
                return sheet
        raise KeyError(name)

    def __iter__(self) -> Iterator[SheetGrid]:
        return iter(self.sheets)

    def __len__(self) -> int:
        return len(self.sheets)


__all__ = [
    "CellRange",
    "CellValue",
    "ConditionalFormat",
    "ConditionalRule",
    "SheetGrid",
    "WorkbookGrid",
    "cell_ref",
    "column_letter",
    "sheet_ref",
    "validate_sheet_name",
]
