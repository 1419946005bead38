from __future__ import annotations

import pytest

from indicators.moving_average import MovingAverageSpec
from reports.grid import SheetGrid
from reports.layout import TableColumn, plan_dashboard, plan_legend
from reports.signals import (
    CASH,
    INVESTED,
    apply_conditional_formatting,
    evaluate_signal,
    render_legend,
    render_row,
    render_table,
)

SPECS = [MovingAverageSpec(period=200), MovingAverageSpec(period=50)]


def test_evaluate_signal_positive_variance_is_invested():
    signal = evaluate_signal(105.0, 100.0)
    assert signal.variance == 5.00
    assert signal.position == INVESTED

    signal = evaluate_signal(110.0, 100.0)
    assert signal.variance == 10.00
    assert signal.position == INVESTED


def test_evaluate_signal_negative_or_flat_variance_is_cash():
    assert evaluate_signal(95.0, 100.0).variance == -5.00
    assert evaluate_signal(95.0, 100.0).position == CASH
    assert evaluate_signal(100.0, 100.0).position == CASH


def test_evaluate_signal_rounds_to_two_places():
    assert evaluate_signal(101.2345, 100.0).variance == 1.23


def test_render_table_writes_merged_header_and_footer():
    sheet = SheetGrid("Dashboard")
    region = plan_dashboard(2, SPECS)[0]

    render_table(sheet, region, "200-Day SMA")

    assert sheet.value(region.header_row, 0) == "Ivy Portfolio 200-Day SMA Signals"
    assert [sheet.value(region.subheader_row, column) for column in TableColumn] == [
        "Fund",
        "Position",
        "Variance*",
    ]
    assert sheet.value(region.footer_row, 0) == "* Percent above/below the 200-Day SMA"
    merged = {(cell_range.first_row, cell_range.first_column, cell_range.last_column) for cell_range in sheet.merged}
    assert (region.header_row, 0, 2) in merged
    assert (region.footer_row, 0, 2) in merged


def test_render_row_emits_cross_sheet_formulas():
    sheet = SheetGrid("Dashboard")
    region = plan_dashboard(2, SPECS)[0]

    row = render_row(sheet, region, 0, "SPY", moving_average_column=7, adjusted_close_column=1)

    assert row.position_expression == 'IF(C3 > 0, "Invested", "Cash")'
    assert row.variance_expression == "ROUND(('SPY'!B2 - 'SPY'!H2) / 'SPY'!H2 * 100, 2)"
    assert sheet.value(2, TableColumn.FUND) == "SPY"
    assert sheet.get(2, TableColumn.POSITION).formula == row.position_expression
    assert sheet.get(2, TableColumn.VARIANCE).formula == row.variance_expression
    assert sheet.get(2, TableColumn.VARIANCE).value is None


def test_render_row_in_second_table_points_at_its_own_rows():
    sheet = SheetGrid("Dashboard")
    region = plan_dashboard(2, SPECS)[1]

    row = render_row(sheet, region, 1, "EFA", moving_average_column=8)

    assert row.position_expression.startswith("IF(C10 > 0")
    assert "'EFA'!I2" in row.variance_expression


def test_render_row_rejects_offsets_outside_body():
    sheet = SheetGrid("Dashboard")
    region = plan_dashboard(1, SPECS)[0]

    with pytest.raises(IndexError):
        render_row(sheet, region, 1, "SPY", moving_average_column=7)


def test_render_table_with_symbols_renders_body():
    sheet = SheetGrid("Dashboard")
    region = plan_dashboard(2, SPECS)[0]

    rows = render_table(sheet, region, "200-Day SMA", ["SPY", "EFA"], moving_average_column=7)

    assert len(rows) == 2
    assert sheet.value(region.body_start_row + 1, TableColumn.FUND) == "EFA"


def test_conditional_formatting_covers_every_table_body():
    sheet = SheetGrid("Dashboard")
    regions = plan_dashboard(2, SPECS)

    apply_conditional_formatting(sheet, regions)

    position, variance = sheet.conditional_formats
    assert [cell_range.ref for cell_range in position.ranges] == ["B3:B4", "B9:B10"]
    assert [cell_range.ref for cell_range in variance.ranges] == ["C3:C4", "C9:C10"]

    assert [(rule.operator, rule.formula) for rule in position.rules] == [
        ("equal", ('"Invested"',)),
        ("equal", ('"Cash"',)),
    ]
    assert position.rules[1].font_color is not None
    assert [(rule.operator, rule.formula) for rule in variance.rules] == [
        ("greaterThan", ("2",)),
        ("between", ("-2", "2")),
        ("lessThan", ("-2",)),
    ]


def test_conditional_formatting_skips_empty_tables():
    sheet = SheetGrid("Dashboard")

    apply_conditional_formatting(sheet, plan_dashboard(0, SPECS))

    assert sheet.conditional_formats == []


def test_legend_renders_missing_descriptions_as_empty():
    sheet = SheetGrid("Dashboard")
    regions = plan_dashboard(2, SPECS)
    legend = plan_legend(2, regions)

    render_legend(sheet, legend, ["SPY", "EFA"], {"SPY": "SPDR S&P 500 ETF Trust"})

    assert sheet.value(legend.header_row, 0) == "Funds"
    assert sheet.value(legend.header_row + 1, 0) == "Fund"
    assert sheet.value(legend.header_row + 1, 1) == "Name"
    assert sheet.value(legend.body_start_row, 0) == "SPY"
    assert sheet.value(legend.body_start_row, 1) == "SPDR S&P 500 ETF Trust"
    assert sheet.value(legend.body_start_row + 1, 0) == "EFA"
    assert sheet.value(legend.body_start_row + 1, 1) == ""
