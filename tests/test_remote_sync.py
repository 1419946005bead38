from __future__ import annotations

import logging
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from automation.remote_sync import (
    GoogleSheetsSync,
    RemoteSyncError,
    build_sync_targets,
    data_sheets,
    sync_range,
)
from ivy_portfolio.config_manager import Account, AccountType
from reports.grid import SheetGrid, WorkbookGrid


def _workbook() -> WorkbookGrid:
    workbook = WorkbookGrid()
    dashboard = workbook.add_sheet("Dashboard")
    dashboard.set(0, 0, "Ivy Portfolio 200-Day SMA Signals")
    workbook.add_sheet("Charts")
    spy = workbook.add_sheet("SPY")
    spy.set(0, 0, "Date")
    spy.set(0, 1, "Adj Close")
    spy.set(0, 2, "200-Day SMA")
    spy.set(1, 0, "2024-05-31")
    spy.set(1, 1, 525.5)
    spy.set(1, 2, formula="AVERAGE(B2:B201)")
    workbook.add_sheet("EFA")
    return workbook


def test_data_sheets_skip_dashboard_and_charts():
    assert [sheet.name for sheet in data_sheets(_workbook())] == ["SPY", "EFA"]


def test_sync_range_covers_used_cells():
    workbook = _workbook()

    assert sync_range(workbook.sheet("SPY")) == "SPY!A1:C2"
    assert sync_range(SheetGrid("EMPTY")) is None


def test_push_sheet_values_writes_literals_only():
    client = MagicMock()
    spreadsheet = client.open_by_key.return_value
    factory = MagicMock(return_value=client)
    sync = GoogleSheetsSync(Path("creds.json"), client_factory=factory)

    pushed = sync.push_sheet_values(_workbook(), "sheet-id")

    assert pushed == 1
    factory.assert_called_once_with(Path("creds.json"))
    client.open_by_key.assert_called_once_with("sheet-id")
    spreadsheet.values_update.assert_called_once()
    args, kwargs = spreadsheet.values_update.call_args
    assert args[0] == "SPY!A1:C2"
    assert kwargs["body"]["values"] == [
        ["Date", "Adj Close", "200-Day SMA"],
        ["2024-05-31", 525.5, ""],
    ]


def test_push_without_identifier_is_a_no_op():
    factory = MagicMock()
    sync = GoogleSheetsSync(Path("creds.json"), client_factory=factory)

    assert sync.push_sheet_values(_workbook(), "") == 0
    factory.assert_not_called()


def test_push_errors_are_wrapped():
    client = MagicMock()
    client.open_by_key.side_effect = PermissionError("forbidden")
    sync = GoogleSheetsSync(Path("creds.json"), client_factory=MagicMock(return_value=client))

    with pytest.raises(RemoteSyncError) as excinfo:
        sync.push_sheet_values(_workbook(), "sheet-id")
    assert isinstance(excinfo.value.__cause__, PermissionError)


def test_build_sync_targets_resolves_credentials(tmp_path: Path, caplog: pytest.LogCaptureFixture):
    (tmp_path / "google.json").write_text("{}", encoding="utf-8")
    accounts = [
        Account(name="google", type=AccountType.GOOGLE, credentials="google.json"),
        Account(name="nocreds", type=AccountType.GOOGLE, credentials=None),
        Account(name="office", type=AccountType.OFFICE365, credentials="office.json"),
        Account(name="missing", type=AccountType.GOOGLE, credentials="missing.json"),
    ]

    with caplog.at_level(logging.WARNING, logger="automation.remote_sync"):
        targets = build_sync_targets(accounts, tmp_path)

    assert list(targets) == ["google"]
    assert targets["google"].credentials_path == tmp_path / "google.json"
    messages = " ".join(record.getMessage() for record in caplog.records)
    assert "not supported" in messages
    assert "not found" in messages


def test_sync_range_quotes_names_that_need_it():
    sheet = SheetGrid("BRK.B")
    sheet.set(0, 0, "Date")
    sheet.set(3, 1, 412.0)

    assert sync_range(sheet) == "'BRK.B'!A1:B4"

    spaced = SheetGrid("My Fund")
    spaced.set(0, 0, "Date")
    assert sync_range(spaced) == "'My Fund'!A1:A1"
